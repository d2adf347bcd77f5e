"""Error taxonomy surfaced by a sync run."""

from __future__ import annotations

from cardsync.config.errors import ConfigurationError


class SyncError(RuntimeError):
    """Base class for errors raised while synchronising records."""


class SourceReadError(SyncError):
    """Raised when the source store cannot be opened or queried. Fatal for a run."""


class TransformError(SyncError):
    """Raised by a transform when a single record cannot be mapped.

    The synchronizer captures these per record; they never abort a run.
    """

    def __init__(
        self,
        reason: str,
        *,
        record_index: int | None = None,
        batch_index: int | None = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.record_index = record_index
        self.batch_index = batch_index

    def at(self, record_index: int) -> TransformError:
        """Return a copy of this error pinned to a source record position."""

        return TransformError(self.reason, record_index=record_index, batch_index=self.batch_index)


class BatchWriteError(SyncError):
    """Raised by destination writers when a batch could not be committed."""


__all__ = [
    "BatchWriteError",
    "ConfigurationError",
    "SourceReadError",
    "SyncError",
    "TransformError",
]
