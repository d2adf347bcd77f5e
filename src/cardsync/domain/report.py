"""Outcome records produced by a sync run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .errors import TransformError

SIMULATED_NOTE = "simulated"


class BatchOutcome(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Outcome of a single batch write."""

    batch_index: int
    record_count: int
    outcome: BatchOutcome
    reason: str | None = None
    note: str | None = None
    duplicates_dropped: int = 0

    @classmethod
    def success(
        cls,
        batch_index: int,
        record_count: int,
        *,
        note: str | None = None,
        duplicates_dropped: int = 0,
    ) -> BatchResult:
        return cls(
            batch_index,
            record_count,
            BatchOutcome.SUCCESS,
            note=note,
            duplicates_dropped=duplicates_dropped,
        )

    @classmethod
    def failure(
        cls,
        batch_index: int,
        record_count: int,
        reason: str,
        *,
        duplicates_dropped: int = 0,
    ) -> BatchResult:
        return cls(
            batch_index,
            record_count,
            BatchOutcome.FAILURE,
            reason=reason,
            duplicates_dropped=duplicates_dropped,
        )

    @property
    def succeeded(self) -> bool:
        return self.outcome is BatchOutcome.SUCCESS

    @property
    def simulated(self) -> bool:
        return self.note == SIMULATED_NOTE


@dataclass(frozen=True, slots=True)
class SyncReport:
    """Ordered batch outcomes of one run plus aggregate record counts."""

    destination_table: str
    batches: tuple[BatchResult, ...]
    transform_errors: tuple[TransformError, ...] = ()
    records_read: int = 0
    records_mapped: int = 0
    dry_run: bool = False
    cancelled: bool = False
    skipped_batches: int = 0

    @property
    def attempted(self) -> int:
        return sum(result.record_count for result in self.batches)

    @property
    def succeeded(self) -> int:
        return sum(result.record_count for result in self.batches if result.succeeded)

    @property
    def failed(self) -> int:
        return sum(result.record_count for result in self.batches if not result.succeeded)

    @property
    def failed_batch_indexes(self) -> tuple[int, ...]:
        return tuple(result.batch_index for result in self.batches if not result.succeeded)

    @property
    def ok(self) -> bool:
        """Whether every attempted batch committed and no record was rejected."""

        return not self.failed_batch_indexes and not self.transform_errors

    def summary(self) -> str:
        mode = " (dry run)" if self.dry_run else ""
        cancelled = ", cancelled" if self.cancelled else ""
        return (
            f"{self.destination_table}{mode}: read={self.records_read}, "
            f"mapped={self.records_mapped}, attempted={self.attempted}, "
            f"succeeded={self.succeeded}, failed={self.failed}, "
            f"transform_errors={len(self.transform_errors)}, "
            f"batches={len(self.batches)}{cancelled}"
        )
