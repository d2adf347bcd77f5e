"""Port for upserting records into a destination store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType

    from cardsync.domain.records import ConflictKey, MappedRecord


@runtime_checkable
class DestinationWriter(Protocol):
    """Scoped write access to a destination store."""

    def __enter__(self) -> DestinationWriter: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool | None: ...

    def upsert(
        self,
        table: str,
        records: Sequence[MappedRecord],
        conflict_key: ConflictKey,
        *,
        extension_table: str | None = None,
    ) -> None:
        """Insert ``records`` or update the rows matching ``conflict_key``.

        Never produces two rows for the same key. When ``extension_table`` is
        given, each record's extension attributes are upserted there under the
        same key. Raises ``BatchWriteError`` when the batch is not committed.
        """
        ...


__all__ = ["DestinationWriter"]
