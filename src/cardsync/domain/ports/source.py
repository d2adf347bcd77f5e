"""Port for reading records from a source store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from types import TracebackType

    from cardsync.domain.records import SourceRecord


@dataclass(frozen=True, slots=True)
class SourceQuery:
    """Read-only query against a single source table.

    ``filters`` are equality predicates combined with AND. ``columns`` of
    ``None`` selects every column.
    """

    table: str
    columns: tuple[str, ...] | None = None
    filters: Mapping[str, object] = field(default_factory=dict)
    order_by: tuple[str, ...] = ()
    limit: int | None = None

    def with_filter(self, name: str, value: object) -> SourceQuery:
        return SourceQuery(
            table=self.table,
            columns=self.columns,
            filters={**self.filters, name: value},
            order_by=self.order_by,
            limit=self.limit,
        )


@runtime_checkable
class SourceReader(Protocol):
    """Scoped read access to a source store."""

    def __enter__(self) -> SourceReader: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool | None: ...

    def fetch(self, query: SourceQuery) -> Sequence[SourceRecord]:
        """Return the finite, ordered result of ``query``.

        Raises ``SourceReadError`` on I/O or query failure.
        """
        ...


__all__ = ["SourceQuery", "SourceReader"]
