"""Record types flowing through the sync pipeline."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class SourceRecord(Mapping[str, object]):
    """Immutable row read from a source store.

    ``index`` is the position of the row in the result set it was read from.
    """

    __slots__ = ("_data", "index")

    def __init__(self, data: Mapping[str, object], *, index: int = 0) -> None:
        self._data: Mapping[str, object] = MappingProxyType(dict(data))
        self.index = index

    def __getitem__(self, key: str) -> object:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"SourceRecord(index={self.index}, data={dict(self._data)!r})"


@dataclass(slots=True)
class MappedRecord:
    """Record shaped for the destination schema.

    ``values`` holds destination columns. ``extension`` holds source fields that
    have no destination column and were routed to the extension record.
    """

    values: dict[str, object]
    extension: dict[str, object] = field(default_factory=dict)
    source_index: int | None = None


@dataclass(frozen=True, slots=True)
class ConflictKey:
    """Ordered set of destination fields whose combined value is unique."""

    fields: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.fields:
            raise ConfigurationError("Conflict key must name at least one field")
        if any(not name or not name.strip() for name in self.fields):
            raise ConfigurationError("Conflict key field names must be non-blank")
        if len(set(self.fields)) != len(self.fields):
            raise ConfigurationError(f"Conflict key has repeated fields: {self.fields}")

    @classmethod
    def of(cls, *fields: str) -> ConflictKey:
        return cls(tuple(fields))

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def value_of(self, record: MappedRecord) -> tuple[object, ...]:
        return tuple(record.values.get(name) for name in self.fields)

    def missing_fields(self, record: MappedRecord) -> list[str]:
        """Return key fields that are absent, ``None`` or blank on ``record``."""

        missing: list[str] = []
        for name in self.fields:
            value = record.values.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    def project(self, record: MappedRecord) -> dict[str, object]:
        return {name: record.values.get(name) for name in self.fields}

    def split(self, columns: Iterable[str]) -> list[str]:
        """Return ``columns`` that are not part of the key, preserving order."""

        return [column for column in columns if column not in self.fields]


EXTENSION_ATTRIBUTES_COLUMN = "attributes"


def extension_rows(
    records: Iterable[MappedRecord],
    conflict_key: ConflictKey,
) -> list[dict[str, object]]:
    """Build one extension-table row (key values + attributes) per record.

    Records without attributes get an empty mapping so a stale row is cleared.
    """

    return [
        {**conflict_key.project(record), EXTENSION_ATTRIBUTES_COLUMN: dict(record.extension)}
        for record in records
    ]
