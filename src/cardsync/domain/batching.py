"""Ordered batch partitioning and in-batch deduplication."""

from __future__ import annotations

from itertools import islice
from typing import TYPE_CHECKING

from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from .records import ConflictKey, MappedRecord


def partition[T](items: Iterable[T], size: int) -> Iterator[tuple[T, ...]]:
    """Yield consecutive tuples of at most ``size`` items, preserving order."""

    if size <= 0:
        raise ConfigurationError(f"Batch size must be positive, got {size}")
    iterator = iter(items)
    while chunk := tuple(islice(iterator, size)):
        yield chunk


def deduplicate_last(
    records: Iterable[MappedRecord],
    conflict_key: ConflictKey,
) -> list[MappedRecord]:
    """Keep the last record for each conflict key value.

    The result is ordered by the position of each surviving (last) occurrence.
    """

    latest: dict[tuple[object, ...], MappedRecord] = {}
    for record in records:
        key = conflict_key.value_of(record)
        latest.pop(key, None)
        latest[key] = record
    return list(latest.values())
