"""Sync definitions for the scraper's card and price-history stores."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from .errors import TransformError
from .field_mapping import (
    FieldMapping,
    FieldRule,
    UnmappedPolicy,
    image_descriptor,
    normalize_language,
    optional_float,
    optional_int,
    parse_date,
    parse_timestamp,
)
from .ports.source import SourceQuery
from .records import ConflictKey, MappedRecord

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .records import SourceRecord

log = getLogger(__name__)

CARD_SOURCE_TABLE: Final[str] = "cards"
PRICE_SOURCE_TABLE: Final[str] = "price_history"
LANGUAGE_COLUMN: Final[str] = "lang"

CARD_TABLE: Final[str] = "cards"
CARD_ATTRIBUTES_TABLE: Final[str] = "card_attributes"
PRICE_TABLE: Final[str] = "card_prices"

CARD_CONFLICT_KEY: Final[ConflictKey] = ConflictKey.of("set_id", "local_id", "language")
PRICE_CONFLICT_KEY: Final[ConflictKey] = ConflictKey.of(
    "set_id", "local_id", "language", "source", "recorded_on"
)

CARD_FIELD_MAPPING: Final[FieldMapping] = FieldMapping(
    rules=(
        FieldRule("expansion_id", "set_id", convert=str, required=True),
        FieldRule("number", "local_id", convert=str, required=True),
        FieldRule("lang", "language", convert=normalize_language, required=True),
        FieldRule("name", "name", required=True),
        FieldRule("category", "category"),
        FieldRule("rarity", "rarity"),
        FieldRule("illustrator", "illustrator"),
        FieldRule("hp", "hp", convert=optional_int),
        FieldRule("image_url", "image", convert=image_descriptor),
        FieldRule("updated_at", "updated_at", convert=parse_timestamp),
    ),
    unmapped=UnmappedPolicy.EXTENSION,
    ignore=frozenset({"id"}),
)

PRICE_FIELD_MAPPING: Final[FieldMapping] = FieldMapping(
    rules=(
        FieldRule("source", "source", convert=str, required=True),
        FieldRule("date", "recorded_on", convert=parse_date, required=True),
        FieldRule("currency", "currency"),
        FieldRule("low", "low", convert=optional_float),
        FieldRule("mid", "mid", convert=optional_float),
        FieldRule("high", "high", convert=optional_float),
        FieldRule("market", "market", convert=optional_float),
    ),
    unmapped=UnmappedPolicy.DROP,
)


def card_query(*, language: str | None = None, limit: int | None = None) -> SourceQuery:
    query = SourceQuery(table=CARD_SOURCE_TABLE, order_by=("id",), limit=limit)
    if language:
        query = query.with_filter(LANGUAGE_COLUMN, language)
    return query


def card_key_query(*, language: str | None = None) -> SourceQuery:
    query = SourceQuery(
        table=CARD_SOURCE_TABLE,
        columns=("id", "expansion_id", "number", LANGUAGE_COLUMN),
        order_by=("id",),
    )
    if language:
        query = query.with_filter(LANGUAGE_COLUMN, language)
    return query


def price_query(*, language: str | None = None, limit: int | None = None) -> SourceQuery:
    query = SourceQuery(table=PRICE_SOURCE_TABLE, order_by=("id",), limit=limit)
    if language:
        query = query.with_filter(LANGUAGE_COLUMN, language)
    return query


@dataclass(slots=True)
class CardKeyIndex:
    """Resolve the scraper's internal card ids to ``(set_id, local_id, language)``.

    The local stores assign numeric ids independently of the hosted catalog,
    so price rows are matched on the composite natural key instead.
    """

    keys: dict[object, tuple[str, str, str]] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: Iterable[SourceRecord]) -> CardKeyIndex:
        index = cls()
        for record in records:
            card_id = record.get("id")
            expansion = record.get("expansion_id")
            number = record.get("number")
            language = record.get(LANGUAGE_COLUMN)
            if card_id is None or expansion is None or number is None or language is None:
                continue
            try:
                normalized = normalize_language(language)
            except ValueError:
                log.warning("Skipping card %r with invalid language %r", card_id, language)
                continue
            index.keys[card_id] = (str(expansion), str(number), normalized)
        return index

    def __len__(self) -> int:
        return len(self.keys)

    def resolve(self, card_id: object) -> tuple[str, str, str]:
        try:
            return self.keys[card_id]
        except KeyError:
            raise TransformError(f"Unknown card id {card_id!r}") from None


@dataclass(frozen=True, slots=True)
class PriceHistoryTransform:
    """Map a price-history row onto the card's natural key."""

    index: CardKeyIndex
    mapping: FieldMapping = PRICE_FIELD_MAPPING

    def __call__(self, record: SourceRecord) -> MappedRecord:
        set_id, local_id, language = self.index.resolve(record.get("card_id"))
        mapped = self.mapping(record)
        return MappedRecord(
            values={"set_id": set_id, "local_id": local_id, "language": language, **mapped.values},
            extension=mapped.extension,
            source_index=mapped.source_index,
        )
