"""SQLAlchemy table metadata for the hosted card catalog."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Dialect,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
)

from cardsync.domain.catalog import CARD_ATTRIBUTES_TABLE, CARD_TABLE, PRICE_TABLE
from cardsync.domain.records import EXTENSION_ATTRIBUTES_COLUMN

metadata = MetaData()


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


card_table = Table(
    CARD_TABLE,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("set_id", String(32), nullable=False),
    Column("local_id", String(32), nullable=False),
    Column("language", String(8), nullable=False),
    Column("name", String(255), nullable=False),
    Column("category", String(32)),
    Column("rarity", String(64)),
    Column("illustrator", String(255)),
    Column("hp", Integer),
    Column("image", Text),
    Column("updated_at", UTCDateTime()),
    UniqueConstraint("set_id", "local_id", "language", name="uq_cards_natural_key"),
)

card_attributes_table = Table(
    CARD_ATTRIBUTES_TABLE,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("set_id", String(32), nullable=False),
    Column("local_id", String(32), nullable=False),
    Column("language", String(8), nullable=False),
    Column(EXTENSION_ATTRIBUTES_COLUMN, JSON, nullable=False),
    UniqueConstraint("set_id", "local_id", "language", name="uq_card_attributes_natural_key"),
)

card_price_table = Table(
    PRICE_TABLE,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("set_id", String(32), nullable=False),
    Column("local_id", String(32), nullable=False),
    Column("language", String(8), nullable=False),
    Column("source", String(64), nullable=False),
    Column("recorded_on", Date, nullable=False),
    Column("currency", String(8)),
    Column("low", Float),
    Column("mid", Float),
    Column("high", Float),
    Column("market", Float),
    UniqueConstraint(
        "set_id",
        "local_id",
        "language",
        "source",
        "recorded_on",
        name="uq_card_prices_natural_key",
    ),
)
