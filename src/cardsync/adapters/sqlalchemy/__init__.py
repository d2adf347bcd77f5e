"""SQLAlchemy adapter package for cardsync."""

from __future__ import annotations

from .destination import SqlAlchemyDestinationWriter, build_upsert
from .schema import (
    card_attributes_table,
    card_price_table,
    card_table,
    metadata,
)
from .source import SqlAlchemySourceReader

__all__ = [
    "SqlAlchemyDestinationWriter",
    "SqlAlchemySourceReader",
    "build_upsert",
    "card_attributes_table",
    "card_price_table",
    "card_table",
    "metadata",
]
