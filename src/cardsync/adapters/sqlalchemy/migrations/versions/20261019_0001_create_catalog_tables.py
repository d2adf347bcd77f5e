"""Create card catalog tables.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from cardsync.adapters.sqlalchemy.schema import UTCDateTime

revision: str = "20261019_0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _natural_key_columns() -> list[sa.Column[str]]:
    return [
        sa.Column("set_id", sa.String(32), nullable=False),
        sa.Column("local_id", sa.String(32), nullable=False),
        sa.Column("language", sa.String(8), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "cards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_natural_key_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(32)),
        sa.Column("rarity", sa.String(64)),
        sa.Column("illustrator", sa.String(255)),
        sa.Column("hp", sa.Integer()),
        sa.Column("image", sa.Text()),
        sa.Column("updated_at", UTCDateTime()),
        sa.UniqueConstraint("set_id", "local_id", "language", name="uq_cards_natural_key"),
    )
    op.create_table(
        "card_attributes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_natural_key_columns(),
        sa.Column("attributes", sa.JSON(), nullable=False),
        sa.UniqueConstraint(
            "set_id", "local_id", "language", name="uq_card_attributes_natural_key"
        ),
    )
    op.create_table(
        "card_prices",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_natural_key_columns(),
        sa.Column("source", sa.String(64), nullable=False),
        sa.Column("recorded_on", sa.Date(), nullable=False),
        sa.Column("currency", sa.String(8)),
        sa.Column("low", sa.Float()),
        sa.Column("mid", sa.Float()),
        sa.Column("high", sa.Float()),
        sa.Column("market", sa.Float()),
        sa.UniqueConstraint(
            "set_id",
            "local_id",
            "language",
            "source",
            "recorded_on",
            name="uq_card_prices_natural_key",
        ),
    )
    op.create_index("ix_card_prices_recorded_on", "card_prices", ["recorded_on"])


def downgrade() -> None:
    op.drop_index("ix_card_prices_recorded_on", table_name="card_prices")
    op.drop_table("card_prices")
    op.drop_table("card_attributes")
    op.drop_table("cards")
