"""Synchronization defaults for the card and price runs."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_positive_int

DEFAULT_CARD_BATCH_SIZE = 100
DEFAULT_PRICE_BATCH_SIZE = 500


@dataclass(frozen=True, slots=True)
class SyncConfig:
    card_batch_size: int = DEFAULT_CARD_BATCH_SIZE
    price_batch_size: int = DEFAULT_PRICE_BATCH_SIZE


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        card_batch_size=optional_positive_int("CARDSYNC_BATCH_SIZE", DEFAULT_CARD_BATCH_SIZE),
        price_batch_size=optional_positive_int(
            "CARDSYNC_PRICE_BATCH_SIZE", DEFAULT_PRICE_BATCH_SIZE
        ),
    )
