from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002

from cardsync.adapters.sqlalchemy import SqlAlchemyDestinationWriter, SqlAlchemySourceReader
from cardsync.adapters.sqlalchemy.migrations import upgrade_head
from tests.helpers.stores import memory_engine, seed_card_store, seed_price_store

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "DATABASE_URI",
        "SUPABASE_URL",
        "SUPABASE_KEY",
        "CARDSYNC_CARDS_DB",
        "CARDSYNC_PRICES_DB",
        "CARDSYNC_DATA_DIR",
        "CARDSYNC_BATCH_SIZE",
        "CARDSYNC_PRICE_BATCH_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def card_store() -> Iterator[Engine]:
    engine = seed_card_store(memory_engine())
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def price_store() -> Iterator[Engine]:
    engine = seed_price_store(memory_engine())
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def destination_engine() -> Iterator[Engine]:
    engine = memory_engine()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def card_source_factory(card_store: Engine) -> Callable[[], SqlAlchemySourceReader]:
    return lambda: SqlAlchemySourceReader(engine=card_store)


@pytest.fixture
def price_source_factory(price_store: Engine) -> Callable[[], SqlAlchemySourceReader]:
    return lambda: SqlAlchemySourceReader(engine=price_store)


@pytest.fixture
def destination_factory(
    destination_engine: Engine,
) -> Callable[[], SqlAlchemyDestinationWriter]:
    return lambda: SqlAlchemyDestinationWriter(engine=destination_engine)
