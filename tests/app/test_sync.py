from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, func, inspect, select

from cardsync.adapters.postgrest import PostgrestDestinationWriter
from cardsync.adapters.sqlalchemy import (
    SqlAlchemyDestinationWriter,
    SqlAlchemySourceReader,
    card_attributes_table,
    card_price_table,
    card_table,
)
from cardsync.app import (
    build_destination_factory,
    load_card_key_index,
    sync_cards,
    sync_price_history,
    upgrade_destination_schema,
)
from cardsync.config import (
    ConfigurationError,
    DestinationConfig,
    MissingConfigurationError,
    build_postgrest_config,
)
from tests.helpers.stores import CARD_ROWS, memory_engine, seed_card_store

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from sqlalchemy import Table
    from sqlalchemy.engine import Engine

    type ReaderFactory = Callable[[], SqlAlchemySourceReader]
    type WriterFactory = Callable[[], SqlAlchemyDestinationWriter]


def _count(engine: Engine, table: Table) -> int:
    with engine.connect() as connection:
        return connection.execute(select(func.count()).select_from(table)).scalar_one()


def test_sync_cards_upserts_catalog_and_attributes(
    card_source_factory: ReaderFactory,
    destination_factory: WriterFactory,
    destination_engine: Engine,
) -> None:
    report = sync_cards(
        source_factory=card_source_factory,
        destination_factory=destination_factory,
    )

    assert report.ok
    assert report.succeeded == 5
    assert _count(destination_engine, card_table) == 5
    assert _count(destination_engine, card_attributes_table) == 5


def test_sync_cards_filters_by_language(
    card_source_factory: ReaderFactory,
    destination_factory: WriterFactory,
    destination_engine: Engine,
) -> None:
    report = sync_cards(
        language="jp",
        source_factory=card_source_factory,
        destination_factory=destination_factory,
    )

    assert report.records_read == 2
    with destination_engine.connect() as connection:
        languages = connection.execute(select(card_table.c.language).distinct()).scalars().all()
    assert languages == ["jp"]


def test_sync_cards_batch_size_from_environment(
    monkeypatch: pytest.MonkeyPatch,
    card_source_factory: ReaderFactory,
    destination_factory: WriterFactory,
) -> None:
    monkeypatch.setenv("CARDSYNC_BATCH_SIZE", "2")

    report = sync_cards(
        source_factory=card_source_factory,
        destination_factory=destination_factory,
    )

    assert [result.record_count for result in report.batches] == [2, 2, 1]


def test_dry_run_needs_no_destination_configuration(
    card_source_factory: ReaderFactory,
) -> None:
    report = sync_cards(dry_run=True, source_factory=card_source_factory)

    assert report.dry_run
    assert report.succeeded == 5
    assert all(result.simulated for result in report.batches)


def test_sync_without_destination_configuration_fails_fast(
    card_source_factory: ReaderFactory,
) -> None:
    with pytest.raises(MissingConfigurationError):
        sync_cards(source_factory=card_source_factory)


def test_sync_price_history_matches_cards_by_natural_key(
    card_source_factory: ReaderFactory,
    price_source_factory: ReaderFactory,
    destination_factory: WriterFactory,
    destination_engine: Engine,
) -> None:
    report = sync_price_history(
        source_factory=price_source_factory,
        card_source_factory=card_source_factory,
        destination_factory=destination_factory,
    )

    assert report.records_read == 5
    assert report.succeeded == 4
    assert [error.record_index for error in report.transform_errors] == [4]
    columns = card_price_table.c
    with destination_engine.connect() as connection:
        keys = connection.execute(
            select(columns.set_id, columns.local_id, columns.source).order_by(columns.id)
        ).all()
    assert [tuple(row) for row in keys] == [
        ("sv1", "001", "tcgplayer"),
        ("sv1", "001", "tcgplayer"),
        ("sv1", "002", "cardmarket"),
        ("sv1a", "001", "cardrush"),
    ]


def test_load_card_key_index(card_source_factory: ReaderFactory) -> None:
    index = load_card_key_index(card_source_factory, language="en")

    assert len(index) == 3
    assert index.resolve(2) == ("sv1", "002", "en")


def test_build_destination_factory_selects_writer() -> None:
    database = build_destination_factory(
        DestinationConfig(kind="database", database_uri="sqlite+pysqlite://")
    )
    postgrest = build_destination_factory(
        DestinationConfig(
            kind="postgrest",
            postgrest=build_postgrest_config("https://demo.supabase.co", "anon-key"),
        )
    )

    assert isinstance(database(), SqlAlchemyDestinationWriter)
    assert isinstance(postgrest(), PostgrestDestinationWriter)


def test_build_destination_factory_rejects_incomplete_config() -> None:
    with pytest.raises(ConfigurationError):
        build_destination_factory(DestinationConfig(kind="postgrest"))
    with pytest.raises(ConfigurationError):
        build_destination_factory(DestinationConfig(kind="database"))


def test_upgrade_destination_schema_uses_database_uri(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    uri = f"sqlite+pysqlite:///{tmp_path / 'catalog.sqlite'}"
    monkeypatch.setenv("DATABASE_URI", uri)

    upgrade_destination_schema()

    engine = create_engine(uri, future=True)
    try:
        assert "card_prices" in inspect(engine).get_table_names()
    finally:
        engine.dispose()


def test_upgrade_destination_schema_rejects_postgrest(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "anon-key")

    with pytest.raises(ConfigurationError, match="DATABASE_URI"):
        upgrade_destination_schema()


def test_sync_price_history_reports_cards_with_blank_language(
    price_source_factory: ReaderFactory,
    destination_factory: WriterFactory,
) -> None:
    card_store = seed_card_store(
        memory_engine(),
        [{**CARD_ROWS[0], "lang": "en"}, {**CARD_ROWS[1], "lang": " "}],
    )
    try:
        report = sync_price_history(
            source_factory=price_source_factory,
            card_source_factory=lambda: SqlAlchemySourceReader(engine=card_store),
            destination_factory=destination_factory,
        )
    finally:
        card_store.dispose()

    assert report.succeeded == 2
    assert [error.reason for error in report.transform_errors] == [
        "Unknown card id 2",
        "Unknown card id 4",
        "Unknown card id 999",
    ]
