"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from cardsync.adapters.postgrest import PostgrestDestinationWriter
from cardsync.adapters.sqlalchemy import SqlAlchemyDestinationWriter, SqlAlchemySourceReader
from cardsync.adapters.sqlalchemy.migrations import upgrade_head
from cardsync.config import (
    ConfigurationError,
    DestinationConfig,
    get_destination_config,
    get_source_config,
    get_sync_config,
)
from cardsync.domain.catalog import (
    CARD_ATTRIBUTES_TABLE,
    CARD_CONFLICT_KEY,
    CARD_FIELD_MAPPING,
    CARD_TABLE,
    PRICE_CONFLICT_KEY,
    PRICE_TABLE,
    CardKeyIndex,
    PriceHistoryTransform,
    card_key_query,
    card_query,
    price_query,
)
from cardsync.domain.synchronizer import BatchSynchronizer

if TYPE_CHECKING:
    from collections.abc import Collection

    from cardsync.domain.ports import DestinationWriter
    from cardsync.domain.report import SyncReport
    from cardsync.domain.synchronizer import CancelCheck, DestinationFactory, SourceFactory


log = getLogger(__name__)


def build_destination_factory(config: DestinationConfig | None = None) -> DestinationFactory:
    """Return a factory for the destination writer selected by configuration."""

    resolved = config or get_destination_config()
    if resolved.kind == "postgrest":
        postgrest = resolved.postgrest
        if postgrest is None:
            raise ConfigurationError("PostgREST destination selected without its configuration")
        return lambda: PostgrestDestinationWriter(config=postgrest)
    database_uri = resolved.database_uri
    if not database_uri:
        raise ConfigurationError("Database destination selected without a DATABASE_URI")
    return lambda: SqlAlchemyDestinationWriter(database_uri=database_uri)


def _cards_source_factory() -> SourceFactory:
    uri = get_source_config().cards_uri()
    return lambda: SqlAlchemySourceReader(database_uri=uri)


def _prices_source_factory() -> SourceFactory:
    uri = get_source_config().prices_uri()
    return lambda: SqlAlchemySourceReader(database_uri=uri)


def sync_cards(  # noqa: PLR0913
    *,
    language: str | None = None,
    limit: int | None = None,
    batch_size: int | None = None,
    dry_run: bool = False,
    source_factory: SourceFactory | None = None,
    destination_factory: DestinationFactory | None = None,
    cancel: CancelCheck | None = None,
    only_batches: Collection[int] | None = None,
) -> SyncReport:
    """Synchronise card metadata from the local card store."""

    effective_source = source_factory or _cards_source_factory()
    effective_destination = destination_factory or (
        _dry_run_destination if dry_run else build_destination_factory()
    )
    effective_batch_size = (
        batch_size if batch_size is not None else get_sync_config().card_batch_size
    )
    log.info(
        "Starting card sync: language=%s, limit=%s, batch_size=%s, dry_run=%s",
        language,
        limit,
        effective_batch_size,
        dry_run,
    )

    synchronizer = BatchSynchronizer(
        source_factory=effective_source,
        destination_factory=effective_destination,
    )
    synchronizer.configure(
        card_query(language=language, limit=limit),
        CARD_FIELD_MAPPING,
        CARD_TABLE,
        CARD_CONFLICT_KEY,
        batch_size=effective_batch_size,
        dry_run=dry_run,
        extension_table=CARD_ATTRIBUTES_TABLE,
    )
    return synchronizer.run(cancel=cancel, only_batches=only_batches)


def load_card_key_index(
    source_factory: SourceFactory,
    *,
    language: str | None = None,
) -> CardKeyIndex:
    """Read the internal-id → natural-key index from the card store."""

    with source_factory() as source:
        index = CardKeyIndex.from_records(source.fetch(card_key_query(language=language)))
    log.info("Loaded %s card key(s) for price matching", len(index))
    return index


def sync_price_history(  # noqa: PLR0913
    *,
    language: str | None = None,
    limit: int | None = None,
    batch_size: int | None = None,
    dry_run: bool = False,
    source_factory: SourceFactory | None = None,
    card_source_factory: SourceFactory | None = None,
    destination_factory: DestinationFactory | None = None,
    cancel: CancelCheck | None = None,
    only_batches: Collection[int] | None = None,
) -> SyncReport:
    """Synchronise price history, matched to cards by their natural key."""

    effective_source = source_factory or _prices_source_factory()
    effective_card_source = card_source_factory or _cards_source_factory()
    effective_destination = destination_factory or (
        _dry_run_destination if dry_run else build_destination_factory()
    )
    effective_batch_size = (
        batch_size if batch_size is not None else get_sync_config().price_batch_size
    )
    log.info(
        "Starting price sync: language=%s, limit=%s, batch_size=%s, dry_run=%s",
        language,
        limit,
        effective_batch_size,
        dry_run,
    )

    index = load_card_key_index(effective_card_source, language=language)
    synchronizer = BatchSynchronizer(
        source_factory=effective_source,
        destination_factory=effective_destination,
    )
    synchronizer.configure(
        price_query(language=language, limit=limit),
        PriceHistoryTransform(index),
        PRICE_TABLE,
        PRICE_CONFLICT_KEY,
        batch_size=effective_batch_size,
        dry_run=dry_run,
    )
    return synchronizer.run(cancel=cancel, only_batches=only_batches)


def upgrade_destination_schema(*, database_uri: str | None = None) -> None:
    """Create or migrate the catalog tables in a SQL destination."""

    uri = database_uri
    if uri is None:
        config = get_destination_config()
        if config.kind != "database" or not config.database_uri:
            raise ConfigurationError(
                "Schema migrations need DATABASE_URI; PostgREST schemas are managed remotely"
            )
        uri = config.database_uri
    log.info("Upgrading destination schema")
    upgrade_head(database_uri=uri)


def _dry_run_destination() -> DestinationWriter:
    raise ConfigurationError("Dry runs never open the destination")
