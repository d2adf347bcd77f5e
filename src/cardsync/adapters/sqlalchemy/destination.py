"""SQL ``INSERT ... ON CONFLICT`` destination writer."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import MetaData, Table, create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from cardsync.adapters.sqlalchemy.schema import metadata as catalog_metadata
from cardsync.domain.errors import BatchWriteError, ConfigurationError
from cardsync.domain.records import extension_rows

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine
    from sqlalchemy.sql.dml import Insert

    from cardsync.domain.records import ConflictKey, MappedRecord

log = getLogger(__name__)


def _uniform_rows(rows: Sequence[Mapping[str, object]]) -> list[dict[str, object]]:
    """Give every row the same columns; multi-row VALUES needs uniform keys."""

    columns: dict[str, None] = {}
    for row in rows:
        columns.update(dict.fromkeys(row))
    return [{column: row.get(column) for column in columns} for row in rows]


def build_upsert(
    dialect_name: str,
    table: Table,
    rows: Sequence[Mapping[str, object]],
    conflict_key: ConflictKey,
) -> Insert:
    """Build a dialect-specific upsert of ``rows`` keyed on ``conflict_key``."""

    values = _uniform_rows(rows)
    if dialect_name == "postgresql":
        insert_stmt = postgresql.insert(table).values(values)
    elif dialect_name == "sqlite":
        insert_stmt = sqlite.insert(table).values(values)
    else:
        raise BatchWriteError(f"Upsert is not supported for dialect {dialect_name!r}")

    index_elements = list(conflict_key)
    updates = conflict_key.split(values[0])
    if not updates:
        return insert_stmt.on_conflict_do_nothing(index_elements=index_elements)
    return insert_stmt.on_conflict_do_update(
        index_elements=index_elements,
        set_={column: insert_stmt.excluded[column] for column in updates},
    )


class SqlAlchemyDestinationWriter:
    """Upsert batches into a relational store, one transaction per batch."""

    def __init__(
        self,
        *,
        engine: Engine | None = None,
        database_uri: str | None = None,
        metadata: MetaData = catalog_metadata,
    ) -> None:
        if engine is None and database_uri is None:
            raise ConfigurationError("Destination writer needs an engine or a database URI")
        self._engine = engine
        self._database_uri = database_uri
        self._owns_engine = engine is None
        self._metadata = metadata
        self._reflected = MetaData()

    def __enter__(self) -> SqlAlchemyDestinationWriter:
        if self._engine is None:
            self._engine = create_engine(self._database_uri or "", future=True)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if self._owns_engine and self._engine is not None:
            self._engine.dispose()
            self._engine = None
        return False

    def upsert(
        self,
        table: str,
        records: Sequence[MappedRecord],
        conflict_key: ConflictKey,
        *,
        extension_table: str | None = None,
    ) -> None:
        if not records:
            return
        engine = self._engine
        if engine is None:
            raise BatchWriteError("Destination writer used outside of its scope")

        extensions = extension_rows(records, conflict_key) if extension_table else []
        try:
            with engine.begin() as connection:
                dialect_name = connection.dialect.name
                target = self._resolve_table(connection, table)
                connection.execute(
                    build_upsert(
                        dialect_name,
                        target,
                        [record.values for record in records],
                        conflict_key,
                    )
                )
                if extension_table and extensions:
                    extension_target = self._resolve_table(connection, extension_table)
                    connection.execute(
                        build_upsert(dialect_name, extension_target, extensions, conflict_key)
                    )
        except SQLAlchemyError as exc:
            raise BatchWriteError(f"{type(exc).__name__}: {exc}") from exc

        log.debug(
            "Upserted %s row(s) into %s (%s extension row(s))",
            len(records),
            table,
            len(extensions),
        )

    def _resolve_table(self, connection: Connection, name: str) -> Table:
        known = self._metadata.tables.get(name)
        if known is not None:
            return known
        reflected = self._reflected.tables.get(name)
        if reflected is not None:
            return reflected
        return Table(name, self._reflected, autoload_with=connection)


if TYPE_CHECKING:
    from cardsync.domain.ports.destination import DestinationWriter

    _writer_check: DestinationWriter = SqlAlchemyDestinationWriter(database_uri="sqlite://")
