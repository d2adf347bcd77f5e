"""Read-only SQLAlchemy source reader for the scraper's SQLite stores."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import MetaData, Table, create_engine, select
from sqlalchemy.exc import SQLAlchemyError

from cardsync.domain.errors import ConfigurationError, SourceReadError
from cardsync.domain.records import SourceRecord

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine

    from cardsync.domain.ports.source import SourceQuery

log = getLogger(__name__)


class SqlAlchemySourceReader:
    """Scoped reader over a single source database.

    Engines passed in are borrowed; engines created from ``database_uri`` are
    disposed when the scope ends.
    """

    def __init__(self, *, engine: Engine | None = None, database_uri: str | None = None) -> None:
        if engine is None and database_uri is None:
            raise ConfigurationError("Source reader needs an engine or a database URI")
        self._engine = engine
        self._database_uri = database_uri
        self._owns_engine = engine is None
        self._connection: Connection | None = None

    def __enter__(self) -> SqlAlchemySourceReader:
        if self._engine is None:
            self._engine = create_engine(self._database_uri or "", future=True)
        try:
            self._connection = self._engine.connect()
        except SQLAlchemyError as exc:
            self._release_engine()
            raise SourceReadError(f"Cannot open source {self._describe()}: {exc}") from exc
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        self._release_engine()
        return False

    def fetch(self, query: SourceQuery) -> list[SourceRecord]:
        connection = self._connection
        if connection is None:
            raise SourceReadError("Source reader used outside of its scope")
        try:
            table = Table(query.table, MetaData(), autoload_with=connection)
            columns = [table.c[name] for name in query.columns] if query.columns else [table]
            stmt = select(*columns)
            for name, value in query.filters.items():
                stmt = stmt.where(table.c[name] == value)
            for name in query.order_by:
                stmt = stmt.order_by(table.c[name])
            if query.limit is not None:
                stmt = stmt.limit(query.limit)
            rows = connection.execute(stmt).mappings().all()
        except KeyError as exc:
            raise SourceReadError(f"Unknown column {exc} in source table {query.table!r}") from exc
        except SQLAlchemyError as exc:
            raise SourceReadError(f"Cannot query {query.table!r}: {exc}") from exc

        log.debug("Read %s row(s) from %s", len(rows), query.table)
        return [SourceRecord(row, index=position) for position, row in enumerate(rows)]

    def _release_engine(self) -> None:
        if self._owns_engine and self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def _describe(self) -> str:
        if self._engine is not None:
            return self._engine.url.render_as_string(hide_password=True)
        return self._database_uri or "<unknown>"


if TYPE_CHECKING:
    from cardsync.domain.ports.source import SourceReader

    _reader_check: SourceReader = SqlAlchemySourceReader(database_uri="sqlite://")
