"""Destination writer for hosted PostgREST endpoints (e.g. Supabase)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final, Literal

import httpx
from pydantic import ValidationError

from cardsync.adapters.http_resilience import ResilientClient
from cardsync.config.postgrest import PostgrestConfig, get_postgrest_config
from cardsync.domain.errors import BatchWriteError
from cardsync.domain.records import extension_rows

from .schema import PostgrestErrorPayload

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from types import TracebackType

    from cardsync.config.http_resilience import ResilienceConfig
    from cardsync.domain.records import ConflictKey, MappedRecord

log = getLogger(__name__)

UPSERT_PREFER_HEADER: Final[str] = "resolution=merge-duplicates,return=minimal"


def _json_default(value: object) -> str:
    if isinstance(value, datetime | date):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _encode_rows(rows: Sequence[Mapping[str, object]]) -> bytes:
    # PostgREST bulk inserts require every object to carry the same keys
    columns: dict[str, None] = {}
    for row in rows:
        columns.update(dict.fromkeys(row))
    uniform = [{column: row.get(column) for column in columns} for row in rows]
    return json.dumps(uniform, default=_json_default, separators=(",", ":")).encode("utf-8")


def _describe_failure(response: httpx.Response) -> str:
    try:
        payload = PostgrestErrorPayload.model_validate(response.json())
    except (ValueError, ValidationError):
        body = response.text.strip()
        return f"HTTP {response.status_code}: {body[:200] or response.reason_phrase}"
    return f"HTTP {response.status_code}: {payload.describe()}"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class PostgrestDestinationWriter:
    """Upsert batches with ``POST /<table>?on_conflict=<key>``.

    The main rows and the extension rows are sent as two requests, so a batch
    with extension attributes is not atomic across both tables.
    """

    config: PostgrestConfig = field(default_factory=get_postgrest_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    def __enter__(self) -> PostgrestDestinationWriter:
        self._client = self.client_factory(self.config.resilience)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if self._client is not None:
            self._client.close()
            self._client = None
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
        self._post(table, [record.values for record in records], conflict_key)

        if extension_table:
            extensions = extension_rows(records, conflict_key)
            if extensions:
                self._post(extension_table, extensions, conflict_key)

    def _post(
        self,
        table: str,
        rows: Sequence[Mapping[str, object]],
        conflict_key: ConflictKey,
    ) -> None:
        client = self._client
        if client is None:
            raise BatchWriteError("Destination writer used outside of its scope")
        try:
            content = _encode_rows(rows)
        except TypeError as exc:
            raise BatchWriteError(f"Cannot encode rows for {table!r}: {exc}") from exc

        url = f"{self.config.base_url}/{table}"
        try:
            response = client.post(
                url,
                content=content,
                params={"on_conflict": ",".join(conflict_key)},
                headers={
                    "Content-Type": "application/json",
                    "Prefer": UPSERT_PREFER_HEADER,
                },
            )
        except httpx.TimeoutException as exc:
            raise BatchWriteError(f"Timed out upserting into {table!r}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise BatchWriteError(f"Request to {table!r} failed: {exc}") from exc

        if response.is_error:
            reason = _describe_failure(response)
            log.debug("PostgREST rejected upsert into %s: %s", table, reason)
            raise BatchWriteError(reason)
        log.debug("Upserted %s row(s) into %s", len(rows), table)


if TYPE_CHECKING:
    from cardsync.config.postgrest import build_postgrest_config
    from cardsync.domain.ports.destination import DestinationWriter

    _writer_check: DestinationWriter = PostgrestDestinationWriter(
        config=build_postgrest_config("https://example.supabase.co", "key")
    )
