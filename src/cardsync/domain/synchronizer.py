"""Batched upsert synchronizer driving read → transform → batch → write."""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .batching import deduplicate_last, partition
from .errors import BatchWriteError, ConfigurationError, TransformError
from .records import ConflictKey
from .report import SIMULATED_NOTE, BatchResult, SyncReport

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Sequence

    from .field_mapping import Transform
    from .ports import DestinationWriter, SourceQuery, SourceReader
    from .records import MappedRecord, SourceRecord

type SourceFactory = Callable[[], SourceReader]
type DestinationFactory = Callable[[], DestinationWriter]
type CancelCheck = Callable[[], bool]

DEFAULT_BATCH_SIZE = 100

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SyncPlan:
    """Validated parameters for a run."""

    source_query: SourceQuery
    transform: Transform
    destination_table: str
    conflict_key: ConflictKey
    batch_size: int = DEFAULT_BATCH_SIZE
    dry_run: bool = False
    extension_table: str | None = None


class BatchSynchronizer:
    """Move records from a read-only source to a destination in upsert batches.

    Source and destination are acquired from the factories at the start of each
    run and released when it ends, whatever the exit path. A run is strictly
    sequential: one batch write is in flight at a time.
    """

    def __init__(
        self,
        *,
        source_factory: SourceFactory,
        destination_factory: DestinationFactory,
    ) -> None:
        self._source_factory = source_factory
        self._destination_factory = destination_factory
        self._plan: SyncPlan | None = None

    @property
    def plan(self) -> SyncPlan | None:
        return self._plan

    def configure(  # noqa: PLR0913
        self,
        source_query: SourceQuery,
        transform: Transform,
        destination_table: str,
        conflict_key: ConflictKey | Sequence[str],
        batch_size: int = DEFAULT_BATCH_SIZE,
        dry_run: bool = False,  # noqa: FBT001, FBT002
        extension_table: str | None = None,
    ) -> SyncPlan:
        if isinstance(batch_size, bool) or batch_size <= 0:
            raise ConfigurationError(f"Batch size must be positive, got {batch_size}")
        if not destination_table or not destination_table.strip():
            raise ConfigurationError("Destination table must be named")
        key = (
            conflict_key
            if isinstance(conflict_key, ConflictKey)
            else ConflictKey(tuple(conflict_key))
        )
        self._plan = SyncPlan(
            source_query=source_query,
            transform=transform,
            destination_table=destination_table,
            conflict_key=key,
            batch_size=batch_size,
            dry_run=dry_run,
            extension_table=extension_table,
        )
        return self._plan

    def run(
        self,
        *,
        cancel: CancelCheck | None = None,
        only_batches: Collection[int] | None = None,
    ) -> SyncReport:
        """Execute the configured plan and return its report.

        ``cancel`` is polled before each batch; a truthy answer stops the run
        and marks the report cancelled. ``only_batches`` restricts writing to
        the given batch indexes, e.g. ``report.failed_batch_indexes``.
        """

        plan = self._plan
        if plan is None:
            raise ConfigurationError("Synchronizer must be configured before it runs")

        log.info(
            "Starting sync into %s: table=%s, batch_size=%s, dry_run=%s",
            plan.destination_table,
            plan.source_query.table,
            plan.batch_size,
            plan.dry_run,
        )

        with ExitStack() as stack:
            source = stack.enter_context(self._source_factory())
            source_records = source.fetch(plan.source_query)

            mapped, transform_errors = self._map_records(plan, source_records)
            batches = list(partition(mapped, plan.batch_size))

            writer: DestinationWriter | None = None
            results: list[BatchResult] = []
            cancelled = False
            skipped = 0
            for batch_index, batch in enumerate(batches):
                if only_batches is not None and batch_index not in only_batches:
                    continue
                if cancel is not None and cancel():
                    cancelled = True
                    skipped = sum(
                        1
                        for index in range(batch_index, len(batches))
                        if only_batches is None or index in only_batches
                    )
                    log.warning(
                        "Sync into %s cancelled before batch %s; %s batch(es) skipped",
                        plan.destination_table,
                        batch_index,
                        skipped,
                    )
                    break
                if writer is None and not plan.dry_run:
                    writer = stack.enter_context(self._destination_factory())
                results.append(self._write_batch(plan, writer, batch_index, batch))

        report = SyncReport(
            destination_table=plan.destination_table,
            batches=tuple(results),
            transform_errors=tuple(transform_errors),
            records_read=len(source_records),
            records_mapped=len(mapped),
            dry_run=plan.dry_run,
            cancelled=cancelled,
            skipped_batches=skipped,
        )
        log.info("Finished sync: %s", report.summary())
        return report

    @staticmethod
    def _map_records(
        plan: SyncPlan,
        records: Sequence[SourceRecord],
    ) -> tuple[list[MappedRecord], list[TransformError]]:
        mapped: list[MappedRecord] = []
        errors: list[TransformError] = []
        for position, record in enumerate(records):
            try:
                result = plan.transform(record)
            except TransformError as exc:
                errors.append(exc.at(position))
                log.warning("Skipping record %s: %s", position, exc.reason)
                continue
            except Exception as exc:  # noqa: BLE001
                errors.append(TransformError(f"{type(exc).__name__}: {exc}", record_index=position))
                log.warning("Skipping record %s: transform raised %r", position, exc)
                continue
            missing = plan.conflict_key.missing_fields(result)
            if missing:
                errors.append(
                    TransformError(f"Empty conflict key field(s): {missing}", record_index=position)
                )
                log.warning("Skipping record %s: empty conflict key %s", position, missing)
                continue
            if result.source_index is None:
                result.source_index = position
            mapped.append(result)
        return mapped, errors

    @staticmethod
    def _write_batch(
        plan: SyncPlan,
        writer: DestinationWriter | None,
        batch_index: int,
        batch: Sequence[MappedRecord],
    ) -> BatchResult:
        unique = deduplicate_last(batch, plan.conflict_key)
        dropped = len(batch) - len(unique)
        if dropped:
            log.debug("Batch %s: dropped %s duplicate key(s)", batch_index, dropped)

        if writer is None:
            return BatchResult.success(
                batch_index,
                len(unique),
                note=SIMULATED_NOTE,
                duplicates_dropped=dropped,
            )

        try:
            writer.upsert(
                plan.destination_table,
                unique,
                plan.conflict_key,
                extension_table=plan.extension_table,
            )
        except BatchWriteError as exc:
            log.error(  # noqa: TRY400
                "Batch %s into %s failed: %s", batch_index, plan.destination_table, exc
            )
            return BatchResult.failure(
                batch_index,
                len(unique),
                str(exc),
                duplicates_dropped=dropped,
            )
        log.debug("Batch %s: upserted %s record(s)", batch_index, len(unique))
        return BatchResult.success(batch_index, len(unique), duplicates_dropped=dropped)
