from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cardsync.domain.errors import ConfigurationError, SourceReadError, TransformError
from cardsync.domain.ports import SourceQuery
from cardsync.domain.records import MappedRecord, SourceRecord
from cardsync.domain.synchronizer import BatchSynchronizer
from tests.helpers.records import (
    KEY,
    FakeDestinationWriter,
    FakeSourceReader,
    make_source_records,
    rename_transform,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from cardsync.domain.field_mapping import Transform
    from cardsync.domain.ports import DestinationWriter

QUERY = SourceQuery(table="items")


def _synchronizer(
    source: FakeSourceReader,
    destination_factory: Callable[[], DestinationWriter],
    *,
    transform: Transform = rename_transform,
    batch_size: int = 100,
    dry_run: bool = False,
) -> BatchSynchronizer:
    synchronizer = BatchSynchronizer(
        source_factory=lambda: source,
        destination_factory=destination_factory,
    )
    synchronizer.configure(QUERY, transform, "items", KEY, batch_size=batch_size, dry_run=dry_run)
    return synchronizer


def test_run_writes_every_record_in_ordered_batches() -> None:
    source = FakeSourceReader(make_source_records(250))
    writer = FakeDestinationWriter()

    report = _synchronizer(source, lambda: writer).run()

    assert [result.record_count for result in report.batches] == [100, 100, 50]
    assert [result.batch_index for result in report.batches] == [0, 1, 2]
    assert report.records_read == 250
    assert report.attempted == report.succeeded == 250
    assert report.failed == 0
    assert report.ok
    assert len(writer.rows("items")) == 250
    assert source.queries == [QUERY]
    assert (source.entered, source.exited) == (1, 1)
    assert (writer.entered, writer.exited) == (1, 1)


def test_rerun_is_idempotent() -> None:
    source = FakeSourceReader(make_source_records(30))
    writer = FakeDestinationWriter()
    synchronizer = _synchronizer(source, lambda: writer, batch_size=7)

    first = synchronizer.run()
    snapshot = writer.rows("items")
    second = synchronizer.run()

    assert first.succeeded == second.succeeded == 30
    assert writer.rows("items") == snapshot


def test_transform_failure_skips_only_that_record() -> None:
    def transform(record: SourceRecord) -> MappedRecord:
        if record["code"] == "C0003":
            raise TransformError("bad row")
        return rename_transform(record)

    writer = FakeDestinationWriter()
    report = _synchronizer(
        FakeSourceReader(make_source_records(10)),
        lambda: writer,
        transform=transform,
        batch_size=4,
    ).run()

    assert [result.record_count for result in report.batches] == [4, 4, 1]
    assert report.records_mapped == 9
    assert [(error.record_index, error.reason) for error in report.transform_errors] == [
        (3, "bad row")
    ]
    assert not report.ok
    assert ("C0003",) not in writer.tables["items"]


def test_unexpected_transform_exception_is_captured() -> None:
    def transform(record: SourceRecord) -> MappedRecord:
        if record.index == 1:
            raise KeyError("label")
        return rename_transform(record)

    report = _synchronizer(
        FakeSourceReader(make_source_records(3)),
        FakeDestinationWriter,
        transform=transform,
    ).run()

    assert report.records_mapped == 2
    assert len(report.transform_errors) == 1
    error = report.transform_errors[0]
    assert error.record_index == 1
    assert error.reason.startswith("KeyError")


def test_blank_conflict_key_is_rejected_per_record() -> None:
    records = [
        SourceRecord({"code": "A", "label": "ok"}, index=0),
        SourceRecord({"code": " ", "label": "blank"}, index=1),
        SourceRecord({"code": None, "label": "missing"}, index=2),
    ]
    writer = FakeDestinationWriter()

    report = _synchronizer(FakeSourceReader(records), lambda: writer).run()

    assert report.records_mapped == 1
    assert [error.record_index for error in report.transform_errors] == [1, 2]
    assert all("Empty conflict key" in error.reason for error in report.transform_errors)
    assert writer.rows("items") == [{"key": "A", "title": "ok"}]


def test_failed_batch_does_not_stop_later_batches() -> None:
    writer = FakeDestinationWriter(fail_on_calls={1})

    report = _synchronizer(
        FakeSourceReader(make_source_records(50)),
        lambda: writer,
        batch_size=10,
    ).run()

    assert [result.succeeded for result in report.batches] == [True, False, True, True, True]
    assert report.failed_batch_indexes == (1,)
    assert report.succeeded == 40
    assert report.failed == 10
    assert "simulated outage" in (report.batches[1].reason or "")
    assert len(writer.calls) == 5
    assert len(writer.rows("items")) == 40


def test_retry_only_failed_batches() -> None:
    writer = FakeDestinationWriter(fail_on_calls={1})
    synchronizer = _synchronizer(
        FakeSourceReader(make_source_records(50)),
        lambda: writer,
        batch_size=10,
    )
    first = synchronizer.run()
    writer.fail_on_calls.clear()

    retry = synchronizer.run(only_batches=first.failed_batch_indexes)

    assert [result.batch_index for result in retry.batches] == [1]
    assert retry.ok
    assert len(writer.calls) == 6
    assert len(writer.rows("items")) == 50


def test_dry_run_never_acquires_destination() -> None:
    acquired: list[FakeDestinationWriter] = []

    def factory() -> FakeDestinationWriter:
        writer = FakeDestinationWriter()
        acquired.append(writer)
        return writer

    report = _synchronizer(
        FakeSourceReader(make_source_records(25)),
        factory,
        batch_size=10,
        dry_run=True,
    ).run()

    assert acquired == []
    assert report.dry_run
    assert [result.record_count for result in report.batches] == [10, 10, 5]
    assert all(result.succeeded and result.simulated for result in report.batches)
    assert "(dry run)" in report.summary()


def test_empty_source_never_acquires_destination() -> None:
    acquired: list[FakeDestinationWriter] = []

    def factory() -> FakeDestinationWriter:
        writer = FakeDestinationWriter()
        acquired.append(writer)
        return writer

    report = _synchronizer(FakeSourceReader([]), factory).run()

    assert report.batches == ()
    assert report.ok
    assert acquired == []


def test_duplicate_keys_in_batch_keep_last_record() -> None:
    records = [
        SourceRecord({"code": "A", "label": "first"}, index=0),
        SourceRecord({"code": "B", "label": "other"}, index=1),
        SourceRecord({"code": "A", "label": "second"}, index=2),
    ]
    writer = FakeDestinationWriter()

    report = _synchronizer(FakeSourceReader(records), lambda: writer).run()

    assert report.batches[0].record_count == 2
    assert report.batches[0].duplicates_dropped == 1
    written = writer.calls[0][1]
    assert [record.values["title"] for record in written] == ["other", "second"]
    assert writer.tables["items"][("A",)]["title"] == "second"


def test_duplicates_across_batches_resolve_to_later_batch() -> None:
    records = [
        SourceRecord({"code": "A", "label": "first"}, index=0),
        SourceRecord({"code": "A", "label": "second"}, index=1),
    ]
    writer = FakeDestinationWriter()

    report = _synchronizer(FakeSourceReader(records), lambda: writer, batch_size=1).run()

    assert len(report.batches) == 2
    assert writer.rows("items") == [{"key": "A", "title": "second"}]


def test_source_read_error_aborts_and_releases_source() -> None:
    source = FakeSourceReader(fail_with="database is locked")
    acquired: list[FakeDestinationWriter] = []

    def factory() -> FakeDestinationWriter:
        writer = FakeDestinationWriter()
        acquired.append(writer)
        return writer

    with pytest.raises(SourceReadError, match="locked"):
        _synchronizer(source, factory).run()

    assert source.exited == 1
    assert acquired == []


def test_unexpected_writer_error_propagates_and_releases_resources() -> None:
    class BrokenWriter(FakeDestinationWriter):
        def upsert(self, *args: object, **kwargs: object) -> None:
            raise RuntimeError("driver crashed")

    source = FakeSourceReader(make_source_records(5))
    writer = BrokenWriter()

    with pytest.raises(RuntimeError, match="driver crashed"):
        _synchronizer(source, lambda: writer).run()

    assert source.exited == 1
    assert writer.exited == 1


def test_cancellation_stops_before_next_batch() -> None:
    checks: list[int] = []

    def cancel() -> bool:
        checks.append(len(checks))
        return len(checks) > 2

    writer = FakeDestinationWriter()
    report = _synchronizer(
        FakeSourceReader(make_source_records(50)),
        lambda: writer,
        batch_size=10,
    ).run(cancel=cancel)

    assert report.cancelled
    assert [result.batch_index for result in report.batches] == [0, 1]
    assert report.skipped_batches == 3
    assert len(writer.rows("items")) == 20
    assert writer.exited == 1
    assert report.summary().endswith("cancelled")


def test_extension_table_is_passed_to_writer() -> None:
    writer = FakeDestinationWriter()
    synchronizer = BatchSynchronizer(
        source_factory=lambda: FakeSourceReader(make_source_records(2)),
        destination_factory=lambda: writer,
    )
    synchronizer.configure(QUERY, rename_transform, "items", ["key"], extension_table="extras")

    synchronizer.run()

    assert writer.calls[0][2] == "extras"


def test_run_requires_configuration() -> None:
    synchronizer = BatchSynchronizer(
        source_factory=FakeSourceReader,
        destination_factory=FakeDestinationWriter,
    )

    assert synchronizer.plan is None
    with pytest.raises(ConfigurationError):
        synchronizer.run()


@pytest.mark.parametrize(
    ("table", "key", "batch_size"),
    [
        ("items", ("key",), 0),
        ("items", ("key",), -1),
        ("items", ("key",), True),
        ("", ("key",), 10),
        ("   ", ("key",), 10),
        ("items", (), 10),
        ("items", ("key", ""), 10),
    ],
)
def test_configure_rejects_invalid_plans(
    table: str,
    key: tuple[str, ...],
    batch_size: int,
) -> None:
    synchronizer = BatchSynchronizer(
        source_factory=FakeSourceReader,
        destination_factory=FakeDestinationWriter,
    )

    with pytest.raises(ConfigurationError):
        synchronizer.configure(QUERY, rename_transform, table, key, batch_size=batch_size)
    assert synchronizer.plan is None
