from __future__ import annotations

import argparse
import logging
import sys
import threading
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from cardsync.app import sync_cards, sync_price_history, upgrade_destination_schema
from cardsync.config import ConfigurationError, configure_logging
from cardsync.domain.errors import SourceReadError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from cardsync.domain.report import SyncReport

log = logging.getLogger(__name__)

_CANCEL_REQUESTED = threading.Event()


def _add_sync_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--lang",
        type=str,
        default=None,
        help="Only sync rows whose language matches this code (e.g. en, jp)",
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="Read and map everything but never write to the destination",
    )
    parser.add_argument(
        "--limit",
        type=int,
        help="Maximum number of source rows to read",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Number of records per upsert (defaults to config)",
    )
    parser.add_argument(
        "--retry-batches",
        type=str,
        help="Comma-separated batch indexes to write again, e.g. from a failed run",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise scraped card data")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    cards = subparsers.add_parser("cards", help="Sync card metadata")
    _add_sync_arguments(cards)

    prices = subparsers.add_parser("prices", help="Sync price history")
    _add_sync_arguments(prices)

    everything = subparsers.add_parser("all", help="Sync card metadata, then price history")
    _add_sync_arguments(everything)

    db = subparsers.add_parser("db", help="Destination schema commands")
    db_sub = db.add_subparsers(dest="db_command", required=True)
    db_sub.add_parser("upgrade", help="Apply destination schema migrations")

    return parser.parse_args(list(argv))


def _parse_batch_indexes(value: str | None) -> frozenset[int] | None:
    if value is None:
        return None
    indexes: set[int] = set()
    for part in value.split(","):
        stripped = part.strip()
        if not stripped:
            continue
        try:
            index = int(stripped)
        except ValueError as exc:
            raise ValueError(f"Invalid batch index: {stripped}") from exc
        if index < 0:
            raise ValueError(f"Batch indexes must be non-negative, got {index}")
        indexes.add(index)
    if not indexes:
        raise ValueError("--retry-batches needs at least one batch index")
    return frozenset(indexes)


def _log_report(report: SyncReport, command: str) -> None:
    log.info("Sync finished: %s", report.summary())
    for result in report.batches:
        if not result.succeeded:
            log.warning(
                "Batch %s (%s records) failed: %s",
                result.batch_index,
                result.record_count,
                result.reason,
            )
    if report.failed_batch_indexes:
        retry = ",".join(str(index) for index in report.failed_batch_indexes)
        log.warning("Retry failed batches with: cardsync %s --retry-batches %s", command, retry)
    if report.transform_errors:
        log.warning("%s record(s) could not be mapped", len(report.transform_errors))


def _run_sync(args: argparse.Namespace, only_batches: frozenset[int] | None) -> None:
    options = {
        "language": args.lang,
        "limit": args.limit,
        "batch_size": args.batch_size,
        "dry_run": args.dry_run,
        "cancel": _CANCEL_REQUESTED.is_set,
        "only_batches": only_batches,
    }
    if args.command in {"cards", "all"}:
        _log_report(sync_cards(**options), "cards")
    if args.command == "all" and _CANCEL_REQUESTED.is_set():
        log.warning("Skipping price history sync after cancellation")
        return
    if args.command in {"prices", "all"}:
        _log_report(sync_price_history(**options), "prices")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(verbose=parsed_args.verbose)
    try:
        only_batches = (
            _parse_batch_indexes(parsed_args.retry_batches)
            if parsed_args.command != "db"
            else None
        )
        if parsed_args.command != "db" and parsed_args.limit is not None and parsed_args.limit < 0:
            raise ValueError("--limit must be non-negative")  # noqa: TRY301
        if parsed_args.command == "all" and only_batches is not None:
            # card and price batch indexes are unrelated
            raise ValueError("--retry-batches applies to cards or prices, not all")  # noqa: TRY301
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "db" and parsed_args.db_command == "upgrade":
            upgrade_destination_schema()
        elif parsed_args.command in {"cards", "prices", "all"}:
            _run_sync(parsed_args, only_batches)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except (ConfigurationError, SourceReadError) as exc:
        log.error("Sync aborted: %s", exc)  # noqa: TRY400
        sys.exit(1)
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Finish the current batch on the first Ctrl+C, exit on the second."""
    if _CANCEL_REQUESTED.is_set():
        log.info("Closed by user (Ctrl+C)")
        sys.exit(0)
    log.info("Cancellation requested; stopping after the current batch (Ctrl+C again to quit)")
    _CANCEL_REQUESTED.set()


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
