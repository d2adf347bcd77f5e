"""Logging setup for cardsync entry points."""

from __future__ import annotations

import logging
from typing import Final

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT: Final[str] = "%H:%M:%S"

# these log one line per HTTP request or migration step at INFO
NOISY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore", "alembic.runtime.migration")


def configure_logging(*, verbose: bool = False, force: bool = False) -> None:
    """Configure the root logger for a CLI run.

    ``verbose`` switches cardsync to DEBUG and lets library loggers through as
    well; otherwise they are held at WARNING so batch progress stays readable.
    """

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=force,
    )
    library_level = logging.DEBUG if verbose else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
