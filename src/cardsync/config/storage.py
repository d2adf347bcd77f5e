"""Source and destination store configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal

from .errors import MissingConfigurationError
from .postgrest import PostgrestConfig, get_postgrest_config

APP_DIR_NAME: Final[str] = "cardsync"
DEFAULT_CARDS_FILENAME: Final[str] = "cards.sqlite"
DEFAULT_PRICES_FILENAME: Final[str] = "prices.sqlite"


def sqlite_read_only_uri(path: Path) -> str:
    """Return a SQLAlchemy URI that opens ``path`` without write access."""

    return f"sqlite+pysqlite:///file:{path.expanduser().resolve()}?mode=ro&uri=true"


@dataclass(frozen=True, slots=True)
class SourceConfig:
    cards_path: Path
    prices_path: Path

    def cards_uri(self) -> str:
        return sqlite_read_only_uri(self.cards_path)

    def prices_uri(self) -> str:
        return sqlite_read_only_uri(self.prices_path)


@dataclass(frozen=True, slots=True)
class DestinationConfig:
    kind: Literal["database", "postgrest"]
    database_uri: str | None = None
    postgrest: PostgrestConfig | None = None


def _default_data_dir() -> Path:
    env_dir = os.getenv("CARDSYNC_DATA_DIR")
    if env_dir:
        return Path(env_dir).expanduser().resolve()
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_source_config() -> SourceConfig:
    data_dir = _default_data_dir()
    cards = os.getenv("CARDSYNC_CARDS_DB")
    prices = os.getenv("CARDSYNC_PRICES_DB")
    return SourceConfig(
        cards_path=Path(cards) if cards else data_dir / DEFAULT_CARDS_FILENAME,
        prices_path=Path(prices) if prices else data_dir / DEFAULT_PRICES_FILENAME,
    )


def get_destination_config() -> DestinationConfig:
    if os.getenv("SUPABASE_URL"):
        return DestinationConfig(kind="postgrest", postgrest=get_postgrest_config())
    env_uri = os.getenv("DATABASE_URI")
    if env_uri and env_uri.strip():
        return DestinationConfig(kind="database", database_uri=env_uri.strip())
    raise MissingConfigurationError(
        "Missing configuration for: DATABASE_URI (or SUPABASE_URL, SUPABASE_KEY)"
    )
