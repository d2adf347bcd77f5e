"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_positive_int, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .postgrest import PostgrestConfig, build_postgrest_config, get_postgrest_config
from .storage import (
    DestinationConfig,
    SourceConfig,
    get_destination_config,
    get_source_config,
    sqlite_read_only_uri,
)
from .sync import SyncConfig, get_sync_config

__all__ = [
    "ConfigurationError",
    "DestinationConfig",
    "MissingConfigurationError",
    "PostgrestConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "SourceConfig",
    "SyncConfig",
    "build_postgrest_config",
    "configure_logging",
    "get_destination_config",
    "get_postgrest_config",
    "get_source_config",
    "get_sync_config",
    "optional_positive_int",
    "require_env_vars",
    "sqlite_read_only_uri",
]
