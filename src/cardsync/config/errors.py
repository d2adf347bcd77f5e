"""Errors raised while resolving cardsync settings."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Invalid settings: a bad batch size, an empty conflict key, or a
    destination selected without its URL or key.

    Raised before any batch is written; the CLI exits with status 1.
    """


class MissingConfigurationError(ConfigurationError):
    """A required variable (``DATABASE_URI``, ``SUPABASE_URL``, ``SUPABASE_KEY``)
    is unset or blank in the environment or ``.env``."""
