"""Public interface for the PostgREST destination adapter."""

from __future__ import annotations

from .schema import PostgrestErrorPayload
from .writer import UPSERT_PREFER_HEADER, PostgrestDestinationWriter

__all__ = [
    "UPSERT_PREFER_HEADER",
    "PostgrestDestinationWriter",
    "PostgrestErrorPayload",
]
