"""Domain port definitions for adapters."""

from __future__ import annotations

from .destination import DestinationWriter
from .source import SourceQuery, SourceReader

__all__ = [
    "DestinationWriter",
    "SourceQuery",
    "SourceReader",
]
