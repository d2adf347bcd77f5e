"""Declarative source → destination field mappings."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from .errors import ConfigurationError, TransformError
from .records import MappedRecord

if TYPE_CHECKING:
    from .records import SourceRecord

type Converter = Callable[[object], object]
type Transform = Callable[[SourceRecord], MappedRecord]

IMAGE_EXTENSIONS: Final[tuple[str, ...]] = (".png", ".jpg", ".jpeg", ".webp", ".gif")
IMAGE_RESOLUTIONS: Final[tuple[tuple[str, int], ...]] = (("low", 245), ("high", 600))


class UnmappedPolicy(StrEnum):
    DROP = "drop"
    EXTENSION = "extension"


@dataclass(frozen=True, slots=True)
class FieldRule:
    """Copy ``source`` into ``destination``, optionally converting the value."""

    source: str
    destination: str
    convert: Converter | None = None
    required: bool = False


@dataclass(frozen=True, slots=True)
class FieldMapping:
    """Callable transform built from a table of field rules.

    Source fields that no rule names (and that are not ignored) are dropped or
    routed to :attr:`MappedRecord.extension` according to ``unmapped``.
    """

    rules: tuple[FieldRule, ...]
    unmapped: UnmappedPolicy = UnmappedPolicy.DROP
    ignore: frozenset[str] = field(default_factory=frozenset)
    constants: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        destinations = [rule.destination for rule in self.rules]
        duplicates = sorted({name for name in destinations if destinations.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Field mapping writes {duplicates} more than once")

    @property
    def destination_fields(self) -> tuple[str, ...]:
        return (*(rule.destination for rule in self.rules), *self.constants)

    def __call__(self, record: SourceRecord) -> MappedRecord:
        values: dict[str, object] = {}
        for rule in self.rules:
            raw = record.get(rule.source)
            if raw is None:
                if rule.required:
                    raise TransformError(f"Missing required field {rule.source!r}")
                values[rule.destination] = None
                continue
            if rule.convert is None:
                values[rule.destination] = raw
                continue
            try:
                values[rule.destination] = rule.convert(raw)
            except (TypeError, ValueError) as exc:
                raise TransformError(
                    f"Cannot convert {rule.source!r} value {raw!r}: {exc}"
                ) from exc
        values.update(self.constants)

        extension: dict[str, object] = {}
        if self.unmapped is UnmappedPolicy.EXTENSION:
            mapped_sources = {rule.source for rule in self.rules}
            extension = {
                name: value
                for name, value in record.items()
                if name not in mapped_sources and name not in self.ignore and value is not None
            }
        return MappedRecord(values=values, extension=extension, source_index=record.index)


def image_descriptor(value: object) -> str | None:
    """Expand an image base URL into a multi-resolution descriptor string.

    ``https://cdn/cards/sv1/001`` becomes
    ``https://cdn/cards/sv1/001/low.webp 245w, https://cdn/cards/sv1/001/high.webp 600w``.
    URLs that already point at an image file are returned unchanged.
    """

    url = str(value).strip()
    if not url:
        return None
    if not url.startswith(("http://", "https://")):
        raise ValueError(f"not an absolute URL: {url!r}")
    if url.lower().endswith(IMAGE_EXTENSIONS):
        return url
    base = url.rstrip("/")
    return ", ".join(f"{base}/{quality}.webp {width}w" for quality, width in IMAGE_RESOLUTIONS)


def optional_int(value: object) -> int | None:
    if isinstance(value, bool):
        raise TypeError("booleans are not integers here")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        return int(stripped)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{value} is not a whole number")
        return int(value)
    if isinstance(value, int):
        return value
    raise TypeError(f"unsupported type {type(value).__name__}")


def optional_float(value: object) -> float | None:
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers here")
    if isinstance(value, str):
        stripped = value.strip()
        return float(stripped) if stripped else None
    if isinstance(value, int | float):
        return float(value)
    raise TypeError(f"unsupported type {type(value).__name__}")


def parse_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"unsupported type {type(value).__name__}")


def parse_timestamp(value: object) -> datetime:
    """Parse ISO-8601 strings or epoch seconds into an aware UTC datetime."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, int | float) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=UTC)
    elif isinstance(value, str):
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        parsed = datetime.fromisoformat(normalized)
    else:
        raise TypeError(f"unsupported type {type(value).__name__}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def normalize_language(value: object) -> str:
    code = str(value).strip().lower()
    if not code:
        raise ValueError("empty language code")
    return code


__all__ = [
    "Converter",
    "FieldMapping",
    "FieldRule",
    "Transform",
    "UnmappedPolicy",
    "image_descriptor",
    "normalize_language",
    "optional_float",
    "optional_int",
    "parse_date",
    "parse_timestamp",
]
