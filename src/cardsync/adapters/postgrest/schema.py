"""Pydantic models describing PostgREST error payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class PostgrestBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PostgrestErrorPayload(PostgrestBaseModel):
    """Body returned by PostgREST for a rejected request."""

    message: str
    code: str | None = None
    details: str | None = None
    hint: str | None = None

    _normalize_optional = field_validator("code", "details", "hint", mode="before")(
        _blank_to_none
    )

    def describe(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            parts.append(f"({self.details})")
        if self.hint:
            parts.append(f"hint: {self.hint}")
        return " ".join(parts)
