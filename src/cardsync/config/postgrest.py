"""Hosted PostgREST (Supabase) destination configuration."""

from __future__ import annotations

from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import ResilienceConfig, RetryPolicy

POSTGREST_PATH = "/rest/v1"
POSTGREST_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class PostgrestConfig:
    """Holds the endpoint and API key for a hosted PostgREST store."""

    base_url: str
    api_key: str
    resilience: ResilienceConfig


def build_postgrest_config(
    base_url: str,
    api_key: str,
    *,
    resilience: ResilienceConfig | None = None,
) -> PostgrestConfig:
    rest_url = base_url.rstrip("/")
    if not rest_url.endswith(POSTGREST_PATH):
        rest_url = f"{rest_url}{POSTGREST_PATH}"
    return PostgrestConfig(
        base_url=rest_url,
        api_key=api_key,
        resilience=resilience
        or ResilienceConfig(
            name="postgrest",
            base_url=rest_url,
            timeout_seconds=POSTGREST_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=3),
            default_headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            },
        ),
    )


def get_postgrest_config(*, resilience: ResilienceConfig | None = None) -> PostgrestConfig:
    values = require_env_vars(("SUPABASE_URL", "SUPABASE_KEY"))
    return build_postgrest_config(
        values["SUPABASE_URL"],
        values["SUPABASE_KEY"],
        resilience=resilience,
    )
