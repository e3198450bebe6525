"""Listing store connection settings."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

DEFAULT_COLLECTION = "listings"
AUDIT_COLLECTION = "audit_logs"
STORE_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class StoreConfig:
    """Holds listing store API configuration values."""

    base_url: str
    resilience: ResilienceConfig
    api_token: str | None = None
    collection: str = DEFAULT_COLLECTION
    audit_collection: str = AUDIT_COLLECTION
    operator: str | None = None


def get_store_config(*, resilience: ResilienceConfig | None = None) -> StoreConfig:
    values = require_env_vars(("LISTING_STORE_URL",))
    base_url = values["LISTING_STORE_URL"].rstrip("/") + "/"
    api_token = optional_env_var("LISTING_STORE_TOKEN")
    headers = {"Authorization": f"Bearer {api_token}"} if api_token else None
    return StoreConfig(
        base_url=base_url,
        api_token=api_token,
        collection=optional_env_var("LISTING_STORE_COLLECTION") or DEFAULT_COLLECTION,
        operator=optional_env_var("LISTING_STORE_OPERATOR"),
        resilience=resilience
        or ResilienceConfig(
            name="listing-store",
            base_url=base_url,
            timeout_seconds=STORE_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            default_headers=headers,
        ),
    )
