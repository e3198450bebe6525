"""Synchronization engine options."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Final

from .env import optional_env_int
from .errors import ConfigurationError, UnknownOptionError

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_CACHE_TIMEOUT_MS: Final[int] = 30_000
DEFAULT_CHECK_INTERVAL_MS: Final[int] = 5_000
DEFAULT_RESYNC_BATCH_SIZE: Final[int] = 50
DEFAULT_ACTION_TIMEOUT_MS: Final[int] = 10_000
DEFAULT_BACKOFF_BASE_MS: Final[int] = 1_000
DEFAULT_BACKOFF_CAP_MS: Final[int] = 30_000

# camelCase option name -> SyncConfig field
OPTION_NAMES: Final[dict[str, str]] = {
    "cacheTimeoutMs": "cache_timeout_ms",
    "checkIntervalMs": "check_interval_ms",
    "resyncBatchSize": "resync_batch_size",
    "actionTimeoutMs": "action_timeout_ms",
    "backoffBaseMs": "backoff_base_ms",
    "backoffCapMs": "backoff_cap_ms",
    "transportRetryCeiling": "transport_retry_ceiling",
}


@dataclass(frozen=True, slots=True)
class SyncConfig:
    cache_timeout_ms: int = DEFAULT_CACHE_TIMEOUT_MS
    check_interval_ms: int = DEFAULT_CHECK_INTERVAL_MS
    resync_batch_size: int = DEFAULT_RESYNC_BATCH_SIZE
    action_timeout_ms: int = DEFAULT_ACTION_TIMEOUT_MS
    backoff_base_ms: int = DEFAULT_BACKOFF_BASE_MS
    backoff_cap_ms: int = DEFAULT_BACKOFF_CAP_MS
    transport_retry_ceiling: int | None = None

    def __post_init__(self) -> None:
        for name in (
            "cache_timeout_ms",
            "check_interval_ms",
            "resync_batch_size",
            "action_timeout_ms",
            "backoff_base_ms",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.backoff_cap_ms < self.backoff_base_ms:
            raise ConfigurationError("backoff_cap_ms must not be below backoff_base_ms")
        if self.transport_retry_ceiling is not None and self.transport_retry_ceiling < 0:
            raise ConfigurationError("transport_retry_ceiling must be non-negative")

    @property
    def cache_timeout_seconds(self) -> float:
        return self.cache_timeout_ms / 1000

    @property
    def check_interval_seconds(self) -> float:
        return self.check_interval_ms / 1000

    @property
    def action_timeout_seconds(self) -> float:
        return self.action_timeout_ms / 1000

    @property
    def backoff_base_seconds(self) -> float:
        return self.backoff_base_ms / 1000

    @property
    def backoff_cap_seconds(self) -> float:
        return self.backoff_cap_ms / 1000

    @classmethod
    def from_options(cls, options: Mapping[str, object]) -> SyncConfig:
        """Build a config from the camelCase option names used by embedders."""

        unknown = set(options) - set(OPTION_NAMES)
        if unknown:
            raise UnknownOptionError(unknown)
        values: dict[str, int | None] = {}
        for option, value in options.items():
            if value is not None and (not isinstance(value, int) or isinstance(value, bool)):
                raise ConfigurationError(f"{option} must be an integer, got {value!r}")
            values[OPTION_NAMES[option]] = value
        return cls(**values)  # type: ignore[arg-type]


_ENV_NAMES: Final[dict[str, str]] = {
    field.name: f"LISTINGMAP_{field.name.upper()}" for field in fields(SyncConfig)
}


def get_sync_config() -> SyncConfig:
    """Return engine options, honouring ``LISTINGMAP_*`` environment overrides."""

    overrides: dict[str, int] = {}
    for name, env_name in _ENV_NAMES.items():
        value = optional_env_int(env_name)
        if value is not None:
            overrides[name] = value
    return SyncConfig(**overrides)  # type: ignore[arg-type]
