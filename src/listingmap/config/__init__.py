"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError, UnknownOptionError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import StorageConfig, get_storage_config
from .store import StoreConfig, get_store_config
from .sync import SyncConfig, get_sync_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "StoreConfig",
    "SyncConfig",
    "UnknownOptionError",
    "configure_logging",
    "get_storage_config",
    "get_store_config",
    "get_sync_config",
    "require_env_var",
    "require_env_vars",
]
