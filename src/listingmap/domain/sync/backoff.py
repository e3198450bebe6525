"""Reconnect delays for long-lived subscriptions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from listingmap.config.sync import SyncConfig


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    base_seconds: float = 1.0
    factor: float = 2.0
    cap_seconds: float = 30.0
    ceiling: int | None = None  # consecutive failures tolerated; None retries forever

    @classmethod
    def from_config(cls, config: SyncConfig) -> BackoffPolicy:
        return cls(
            base_seconds=config.backoff_base_seconds,
            cap_seconds=config.backoff_cap_seconds,
            ceiling=config.transport_retry_ceiling,
        )

    def delay(self, failures: int) -> float:
        """Delay before reconnect attempt number ``failures`` (1-based)."""

        if failures < 1:
            return 0.0
        exponent = min(failures - 1, 64)
        return min(self.cap_seconds, self.base_seconds * self.factor**exponent)

    def exhausted(self, failures: int) -> bool:
        return self.ceiling is not None and failures > self.ceiling
