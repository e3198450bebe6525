"""Periodic staleness check that forces a bucket resync."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from logging import getLogger
from time import monotonic
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from listingmap.domain.model import BucketKind

log = getLogger(__name__)

Resync = Callable[["BucketKind"], Awaitable[bool]]


class StalenessMonitor:
    """Resync any bucket that has not been confirmed for ``timeout_seconds``.

    A bucket counts as confirmed whenever a stream delivery touches it or a
    resync reports success. A failed resync is retried on the next tick.
    """

    def __init__(
        self,
        buckets: Iterable[BucketKind],
        *,
        resync: Resync,
        timeout_seconds: float,
        interval_seconds: float,
        clock: Callable[[], float] = monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._resync = resync
        self._timeout = timeout_seconds
        self._interval = interval_seconds
        self._clock = clock
        self._sleep = sleep
        now = clock()
        self._last_confirmed: dict[BucketKind, float] = {bucket: now for bucket in buckets}
        self._task: asyncio.Task[None] | None = None

    def touch(self, bucket: BucketKind) -> None:
        if bucket in self._last_confirmed:
            self._last_confirmed[bucket] = self._clock()

    def last_confirmed(self, bucket: BucketKind) -> float:
        return self._last_confirmed[bucket]

    def stale_buckets(self, now: float | None = None) -> list[BucketKind]:
        now = self._clock() if now is None else now
        return [
            bucket
            for bucket, confirmed in self._last_confirmed.items()
            if now - confirmed > self._timeout
        ]

    async def check(self) -> list[BucketKind]:
        stale = self.stale_buckets()
        for bucket in stale:
            log.info(
                "%s bucket unconfirmed for more than %.0fs; resyncing", bucket, self._timeout
            )
            if await self._resync(bucket):
                self.touch(bucket)
        return stale

    async def run(self) -> None:
        while True:
            await self._sleep(self._interval)
            await self.check()

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(
            self.run(), name="listingmap-staleness"
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


__all__ = ["StalenessMonitor"]
