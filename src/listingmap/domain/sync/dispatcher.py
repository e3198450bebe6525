"""Single serialized job queue for all cache-mutating work.

Stream deliveries, staleness resyncs, admin-action arming/expiry and marker
clicks are posted here and run one at a time by a single worker task, which is
what lets the cache and reconciler stay lock-free.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import Awaitable, Callable
from logging import getLogger
from typing import Any

log = getLogger(__name__)

type Job = Callable[[], Awaitable[Any] | Any]


class SerialDispatcher:
    def __init__(self) -> None:
        self._queue: asyncio.Queue[tuple[Job, asyncio.Future[Any] | None]] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.get_running_loop().create_task(
            self._drain(), name="listingmap-dispatcher"
        )

    def post(self, job: Job) -> None:
        """Queue ``job`` without waiting for it; failures are logged."""

        self._queue.put_nowait((job, None))

    async def call[T](self, job: Callable[[], Awaitable[T] | T]) -> T:
        """Queue ``job`` and wait for its result (exceptions propagate)."""

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((job, future))
        return await future

    async def join(self) -> None:
        """Wait until every job queued so far has run."""

        await self._queue.join()

    async def stop(self) -> None:
        worker, self._worker = self._worker, None
        if worker is None:
            return
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker
        while not self._queue.empty():
            _job, future = self._queue.get_nowait()
            if future is not None and not future.done():
                future.cancel()
            self._queue.task_done()

    async def _drain(self) -> None:
        while True:
            job, future = await self._queue.get()
            try:
                result = job()
                if inspect.isawaitable(result):
                    result = await result
            except asyncio.CancelledError:
                if future is not None and not future.done():
                    future.cancel()
                raise
            except Exception as exc:
                if future is None:
                    log.exception("Dispatcher job %r failed", job)
                elif not future.done():
                    future.set_exception(exc)
            else:
                if future is not None and not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()
