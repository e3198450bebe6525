"""Change-stream adapter: one long-lived, self-healing store subscription."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, Final

from listingmap.domain.model import ChangeKind

from .backoff import BackoffPolicy
from .errors import TransportError
from .events import ChangeEvent

if TYPE_CHECKING:
    from listingmap.domain.model import ListingStatus
    from listingmap.domain.ports.store import DocumentChange, ListingStore, SnapshotBatch

log = getLogger(__name__)

CHANGE_KIND_ALIASES: Final[dict[str, ChangeKind]] = {
    "added": ChangeKind.ADDED,
    "add": ChangeKind.ADDED,
    "create": ChangeKind.ADDED,
    "created": ChangeKind.ADDED,
    "insert": ChangeKind.ADDED,
    "modified": ChangeKind.MODIFIED,
    "modify": ChangeKind.MODIFIED,
    "update": ChangeKind.MODIFIED,
    "updated": ChangeKind.MODIFIED,
    "upsert": ChangeKind.MODIFIED,
    "removed": ChangeKind.REMOVED,
    "remove": ChangeKind.REMOVED,
    "delete": ChangeKind.REMOVED,
    "deleted": ChangeKind.REMOVED,
}

EventHandler = Callable[[ChangeEvent], None]
Dispatch = Callable[[Callable[[], None]], None]
Sleep = Callable[[float], Awaitable[None]]
DegradedHandler = Callable[["ListingStatus | None", int], None]


def normalize_change(change: DocumentChange, source: ListingStatus | None) -> ChangeEvent:
    """Map one store change onto a :class:`ChangeEvent` tagged with its version."""

    try:
        kind = CHANGE_KIND_ALIASES[change.change_kind.strip().lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown change kind {change.change_kind!r} for {change.doc_id}") from exc
    if kind is not ChangeKind.REMOVED and change.listing is None:
        raise ValueError(f"{kind} change for {change.doc_id} carries no listing data")

    version = change.update_time
    if version is None and change.listing is not None and change.listing.version > 0:
        version = change.listing.version
    return ChangeEvent(
        entity_id=change.doc_id,
        kind=kind,
        snapshot=change.listing,
        version=version,
        source=source,
    )


def normalize_batch(batch: SnapshotBatch, source: ListingStatus | None) -> list[ChangeEvent]:
    events: list[ChangeEvent] = []
    for change in batch.changes:
        try:
            events.append(normalize_change(change, source))
        except ValueError:
            log.warning("Skipping malformed change from %s stream", source or "moderation")
            log.debug("Malformed change: %r", change, exc_info=True)
    return events


class ChangeStreamAdapter:
    """Wrap one subscription for a single status predicate (``None`` = all statuses).

    Deliveries are handed to ``dispatch`` as jobs; a job only reaches
    ``handler`` if the subscription generation it was read under is still
    current, so ``unsubscribe`` also neutralizes deliveries already queued.
    """

    def __init__(
        self,
        store: ListingStore,
        *,
        status: ListingStatus | None,
        handler: EventHandler,
        dispatch: Dispatch,
        backoff: BackoffPolicy | None = None,
        on_degraded: DegradedHandler | None = None,
        ignore_cached: bool = True,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._store = store
        self._status = status
        self._handler = handler
        self._dispatch = dispatch
        self._backoff = backoff or BackoffPolicy()
        self._on_degraded = on_degraded
        self._ignore_cached = ignore_cached
        self._sleep = sleep
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self.failures = 0

    @property
    def status(self) -> ListingStatus | None:
        return self._status

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self) -> None:
        if self.active:
            return
        self._generation += 1
        self.failures = 0
        self._task = asyncio.get_running_loop().create_task(
            self._pump(self._generation), name=f"listingmap-stream-{self._label}"
        )

    def unsubscribe(self) -> None:
        """Stop the subscription. Safe to call repeatedly."""

        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        task = self._task
        self.unsubscribe()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    @property
    def _label(self) -> str:
        return str(self._status) if self._status is not None else "moderation"

    async def _pump(self, generation: int) -> None:
        reconnecting = False
        while generation == self._generation:
            try:
                async for batch in self._store.listen(self._status):
                    if generation != self._generation:
                        return
                    if reconnecting:
                        log.info("%s stream reconnected after %d failures", self._label, self.failures)
                        self._emit(generation, ChangeEvent.resynced(self._status))
                        reconnecting = False
                    self.failures = 0
                    self._deliver_batch(generation, batch)
                raise TransportError(f"{self._label} stream closed by the store")
            except TransportError as exc:
                if not await self._recover(generation, exc):
                    return
                reconnecting = True
            except Exception as exc:
                log.exception("%s stream failed unexpectedly", self._label)
                if not await self._recover(generation, exc):
                    return
                reconnecting = True

    async def _recover(self, generation: int, exc: Exception) -> bool:
        """Count one failure and wait out the backoff; ``False`` ends the subscription."""

        if generation != self._generation:
            return False
        self.failures += 1
        if self._backoff.exhausted(self.failures):
            log.error(
                "%s stream gave up after %d consecutive failures: %s",
                self._label,
                self.failures,
                exc,
            )
            if self._on_degraded is not None:
                self._on_degraded(self._status, self.failures)
            return False
        delay = self._backoff.delay(self.failures)
        log.warning("%s stream failed (%s); reconnecting in %.1fs", self._label, exc, delay)
        await self._sleep(delay)
        return True

    def _deliver_batch(self, generation: int, batch: SnapshotBatch) -> None:
        if batch.from_cache and self._ignore_cached:
            log.debug("Ignoring cache-sourced batch of %d changes", len(batch.changes))
            return
        for event in normalize_batch(batch, self._status):
            self._emit(generation, event)

    def _emit(self, generation: int, event: ChangeEvent) -> None:
        self._dispatch(partial(self._deliver, generation, event))

    def _deliver(self, generation: int, event: ChangeEvent) -> None:
        if generation != self._generation:
            log.debug("Discarding %s for %s from a closed subscription", event.kind, event.entity_id)
            return
        self._handler(event)


__all__ = [
    "CHANGE_KIND_ALIASES",
    "ChangeStreamAdapter",
    "normalize_batch",
    "normalize_change",
]
