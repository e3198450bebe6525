"""The map sync engine: one explicit instance wiring the sync components together."""

from __future__ import annotations

import asyncio
from functools import partial
from logging import getLogger
from time import monotonic
from typing import TYPE_CHECKING, Final, Self

from listingmap.config.sync import SyncConfig
from listingmap.domain.model import BucketKind, ChangeKind

from .actions import AdminActionCoordinator
from .backoff import BackoffPolicy
from .buckets import BUCKET_STATUS, BucketRouter
from .cache import EntityCache
from .dispatcher import SerialDispatcher
from .errors import ActionNotPermitted, TransportError
from .notifications import MarkerSelected, StreamDegraded, discard_notification
from .reconcile import Reconciler
from .staleness import StalenessMonitor
from .stream import ChangeStreamAdapter

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping
    from types import TracebackType

    from listingmap.domain.model import Listing, ListingStatus
    from listingmap.domain.ports.moderation import ModerationWriter
    from listingmap.domain.ports.rendering import RenderSurface, StyleLookup
    from listingmap.domain.ports.store import ListingStore

    from .actions import PendingAdminAction
    from .events import ChangeEvent
    from .notifications import NotificationSink

log = getLogger(__name__)

STATUS_BUCKET: Final[dict[ListingStatus, BucketKind]] = {
    status: bucket for bucket, status in BUCKET_STATUS.items()
}


class MapSyncEngine:
    """Keep a map's markers consistent with the remote listing collection.

    Collaborators are injected; the engine owns its cache, router, stream
    adapters, staleness monitor, admin coordinator and dispatcher. All cache
    mutation happens on the dispatcher worker.
    """

    def __init__(
        self,
        store: ListingStore,
        moderation: ModerationWriter,
        surface: RenderSurface,
        styles: StyleLookup,
        *,
        privileged: bool = False,
        config: SyncConfig | None = None,
        notify: NotificationSink = discard_notification,
        clock: Callable[[], float] = monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._config = config or SyncConfig()
        self._notify = notify
        self._dispatcher = SerialDispatcher()
        self._cache = EntityCache()
        self._router = BucketRouter(
            self._cache,
            surface,
            styles,
            privileged=privileged,
            on_select=self._on_marker_click,
            clock=clock,
        )
        self._reconciler = Reconciler(self._cache, self._router, notify=notify)
        self._actions = AdminActionCoordinator(
            moderation,
            self._dispatcher,
            current=self._cache.current,
            timeout_seconds=self._config.action_timeout_seconds,
            notify=notify,
        )
        self._reconciler.add_observer(self._actions.confirm)
        self._monitor = StalenessMonitor(
            self._router.buckets,
            resync=self._resync_serialized,
            timeout_seconds=self._config.cache_timeout_seconds,
            interval_seconds=self._config.check_interval_seconds,
            clock=clock,
            sleep=sleep,
        )

        backoff = BackoffPolicy.from_config(self._config)
        sources: list[ListingStatus | None] = [BUCKET_STATUS[b] for b in self._router.buckets]
        if privileged:
            # rejections and flags only show up on a status-agnostic stream
            sources.append(None)
        self._streams = tuple(
            ChangeStreamAdapter(
                store,
                status=source,
                handler=self._handle_event,
                dispatch=self._dispatcher.post,
                backoff=backoff,
                on_degraded=self._on_degraded,
                sleep=sleep,
            )
            for source in sources
        )
        self._started = False

    @property
    def privileged(self) -> bool:
        return self._router.privileged

    @property
    def buckets(self) -> tuple[BucketKind, ...]:
        return self._router.buckets

    @property
    def cache(self) -> EntityCache:
        return self._cache

    @property
    def streams(self) -> tuple[ChangeStreamAdapter, ...]:
        return self._streams

    @property
    def running(self) -> bool:
        return self._started

    def listings(self, bucket: BucketKind) -> list[Listing]:
        return [entry.listing for entry in self._cache.entries(bucket)]

    async def start(self) -> None:
        """Load every bucket, then subscribe to the change streams."""

        if self._started:
            return
        self._started = True
        self._dispatcher.start()
        for bucket in self.buckets:
            await self._resync_serialized(bucket)
        for stream in self._streams:
            stream.subscribe()
        self._monitor.start()
        log.info(
            "Map sync started (%s view, %d streams)",
            "admin" if self.privileged else "public",
            len(self._streams),
        )

    async def stop(self) -> None:
        """Unsubscribe everything and clear the map. Safe to call repeatedly."""

        if not self._started:
            return
        self._started = False
        await self._monitor.stop()
        for stream in self._streams:
            await stream.aclose()
        self._actions.cancel_all()
        await self._dispatcher.call(self._teardown)
        await self._dispatcher.stop()
        log.info("Map sync stopped")

    async def refresh(self) -> None:
        """Resync every bucket and re-subscribe streams that gave up."""

        for bucket in self.buckets:
            await self._resync_serialized(bucket)
        for stream in self._streams:
            if not stream.active:
                log.info("Re-subscribing %s stream", stream.status or "moderation")
                stream.subscribe()

    async def check_staleness(self) -> list[BucketKind]:
        """Run one staleness check now; returns the buckets found stale."""

        return await self._monitor.check()

    async def wait_idle(self) -> None:
        """Wait until every job queued so far has been processed."""

        await self._dispatcher.join()

    async def submit(
        self,
        entity_id: str,
        status: ListingStatus,
        extra: Mapping[str, object] | None = None,
    ) -> PendingAdminAction:
        self._require_privilege()
        return await self._actions.submit(entity_id, status, extra)

    async def approve(self, entity_id: str) -> PendingAdminAction:
        self._require_privilege()
        return await self._actions.approve(entity_id)

    async def reject(self, entity_id: str, reason: str) -> PendingAdminAction:
        self._require_privilege()
        return await self._actions.reject(entity_id, reason)

    async def flag(self, entity_id: str, reason: str) -> PendingAdminAction:
        self._require_privilege()
        return await self._actions.flag(entity_id, reason)

    async def reset(self, entity_id: str) -> PendingAdminAction:
        self._require_privilege()
        return await self._actions.reset(entity_id)

    def pending_action(self, entity_id: str) -> PendingAdminAction | None:
        return self._actions.pending(entity_id)

    def set_bucket_visible(self, bucket: BucketKind, visible: bool) -> None:
        self._router.set_visible(bucket, visible)

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    def _require_privilege(self) -> None:
        if not self.privileged:
            raise ActionNotPermitted("Only privileged sessions may moderate listings")

    def _handle_event(self, event: ChangeEvent) -> None:
        if event.kind is ChangeKind.RESYNCED:
            for bucket in self._buckets_for(event.source):
                self._dispatcher.post(partial(self._resync, bucket))
            return
        if event.source is not None and event.source in STATUS_BUCKET:
            self._monitor.touch(STATUS_BUCKET[event.source])
        self._reconciler.apply(event)

    def _buckets_for(self, source: ListingStatus | None) -> tuple[BucketKind, ...]:
        if source is None:
            return self.buckets
        bucket = STATUS_BUCKET.get(source)
        return (bucket,) if bucket in self.buckets else ()

    async def _resync_serialized(self, bucket: BucketKind) -> bool:
        return await self._dispatcher.call(partial(self._resync, bucket))

    async def _resync(self, bucket: BucketKind) -> bool:
        status = BUCKET_STATUS[bucket]
        try:
            listings = await self._store.query(status, limit=self._config.resync_batch_size)
        except TransportError as exc:
            log.warning("Resync of %s bucket failed, keeping last known state: %s", bucket, exc)
            return False
        if len(listings) >= self._config.resync_batch_size:
            log.warning(
                "Resync of %s bucket hit the batch limit of %d listings",
                bucket,
                self._config.resync_batch_size,
            )
        self._reconciler.replace_bucket(bucket, listings)
        self._monitor.touch(bucket)
        return True

    def _on_degraded(self, source: ListingStatus | None, failures: int) -> None:
        self._dispatcher.post(partial(self._notify, StreamDegraded(source, failures)))

    def _on_marker_click(self, bucket: BucketKind, entity_id: str) -> None:
        self._dispatcher.post(partial(self._select, bucket, entity_id))

    def _select(self, bucket: BucketKind, entity_id: str) -> None:
        entry = self._cache.get(entity_id, bucket)
        if entry is None:
            log.debug("Click on %s marker for %s which is no longer cached", bucket, entity_id)
            return
        self._notify(
            MarkerSelected(bucket, entry.listing, preview=bucket is BucketKind.ADMIN_PREVIEW)
        )

    def _teardown(self) -> None:
        self._router.clear()
        self._cache.clear()


__all__ = ["STATUS_BUCKET", "MapSyncEngine"]
