"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from listingmap.adapters.listing_store import HttpListingStore
from listingmap.adapters.render import LoggingMarkerLayer
from listingmap.adapters.styles import fetch_vendor_styles
from listingmap.config import get_store_config, get_sync_config
from listingmap.domain.model import BucketKind
from listingmap.domain.sync import (
    ActionConfirmed,
    ActionTimedOut,
    MapSyncEngine,
    MarkerSelected,
    OwnerNotification,
    StreamDegraded,
)

if TYPE_CHECKING:
    import httpx

    from listingmap.config import StoreConfig, SyncConfig
    from listingmap.domain.ports.rendering import RenderSurface, StyleLookup
    from listingmap.domain.sync import ActionState, Notification, NotificationSink

log = getLogger(__name__)


class ModerationAction(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"
    FLAG = "flag"
    RESET = "reset"

    @property
    def needs_reason(self) -> bool:
        return self in {ModerationAction.REJECT, ModerationAction.FLAG}


@dataclass(frozen=True, slots=True)
class WatchSummary:
    public_markers: int
    preview_markers: int
    notifications: int


def log_notification(notification: Notification) -> None:
    match notification:
        case OwnerNotification():
            log.info(
                "Notify owner %s: listing %s moved from %s to %s",
                notification.owner_id or "<unknown>",
                notification.entity_id,
                notification.previous_status,
                notification.new_status,
            )
        case ActionConfirmed():
            log.info("Listing %s is now %s", notification.entity_id, notification.status)
        case ActionTimedOut():
            log.warning(
                "Listing %s was not confirmed as %s after %.1fs",
                notification.entity_id,
                notification.requested_status,
                notification.waited_seconds,
            )
        case MarkerSelected():
            log.info(
                "%s for listing %s",
                "Preview" if notification.preview else "Details",
                notification.listing.id,
            )
        case StreamDegraded():
            log.error(
                "%s stream degraded after %d failures; showing last known state",
                notification.source or "moderation",
                notification.failures,
            )


def build_engine(
    store: HttpListingStore,
    *,
    surface: RenderSurface,
    styles: StyleLookup,
    privileged: bool = False,
    sync_config: SyncConfig | None = None,
    notify: NotificationSink = log_notification,
) -> MapSyncEngine:
    return MapSyncEngine(
        store,
        store,
        surface,
        styles,
        privileged=privileged,
        config=sync_config or get_sync_config(),
        notify=notify,
    )


def watch_listings(
    *,
    privileged: bool = False,
    duration_seconds: float | None = None,
    store_config: StoreConfig | None = None,
    sync_config: SyncConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> WatchSummary:
    """Keep a headless map in sync until ``duration_seconds`` elapses (forever if ``None``)."""

    return asyncio.run(
        _watch(
            privileged=privileged,
            duration_seconds=duration_seconds,
            store_config=store_config or get_store_config(),
            sync_config=sync_config,
            transport=transport,
        )
    )


def moderate_listing(
    listing_id: str,
    action: ModerationAction,
    *,
    reason: str | None = None,
    store_config: StoreConfig | None = None,
    sync_config: SyncConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ActionState:
    """Submit one admin action and wait until the change stream confirms it."""

    if action.needs_reason and not reason:
        raise ValueError(f"A reason is required to {action} a listing")
    return asyncio.run(
        _moderate(
            listing_id,
            action,
            reason=reason,
            store_config=store_config or get_store_config(),
            sync_config=sync_config,
            transport=transport,
        )
    )


async def _watch(
    *,
    privileged: bool,
    duration_seconds: float | None,
    store_config: StoreConfig,
    sync_config: SyncConfig | None,
    transport: httpx.AsyncBaseTransport | None,
) -> WatchSummary:
    surface = LoggingMarkerLayer()
    notifications = 0

    def notify(notification: Notification) -> None:
        nonlocal notifications
        notifications += 1
        log_notification(notification)

    styles = await fetch_vendor_styles(store_config, transport=transport)
    async with HttpListingStore(store_config, transport=transport) as store:
        engine = build_engine(
            store,
            surface=surface,
            styles=styles,
            privileged=privileged,
            sync_config=sync_config,
            notify=notify,
        )
        async with engine:
            log.info(
                "Watching listings: public=%d, preview=%d",
                len(engine.listings(BucketKind.PUBLIC)),
                len(engine.listings(BucketKind.ADMIN_PREVIEW)),
            )
            if duration_seconds is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration_seconds)
            summary = WatchSummary(
                public_markers=len(engine.listings(BucketKind.PUBLIC)),
                preview_markers=len(engine.listings(BucketKind.ADMIN_PREVIEW)),
                notifications=notifications,
            )
    log.info(
        "Finished watching: public=%d, preview=%d, notifications=%d",
        summary.public_markers,
        summary.preview_markers,
        summary.notifications,
    )
    return summary


async def _moderate(
    listing_id: str,
    action: ModerationAction,
    *,
    reason: str | None,
    store_config: StoreConfig,
    sync_config: SyncConfig | None,
    transport: httpx.AsyncBaseTransport | None,
) -> ActionState:
    async with HttpListingStore(store_config, transport=transport) as store:
        engine = build_engine(
            store,
            surface=LoggingMarkerLayer(),
            styles=await fetch_vendor_styles(store_config, transport=transport),
            privileged=True,
            sync_config=sync_config,
        )
        async with engine:
            match action:
                case ModerationAction.APPROVE:
                    pending = await engine.approve(listing_id)
                case ModerationAction.REJECT:
                    pending = await engine.reject(listing_id, reason or "")
                case ModerationAction.FLAG:
                    pending = await engine.flag(listing_id, reason or "")
                case ModerationAction.RESET:
                    pending = await engine.reset(listing_id)
            return await pending.wait()


__all__ = [
    "ModerationAction",
    "WatchSummary",
    "build_engine",
    "log_notification",
    "moderate_listing",
    "watch_listings",
]
