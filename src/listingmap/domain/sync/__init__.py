"""Synchronization and reconciliation core for the listing map."""

from __future__ import annotations

from .actions import ActionState, AdminActionCoordinator, PendingAdminAction
from .backoff import BackoffPolicy
from .buckets import BUCKET_STATUS, NEUTRAL_STYLE, BucketRouter
from .cache import CacheEntry, EntityCache, EntityRecord
from .dispatcher import SerialDispatcher
from .engine import STATUS_BUCKET, MapSyncEngine
from .errors import (
    USER_VISIBLE_ERRORS,
    ActionInFlight,
    ActionNotPermitted,
    ActionTimeout,
    MapSyncError,
    OrderingConflict,
    TransportError,
    WriteError,
)
from .events import ChangeEvent, MarkerHandle, RenderDelta
from .notifications import (
    ActionConfirmed,
    ActionTimedOut,
    MarkerSelected,
    Notification,
    NotificationSink,
    OwnerNotification,
    StreamDegraded,
)
from .reconcile import ReconcileResult, Reconciler
from .staleness import StalenessMonitor
from .stream import ChangeStreamAdapter, normalize_batch, normalize_change

__all__ = [
    "BUCKET_STATUS",
    "NEUTRAL_STYLE",
    "STATUS_BUCKET",
    "USER_VISIBLE_ERRORS",
    "ActionConfirmed",
    "ActionInFlight",
    "ActionNotPermitted",
    "ActionState",
    "ActionTimedOut",
    "ActionTimeout",
    "AdminActionCoordinator",
    "BackoffPolicy",
    "BucketRouter",
    "CacheEntry",
    "ChangeEvent",
    "ChangeStreamAdapter",
    "EntityCache",
    "EntityRecord",
    "MapSyncEngine",
    "MapSyncError",
    "MarkerHandle",
    "MarkerSelected",
    "Notification",
    "NotificationSink",
    "OrderingConflict",
    "OwnerNotification",
    "PendingAdminAction",
    "ReconcileResult",
    "Reconciler",
    "RenderDelta",
    "SerialDispatcher",
    "StalenessMonitor",
    "StreamDegraded",
    "TransportError",
    "WriteError",
    "normalize_batch",
    "normalize_change",
]
