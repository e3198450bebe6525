"""Apply change events to the entity cache under the version-ordering rule.

Rule: an event applies when the listing is unknown or its version is strictly
greater than the recorded one. At equal versions a ``removed`` event supersedes
an ``added``/``modified`` one; every other equal-version event is a duplicate,
except a snapshot entering a different status than the one a status-filtered
removal just left: both sides of one transition carry the same version.
Dropped events surface as :class:`OrderingConflict` values, logged only.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING

from listingmap.domain.model import BucketKind, ChangeKind

from .buckets import BUCKET_STATUS
from .cache import EntityRecord
from .errors import OrderingConflict
from .notifications import NotificationSink, OwnerNotification, discard_notification

if TYPE_CHECKING:
    from collections.abc import Iterable

    from listingmap.domain.model import Listing, ListingStatus

    from .buckets import BucketRouter
    from .cache import EntityCache
    from .events import ChangeEvent, RenderDelta

log = getLogger(__name__)

SnapshotObserver = Callable[["Listing"], None]


@dataclass(slots=True)
class ReconcileResult:
    applied: bool
    deltas: list[RenderDelta] = field(default_factory=list["RenderDelta"])
    conflict: OrderingConflict | None = None


class Reconciler:
    """Owns every write to the entity cache that originates from the store."""

    def __init__(
        self,
        cache: EntityCache,
        router: BucketRouter,
        *,
        notify: NotificationSink = discard_notification,
    ) -> None:
        self._cache = cache
        self._router = router
        self._notify = notify
        self._observers: list[SnapshotObserver] = []

    def add_observer(self, observer: SnapshotObserver) -> None:
        """Call ``observer`` with every snapshot that gets applied."""

        self._observers.append(observer)

    def apply(self, event: ChangeEvent) -> ReconcileResult:
        if event.kind is ChangeKind.RESYNCED:
            raise ValueError("Resync markers are handled by the engine, not the reconciler")

        record = self._cache.record(event.entity_id)
        version = self._effective_version(event, record)

        kind = event.kind
        snapshot = event.snapshot
        if (
            kind is ChangeKind.REMOVED
            and snapshot is not None
            and event.source is not None
            and snapshot.status != event.source
        ):
            # left the predicate by changing status; the snapshot is the new state
            kind = ChangeKind.MODIFIED

        if record is not None:
            conflict = _ordering_conflict(
                record, kind, version, snapshot.status if snapshot is not None else None
            )
            if conflict is not None:
                log.debug("%s", conflict)
                return ReconcileResult(applied=False, conflict=conflict)

        if kind is ChangeKind.REMOVED:
            return self._apply_removal(event, record, version)

        if snapshot is None:
            raise ValueError(f"{kind} event for {event.entity_id} carries no snapshot")
        return self._apply_snapshot(record, snapshot.with_version(version), kind)

    def replace_bucket(self, bucket: BucketKind, listings: Iterable[Listing]) -> list[RenderDelta]:
        """Overwrite ``bucket`` with a freshly fetched state, ignoring versions."""

        fetched = {listing.id: listing for listing in listings}
        deltas: list[RenderDelta] = []

        for entity_id in self._cache.entity_ids(bucket) - fetched.keys():
            deltas.extend(self._router.evict(entity_id, bucket))
            current = self._cache.current(entity_id)
            if current is not None and current.status == BUCKET_STATUS[bucket]:
                self._cache.remember(
                    EntityRecord(
                        entity_id,
                        current.version,
                        ChangeKind.REMOVED,
                        left_status=BUCKET_STATUS[bucket],
                    )
                )

        for listing in fetched.values():
            record = self._cache.record(listing.id)
            previous = record.listing if record is not None else None
            self._cache.remember(
                EntityRecord(listing.id, listing.version, ChangeKind.MODIFIED, listing)
            )
            deltas.extend(self._router.route(previous, listing))
            self._notify_transition(previous, listing)
            self._offer(listing)

        log.info(
            "Resynced %s bucket: %d listings, %d render deltas", bucket, len(fetched), len(deltas)
        )
        return deltas

    def _effective_version(self, event: ChangeEvent, record: EntityRecord | None) -> int:
        if event.version is not None:
            return event.version
        if event.snapshot is not None and event.snapshot.version > 0:
            return event.snapshot.version
        # store sent no ordering key; fall back to a per-listing logical clock
        if record is None:
            return 0
        return record.version if event.kind is ChangeKind.REMOVED else record.version + 1

    def _apply_snapshot(
        self, record: EntityRecord | None, listing: Listing, kind: ChangeKind
    ) -> ReconcileResult:
        previous = record.listing if record is not None else None
        self._cache.remember(EntityRecord(listing.id, listing.version, kind, listing))
        deltas = self._router.route(previous, listing)
        if previous is None and record is not None and record.left_status is not None:
            previous = replace(listing, status=record.left_status)
        self._notify_transition(previous, listing)
        self._offer(listing)
        return ReconcileResult(applied=True, deltas=deltas)

    def _apply_removal(
        self, event: ChangeEvent, record: EntityRecord | None, version: int
    ) -> ReconcileResult:
        previous = record.listing if record is not None else None
        if previous is not None and event.source is not None and previous.status != event.source:
            conflict = OrderingConflict(
                event.entity_id,
                kind=event.kind,
                version=version,
                current_version=previous.version,
                reason="listing already left this predicate",
            )
            log.debug("%s", conflict)
            return ReconcileResult(applied=False, conflict=conflict)

        # a status-filtered stream only knows the listing left its predicate
        self._cache.remember(
            EntityRecord(event.entity_id, version, ChangeKind.REMOVED, left_status=event.source)
        )
        deltas = self._router.route(previous, None) if previous is not None else []
        return ReconcileResult(applied=True, deltas=deltas)

    def _notify_transition(self, previous: Listing | None, current: Listing) -> None:
        if previous is None or previous.status == current.status:
            return
        if self._router.memberships(previous) == self._router.memberships(current):
            return
        self._notify(
            OwnerNotification(
                entity_id=current.id,
                owner_id=current.owner_id or previous.owner_id,
                previous_status=previous.status,
                new_status=current.status,
            )
        )

    def _offer(self, listing: Listing) -> None:
        for observer in self._observers:
            observer(listing)


def _ordering_conflict(
    record: EntityRecord, kind: ChangeKind, version: int, status: ListingStatus | None
) -> OrderingConflict | None:
    if version > record.version:
        return None
    if version == record.version:
        if kind is ChangeKind.REMOVED and record.last_kind is not ChangeKind.REMOVED:
            return None
        if (
            kind is not ChangeKind.REMOVED
            and record.left_status is not None
            and status is not None
            and status != record.left_status
        ):
            return None
        reason = "duplicate delivery"
    else:
        reason = "stale version"
    return OrderingConflict(
        record.entity_id,
        kind=kind,
        version=version,
        current_version=record.version,
        reason=reason,
    )


__all__ = ["ReconcileResult", "Reconciler", "SnapshotObserver"]
