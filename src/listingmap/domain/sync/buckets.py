"""Bucket membership and per-bucket marker sets."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from logging import getLogger
from time import monotonic
from typing import TYPE_CHECKING, Final

from listingmap.domain.model import BucketKind, DeltaKind, ListingStatus
from listingmap.domain.ports.rendering import MarkerStyle, VendorStyle

from .cache import CacheEntry
from .events import MarkerHandle, RenderDelta

if TYPE_CHECKING:
    from listingmap.domain.model import Listing
    from listingmap.domain.ports.rendering import RenderSurface, StyleLookup

    from .cache import EntityCache

log = getLogger(__name__)

NEUTRAL_STYLE: Final[VendorStyle] = VendorStyle(color="#95a5a6", icon="O")
PREVIEW_ICON: Final[str] = "?"
PREVIEW_OPACITY: Final[float] = 0.7
PREVIEW_Z_INDEX: Final[int] = 1000
PUBLIC_Z_INDEX: Final[int] = 100

BUCKET_STATUS: Final[dict[BucketKind, ListingStatus]] = {
    BucketKind.PUBLIC: ListingStatus.APPROVED,
    BucketKind.ADMIN_PREVIEW: ListingStatus.PENDING,
}

SelectHandler = Callable[[BucketKind, str], None]


class BucketRouter:
    """Project listings into the public and admin-preview marker sets."""

    def __init__(
        self,
        cache: EntityCache,
        surface: RenderSurface,
        styles: StyleLookup,
        *,
        privileged: bool,
        on_select: SelectHandler | None = None,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._cache = cache
        self._surface = surface
        self._styles = styles
        self._privileged = privileged
        self._on_select = on_select
        self._clock = clock

    @property
    def privileged(self) -> bool:
        return self._privileged

    @property
    def buckets(self) -> tuple[BucketKind, ...]:
        if self._privileged:
            return (BucketKind.PUBLIC, BucketKind.ADMIN_PREVIEW)
        return (BucketKind.PUBLIC,)

    def memberships(self, listing: Listing | None) -> frozenset[BucketKind]:
        if listing is None:
            return frozenset()
        if listing.status is ListingStatus.APPROVED:
            return frozenset({BucketKind.PUBLIC})
        if listing.status is ListingStatus.PENDING and self._privileged:
            return frozenset({BucketKind.ADMIN_PREVIEW})
        return frozenset()

    def route(self, previous: Listing | None, current: Listing | None) -> list[RenderDelta]:
        """Move a listing from ``previous`` to ``current`` membership.

        Either side may be ``None`` (creation / removal). Returns the deltas
        actually issued to the surface.
        """

        subject = current or previous
        if subject is None:
            return []
        entity_id = subject.id
        target = self.memberships(current)
        deltas: list[RenderDelta] = []
        for bucket in sorted(self._cache.buckets_of(entity_id) - target):
            deltas.extend(self.evict(entity_id, bucket))
        if current is not None:
            for bucket in sorted(target):
                deltas.extend(self.place(current, bucket))
        return deltas

    def place(self, listing: Listing, bucket: BucketKind) -> list[RenderDelta]:
        now = self._clock()
        entry = self._cache.get(listing.id, bucket)
        if entry is not None and entry.listing == listing:
            self._cache.put(replace(entry, last_seen_at=now))
            return []

        handle = entry.handle if entry is not None else MarkerHandle(bucket, listing.id)
        if listing.position is None:
            deltas: list[RenderDelta] = []
            if entry is not None and entry.rendered:
                self._surface.remove_marker(handle.marker_id)
                deltas.append(RenderDelta(DeltaKind.REMOVE, bucket, listing.id))
            self._cache.put(CacheEntry(listing, bucket, handle, now, rendered=False))
            return deltas

        self._surface.upsert_marker(
            handle.marker_id,
            listing.position.lat,
            listing.position.lng,
            self.style_for(listing, bucket),
            self._click_handler(bucket, listing.id),
        )
        self._cache.put(CacheEntry(listing, bucket, handle, now, rendered=True))
        return [RenderDelta(DeltaKind.UPSERT, bucket, listing.id)]

    def evict(self, entity_id: str, bucket: BucketKind) -> list[RenderDelta]:
        entry = self._cache.remove(entity_id, bucket)
        if entry is None or not entry.rendered:
            return []
        self._surface.remove_marker(entry.handle.marker_id)
        return [RenderDelta(DeltaKind.REMOVE, bucket, entity_id)]

    def clear(self) -> list[RenderDelta]:
        deltas: list[RenderDelta] = []
        for bucket in BucketKind:
            for entity_id in self._cache.entity_ids(bucket):
                deltas.extend(self.evict(entity_id, bucket))
        return deltas

    def set_visible(self, bucket: BucketKind, visible: bool) -> None:
        self._surface.set_visible(str(bucket), visible)

    def style_for(self, listing: Listing, bucket: BucketKind) -> MarkerStyle:
        vendor_style = self._resolve_vendor_style(listing.vendor)
        title = f"{listing.title} ({listing.status})"
        if bucket is BucketKind.ADMIN_PREVIEW:
            return MarkerStyle(
                color=vendor_style.color,
                icon=PREVIEW_ICON,
                title=title,
                opacity=PREVIEW_OPACITY,
                z_index=PREVIEW_Z_INDEX,
                badge="PENDING",
            )
        return MarkerStyle(
            color=vendor_style.color,
            icon=vendor_style.icon,
            title=title,
            z_index=PUBLIC_Z_INDEX,
        )

    def _resolve_vendor_style(self, vendor: str | None) -> VendorStyle:
        if vendor is None:
            return NEUTRAL_STYLE
        try:
            style = self._styles.resolve_style(vendor)
        except Exception:  # noqa: BLE001
            log.warning("Style lookup failed for vendor %r; using neutral style", vendor)
            return NEUTRAL_STYLE
        return style or NEUTRAL_STYLE

    def _click_handler(self, bucket: BucketKind, entity_id: str) -> Callable[[], None]:
        def on_click() -> None:
            if self._on_select is not None:
                self._on_select(bucket, entity_id)

        return on_click
