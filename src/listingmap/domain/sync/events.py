"""Normalized change events and the render deltas derived from them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from listingmap.domain.model import BucketKind, ChangeKind, DeltaKind

if TYPE_CHECKING:
    from listingmap.domain.model import Listing, ListingStatus


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """Uniform ``{entity_id, kind, snapshot}`` notification.

    ``source`` is the status predicate of the stream that delivered the event
    (``None`` for the status-agnostic moderation stream). ``version`` is the
    store-provided ordering key; ``None`` means the store sent none.
    """

    entity_id: str
    kind: ChangeKind
    snapshot: Listing | None = None
    version: int | None = None
    source: ListingStatus | None = None

    @classmethod
    def resynced(cls, source: ListingStatus | None) -> ChangeEvent:
        return cls(entity_id="", kind=ChangeKind.RESYNCED, source=source)


@dataclass(frozen=True, slots=True)
class MarkerHandle:
    """Render handle owned by exactly one cache entry."""

    bucket: BucketKind
    entity_id: str

    @property
    def marker_id(self) -> str:
        return f"{self.bucket}:{self.entity_id}"


@dataclass(frozen=True, slots=True)
class RenderDelta:
    kind: DeltaKind
    bucket: BucketKind
    entity_id: str


__all__ = ["ChangeEvent", "MarkerHandle", "RenderDelta"]
