"""Ports for reading listings and their change notifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from listingmap.domain.model import Listing, ListingStatus


@dataclass(frozen=True, slots=True)
class DocumentChange:
    """One document change as delivered by the store.

    ``change_kind`` is the store's own vocabulary; the change-stream adapter
    normalizes it. ``listing`` may be ``None`` for removals that carry no data.
    """

    doc_id: str
    change_kind: str
    listing: Listing | None = None
    update_time: int | None = None


@dataclass(frozen=True, slots=True)
class SnapshotBatch:
    """A batch of changes plus the cache/server provenance flag."""

    changes: tuple[DocumentChange, ...] = field(default_factory=tuple)
    from_cache: bool = False


@runtime_checkable
class ListingStore(Protocol):
    """Remote listing collection: point reads, batched reads, queries and subscriptions."""

    async def get(self, listing_id: str) -> Listing | None: ...

    async def get_many(self, listing_ids: Iterable[str]) -> list[Listing]: ...

    async def query(self, status: ListingStatus, *, limit: int) -> list[Listing]: ...

    def listen(self, status: ListingStatus | None) -> AsyncIterator[SnapshotBatch]:
        """Yield change batches for listings matching ``status`` (all when ``None``).

        Implementations raise ``TransportError`` when the subscription breaks.
        """
        ...


__all__ = ["DocumentChange", "ListingStore", "SnapshotBatch"]
