"""Indexed table of the engine's belief about every listing."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from listingmap.domain.model import BucketKind, ChangeKind

if TYPE_CHECKING:
    from listingmap.domain.model import Listing, ListingStatus

    from .events import MarkerHandle


@dataclass(frozen=True, slots=True)
class EntityRecord:
    """Last applied state of one listing; ``listing is None`` marks a tombstone.

    ``left_status`` is set when the tombstone only records that the listing
    left one status predicate; it may have entered another one at the same
    version.
    """

    entity_id: str
    version: int
    last_kind: ChangeKind
    listing: Listing | None = None
    left_status: ListingStatus | None = None

    @property
    def removed(self) -> bool:
        return self.listing is None


@dataclass(frozen=True, slots=True)
class CacheEntry:
    listing: Listing
    bucket: BucketKind
    handle: MarkerHandle
    last_seen_at: float
    rendered: bool = False

    @property
    def entity_id(self) -> str:
        return self.listing.id

    @property
    def key(self) -> tuple[str, BucketKind]:
        return self.listing.id, self.bucket


class EntityCache:
    """Entity records plus at most one cache entry per ``(entity_id, bucket)``.

    Not thread-safe: only the reconciler and router touch it, from the
    dispatcher worker.
    """

    def __init__(self) -> None:
        self._records: dict[str, EntityRecord] = {}
        self._buckets: dict[BucketKind, dict[str, CacheEntry]] = {
            bucket: {} for bucket in BucketKind
        }

    def get(self, entity_id: str, bucket: BucketKind) -> CacheEntry | None:
        return self._buckets[bucket].get(entity_id)

    def put(self, entry: CacheEntry) -> None:
        self._buckets[entry.bucket][entry.entity_id] = entry

    def remove(self, entity_id: str, bucket: BucketKind) -> CacheEntry | None:
        return self._buckets[bucket].pop(entity_id, None)

    def for_each_in_bucket(self, bucket: BucketKind, fn: Callable[[CacheEntry], None]) -> None:
        # snapshot first so ``fn`` may remove entries
        for entry in list(self._buckets[bucket].values()):
            fn(entry)

    def entries(self, bucket: BucketKind) -> Iterator[CacheEntry]:
        return iter(list(self._buckets[bucket].values()))

    def entity_ids(self, bucket: BucketKind) -> frozenset[str]:
        return frozenset(self._buckets[bucket])

    def buckets_of(self, entity_id: str) -> frozenset[BucketKind]:
        return frozenset(bucket for bucket, table in self._buckets.items() if entity_id in table)

    def size(self, bucket: BucketKind) -> int:
        return len(self._buckets[bucket])

    def record(self, entity_id: str) -> EntityRecord | None:
        return self._records.get(entity_id)

    def remember(self, record: EntityRecord) -> None:
        self._records[record.entity_id] = record

    def forget(self, entity_id: str) -> None:
        self._records.pop(entity_id, None)

    def current(self, entity_id: str) -> Listing | None:
        """Last applied snapshot of a live listing, ``None`` if absent or removed."""

        record = self._records.get(entity_id)
        return record.listing if record is not None else None

    def clear(self) -> None:
        self._records.clear()
        for table in self._buckets.values():
            table.clear()
