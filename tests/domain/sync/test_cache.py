from __future__ import annotations

from listingmap.domain.model import BucketKind, ChangeKind
from listingmap.domain.sync.cache import CacheEntry, EntityCache, EntityRecord
from listingmap.domain.sync.events import MarkerHandle
from tests.support.listings import make_listing


def _entry(listing_id: str, bucket: BucketKind, *, version: int = 1) -> CacheEntry:
    listing = make_listing(listing_id, version=version)
    return CacheEntry(listing, bucket, MarkerHandle(bucket, listing_id), last_seen_at=0.0)


def test_put_replaces_entry_for_same_key() -> None:
    cache = EntityCache()
    cache.put(_entry("E1", BucketKind.PUBLIC, version=1))
    cache.put(_entry("E1", BucketKind.PUBLIC, version=2))

    assert cache.size(BucketKind.PUBLIC) == 1
    entry = cache.get("E1", BucketKind.PUBLIC)
    assert entry is not None
    assert entry.listing.version == 2


def test_entries_are_kept_per_bucket() -> None:
    cache = EntityCache()
    cache.put(_entry("E1", BucketKind.PUBLIC))
    cache.put(_entry("E1", BucketKind.ADMIN_PREVIEW))

    assert cache.buckets_of("E1") == {BucketKind.PUBLIC, BucketKind.ADMIN_PREVIEW}
    removed = cache.remove("E1", BucketKind.PUBLIC)
    assert removed is not None
    assert removed.key == ("E1", BucketKind.PUBLIC)
    assert cache.buckets_of("E1") == {BucketKind.ADMIN_PREVIEW}
    assert cache.remove("E1", BucketKind.PUBLIC) is None


def test_for_each_in_bucket_tolerates_removal() -> None:
    cache = EntityCache()
    for listing_id in ("E1", "E2", "E3"):
        cache.put(_entry(listing_id, BucketKind.PUBLIC))

    visited: list[str] = []

    def evict(entry: CacheEntry) -> None:
        visited.append(entry.entity_id)
        cache.remove(entry.entity_id, BucketKind.PUBLIC)

    cache.for_each_in_bucket(BucketKind.PUBLIC, evict)

    assert sorted(visited) == ["E1", "E2", "E3"]
    assert cache.size(BucketKind.PUBLIC) == 0


def test_records_track_tombstones() -> None:
    cache = EntityCache()
    listing = make_listing("E1", version=4)
    cache.remember(EntityRecord("E1", 4, ChangeKind.ADDED, listing))

    assert cache.current("E1") == listing

    cache.remember(EntityRecord("E1", 5, ChangeKind.REMOVED))
    record = cache.record("E1")
    assert record is not None
    assert record.removed is True
    assert record.version == 5
    assert cache.current("E1") is None

    cache.forget("E1")
    assert cache.record("E1") is None


def test_clear_drops_everything() -> None:
    cache = EntityCache()
    cache.put(_entry("E1", BucketKind.PUBLIC))
    cache.remember(EntityRecord("E1", 1, ChangeKind.ADDED, make_listing("E1")))

    cache.clear()

    assert cache.entity_ids(BucketKind.PUBLIC) == frozenset()
    assert cache.record("E1") is None
