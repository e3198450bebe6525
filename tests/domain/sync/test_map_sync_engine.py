from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from listingmap.config.sync import SyncConfig
from listingmap.domain.model import BucketKind, ListingStatus
from listingmap.domain.ports.rendering import VendorStyle
from listingmap.domain.sync import (
    ActionConfirmed,
    ActionInFlight,
    ActionNotPermitted,
    ActionState,
    ActionTimeout,
    MapSyncEngine,
    MarkerSelected,
    OwnerNotification,
    StreamDegraded,
    TransportError,
    WriteError,
)
from tests.support.listings import (
    FakeListingStore,
    FakeModerationWriter,
    FakeRenderSurface,
    ManualClock,
    NotificationRecorder,
    StaticStyles,
    change,
    make_listing,
    removal,
    settle,
)

APPROVED = ListingStatus.APPROVED
PENDING = ListingStatus.PENDING

FAST = SyncConfig(backoff_base_ms=1, backoff_cap_ms=1)


@dataclass
class Rig:
    store: FakeListingStore = field(default_factory=FakeListingStore)
    writer: FakeModerationWriter = field(default_factory=FakeModerationWriter)
    surface: FakeRenderSurface = field(default_factory=FakeRenderSurface)
    notifications: NotificationRecorder = field(default_factory=NotificationRecorder)
    clock: ManualClock = field(default_factory=ManualClock)

    def engine(self, *, privileged: bool = False, config: SyncConfig = FAST) -> MapSyncEngine:
        return MapSyncEngine(
            self.store,
            self.writer,
            self.surface,
            StaticStyles({"gumbo": VendorStyle(color="#e74c3c", icon="G")}),
            privileged=privileged,
            config=config,
            notify=self.notifications,
            clock=self.clock,
        )


def test_start_loads_buckets_and_subscribes() -> None:
    rig = Rig(
        FakeListingStore(
            [
                make_listing("E1", status=APPROVED),
                make_listing("E2", status=PENDING),
                make_listing("E3", status=ListingStatus.REJECTED),
            ]
        )
    )

    async def scenario() -> dict[str | None, int]:
        async with rig.engine(privileged=True) as engine:
            await settle(engine)
            assert engine.running
            return {
                str(status) if status else None: rig.store.subscribers(status)
                for status in (APPROVED, PENDING, None)
            }

    subscribers = asyncio.run(scenario())

    assert subscribers == {"approved": 1, "pending": 1, None: 1}
    assert rig.store.query_calls == [(APPROVED, 50), (PENDING, 50)]


def test_public_session_ignores_pending_listings() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=APPROVED)]))

    async def scenario() -> set[str]:
        async with rig.engine() as engine:
            await settle(engine)
            assert engine.buckets == (BucketKind.PUBLIC,)
            assert len(engine.streams) == 1
            rig.store.publish(APPROVED, change(make_listing("E2", status=PENDING, version=3)))
            await settle(engine)
            return set(rig.surface.markers)

    assert asyncio.run(scenario()) == {"public:E1"}


def test_pending_then_approved_moves_marker() -> None:
    rig = Rig()

    async def scenario() -> tuple[set[str], set[str], list[str]]:
        async with rig.engine(privileged=True) as engine:
            await settle(engine)
            rig.store.publish(PENDING, change(make_listing(status=PENDING, version=1), "added"))
            await settle(engine)
            after_add = set(rig.surface.markers)
            public_after_add = [listing.id for listing in engine.listings(BucketKind.PUBLIC)]

            approved = make_listing(status=APPROVED, version=2)
            rig.store.publish(APPROVED, change(approved, "added"))
            rig.store.publish(PENDING, change(approved, "removed"))
            await settle(engine)
            return after_add, set(rig.surface.markers), public_after_add

    after_add, after_approve, public_after_add = asyncio.run(scenario())

    assert after_add == {"adminPreview:E1"}
    assert public_after_add == []
    assert after_approve == {"public:E1"}
    assert rig.notifications.of_type(OwnerNotification) == [
        OwnerNotification("E1", "owner-1", PENDING, APPROVED)
    ]


def test_rejection_seen_on_moderation_stream_removes_preview() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=PENDING, version=1)]))

    async def scenario() -> set[str]:
        async with rig.engine(privileged=True) as engine:
            await settle(engine)
            rig.store.publish(None, change(make_listing(status=ListingStatus.REJECTED, version=2)))
            await settle(engine)
            return set(rig.surface.markers)

    assert asyncio.run(scenario()) == set()


def test_second_action_in_flight_is_rejected_without_write() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=PENDING)]))

    async def scenario() -> None:
        async with rig.engine(privileged=True) as engine:
            first = await engine.approve("E1")
            with pytest.raises(ActionInFlight):
                await engine.approve("E1")
            assert engine.pending_action("E1") is first

    asyncio.run(scenario())

    assert len(rig.writer.calls) == 1


def test_action_confirmed_by_change_stream() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=PENDING, version=1)]))

    async def scenario() -> tuple[ActionState, set[str], set[str]]:
        async with rig.engine(privileged=True) as engine:
            await settle(engine)
            action = await engine.approve("E1")
            # non-optimistic: nothing moves before the store confirms
            await settle(engine)
            before = set(rig.surface.markers)
            rig.store.publish(APPROVED, change(make_listing(status=APPROVED, version=2)))
            await settle(engine)
            return await action.wait(), before, set(rig.surface.markers)

    state, before, after = asyncio.run(scenario())

    assert state is ActionState.CONFIRMED
    assert before == {"adminPreview:E1"}
    assert after == {"public:E1"}
    assert rig.notifications.of_type(ActionConfirmed) == [ActionConfirmed("E1", APPROVED)]


def test_unconfirmed_action_times_out() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=PENDING)]))
    config = SyncConfig(action_timeout_ms=10, backoff_base_ms=1, backoff_cap_ms=1)

    async def scenario() -> None:
        async with rig.engine(privileged=True, config=config) as engine:
            action = await engine.reject("E1", "blurry photos")
            with pytest.raises(ActionTimeout):
                await asyncio.wait_for(action.wait(), timeout=1.0)
            assert engine.pending_action("E1") is None

    asyncio.run(scenario())

    assert rig.surface.markers == {}


def test_write_error_leaves_map_untouched() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=PENDING)]))
    error = WriteError("permission denied", listing_id="E1", status=APPROVED)
    rig.writer.error = error

    async def scenario() -> tuple[list[tuple[str, str]], list[tuple[str, str]]]:
        async with rig.engine(privileged=True) as engine:
            await settle(engine)
            calls = list(rig.surface.calls)
            with pytest.raises(WriteError) as excinfo:
                await engine.approve("E1")
            assert excinfo.value is error
            await settle(engine)
            assert engine.pending_action("E1") is None
            assert engine.cache.buckets_of("E1") == {BucketKind.ADMIN_PREVIEW}
            return calls, list(rig.surface.calls)

    before, after = asyncio.run(scenario())

    assert before == after


def test_public_session_cannot_moderate() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=PENDING)]))

    async def scenario() -> None:
        async with rig.engine() as engine:
            with pytest.raises(ActionNotPermitted):
                await engine.approve("E1")
            with pytest.raises(ActionNotPermitted):
                await engine.submit("E1", ListingStatus.FLAGGED, {"flagReason": "spam"})

    asyncio.run(scenario())

    assert rig.writer.calls == []


def test_stale_bucket_is_replaced_by_fresh_fetch() -> None:
    rig = Rig(
        FakeListingStore(
            [make_listing("E1", status=APPROVED), make_listing("E2", status=APPROVED)]
        )
    )

    async def scenario() -> tuple[list[BucketKind], set[str], set[str]]:
        async with rig.engine() as engine:
            await settle(engine)
            # store changes the stream never reported
            rig.store.delete("E1")
            rig.store.put(make_listing("E3", status=APPROVED))
            rig.clock.advance(FAST.cache_timeout_seconds + 1)

            stale = await engine.check_staleness()
            fetched = {listing.id for listing in await rig.store.query(APPROVED, limit=50)}
            cached = {listing.id for listing in engine.listings(BucketKind.PUBLIC)}
            return stale, fetched, cached

    stale, fetched, cached = asyncio.run(scenario())

    assert stale == [BucketKind.PUBLIC]
    assert cached == fetched == {"E2", "E3"}
    assert set(rig.surface.markers) == {"public:E2", "public:E3"}


def test_stream_deliveries_keep_bucket_fresh() -> None:
    rig = Rig()

    async def scenario() -> list[BucketKind]:
        async with rig.engine() as engine:
            await settle(engine)
            rig.clock.advance(FAST.cache_timeout_seconds - 1)
            rig.store.publish(APPROVED, change(make_listing(status=APPROVED)))
            await settle(engine)
            rig.clock.advance(FAST.cache_timeout_seconds - 1)
            return await engine.check_staleness()

    assert asyncio.run(scenario()) == []
    assert len(rig.store.query_calls) == 1


def test_failed_resync_keeps_last_known_state() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=APPROVED)]))

    async def scenario() -> set[str]:
        async with rig.engine() as engine:
            await settle(engine)
            rig.store.query_error = TransportError("offline")
            rig.clock.advance(FAST.cache_timeout_seconds + 1)
            await engine.check_staleness()
            return set(rig.surface.markers)

    assert asyncio.run(scenario()) == {"public:E1"}


def test_reconnect_triggers_resync() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=APPROVED)]))

    async def scenario() -> set[str]:
        async with rig.engine() as engine:
            await settle(engine)
            # E2 shows up while the stream is down
            rig.store.put(make_listing("E2", status=APPROVED))
            rig.store.break_stream(APPROVED)
            await asyncio.sleep(0.05)
            await settle(engine)
            e3 = make_listing("E3", status=APPROVED)
            rig.store.put(e3)
            rig.store.publish(APPROVED, change(e3, "added"))
            await settle(engine)
            return set(rig.surface.markers)

    assert asyncio.run(scenario()) == {"public:E1", "public:E2", "public:E3"}
    assert len(rig.store.query_calls) == 2


def test_degraded_stream_is_reported_and_refresh_recovers() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=APPROVED)]))
    rig.store.listen_errors = [TransportError("down")]
    config = SyncConfig(backoff_base_ms=1, backoff_cap_ms=1, transport_retry_ceiling=0)

    async def scenario() -> tuple[bool, int]:
        async with rig.engine(config=config) as engine:
            await settle(engine)
            degraded_active = engine.streams[0].active
            await engine.refresh()
            await settle(engine)
            return degraded_active, rig.store.subscribers(APPROVED)

    degraded_active, subscribers = asyncio.run(scenario())

    assert degraded_active is False
    assert subscribers == 1
    assert rig.notifications.of_type(StreamDegraded) == [StreamDegraded(APPROVED, 1)]
    assert set(rig.surface.markers) == set()


def test_marker_click_selects_listing() -> None:
    rig = Rig(
        FakeListingStore([make_listing("E1", status=APPROVED), make_listing("E2", status=PENDING)])
    )

    async def scenario() -> None:
        async with rig.engine(privileged=True) as engine:
            await settle(engine)
            rig.surface.click("public:E1")
            rig.surface.click("adminPreview:E2")
            await settle(engine)

    asyncio.run(scenario())

    selected = rig.notifications.of_type(MarkerSelected)
    assert [(n.bucket, n.listing.id, n.preview) for n in selected] == [
        (BucketKind.PUBLIC, "E1", False),
        (BucketKind.ADMIN_PREVIEW, "E2", True),
    ]


def test_removal_event_removes_marker() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=APPROVED, version=1)]))

    async def scenario() -> set[str]:
        async with rig.engine() as engine:
            await settle(engine)
            rig.store.publish(APPROVED, removal("E1", update_time=2))
            await settle(engine)
            return set(rig.surface.markers)

    assert asyncio.run(scenario()) == set()


def test_stop_clears_map_and_is_idempotent() -> None:
    rig = Rig(FakeListingStore([make_listing("E1", status=APPROVED)]))

    async def scenario() -> tuple[MapSyncEngine, int]:
        engine = rig.engine(privileged=True)
        await engine.start()
        await settle(engine)
        pending = await engine.reject("E1", "duplicate listing")
        await engine.stop()
        await engine.stop()
        await settle()
        assert pending.state is ActionState.CANCELLED
        return engine, rig.store.subscribers(APPROVED) + rig.store.subscribers(None)

    engine, subscribers = asyncio.run(scenario())

    assert rig.surface.markers == {}
    assert engine.running is False
    assert subscribers == 0
    assert engine.cache.size(BucketKind.PUBLIC) == 0


def test_bucket_visibility_is_forwarded() -> None:
    rig = Rig()

    async def scenario() -> None:
        async with rig.engine(privileged=True) as engine:
            engine.set_bucket_visible(BucketKind.ADMIN_PREVIEW, False)

    asyncio.run(scenario())

    assert rig.surface.visibility == {"adminPreview": False}
