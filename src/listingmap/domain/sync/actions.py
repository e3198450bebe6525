"""Operator status transitions with non-optimistic confirmation.

An action never touches the cache. It is written through the moderation port
and stays pending until the change stream delivers a snapshot carrying the
requested status, or until its confirmation timer runs out.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from listingmap.domain.model import ListingStatus

from .errors import ActionInFlight, ActionTimeout
from .notifications import (
    ActionConfirmed,
    ActionTimedOut,
    NotificationSink,
    discard_notification,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from listingmap.domain.model import Listing
    from listingmap.domain.ports.moderation import ModerationWriter

    from .dispatcher import SerialDispatcher

log = getLogger(__name__)

CurrentListing = Callable[[str], "Listing | None"]


class ActionState(StrEnum):
    SUBMITTING = "submitting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(slots=True, eq=False)
class PendingAdminAction:
    entity_id: str
    requested_status: ListingStatus
    submitted_at: datetime
    state: ActionState = ActionState.SUBMITTING
    waited_seconds: float = 0.0
    _finished: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    async def wait(self) -> ActionState:
        """Wait for the outcome; raises :class:`ActionTimeout` if it was never confirmed."""

        await self._finished.wait()
        if self.state is ActionState.TIMED_OUT:
            raise ActionTimeout(self.entity_id, self.requested_status, self.waited_seconds)
        return self.state

    def settle(self, state: ActionState) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        self.state = state
        self._finished.set()


class AdminActionCoordinator:
    """Track at most one outstanding admin action per listing."""

    def __init__(
        self,
        writer: ModerationWriter,
        dispatcher: SerialDispatcher,
        *,
        current: CurrentListing,
        timeout_seconds: float,
        notify: NotificationSink = discard_notification,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._writer = writer
        self._dispatcher = dispatcher
        self._current = current
        self._timeout = timeout_seconds
        self._notify = notify
        self._clock = clock
        self._pending: dict[str, PendingAdminAction] = {}

    def pending(self, entity_id: str) -> PendingAdminAction | None:
        return self._pending.get(entity_id)

    @property
    def outstanding(self) -> int:
        return len(self._pending)

    async def submit(
        self,
        entity_id: str,
        status: ListingStatus,
        extra: Mapping[str, object] | None = None,
    ) -> PendingAdminAction:
        """Write ``status`` for ``entity_id`` and start waiting for its confirmation.

        The action is recorded before the write is sent, so a second submit
        for the same listing fails with :class:`ActionInFlight` while the
        write is still in flight; a failed write releases it again.
        """

        if entity_id in self._pending:
            raise ActionInFlight(entity_id)

        action = PendingAdminAction(entity_id, status, self._clock())
        self._pending[entity_id] = action
        log.info("Submitting %s for listing %s", status, entity_id)
        try:
            await self._writer.update_status(entity_id, status, extra)
        except BaseException:
            self._release(action)
            raise
        await self._dispatcher.call(partial(self._arm, action))
        return action

    async def approve(self, entity_id: str) -> PendingAdminAction:
        return await self.submit(entity_id, ListingStatus.APPROVED)

    async def reject(self, entity_id: str, reason: str) -> PendingAdminAction:
        return await self.submit(entity_id, ListingStatus.REJECTED, {"rejectionReason": reason})

    async def flag(self, entity_id: str, reason: str) -> PendingAdminAction:
        return await self.submit(entity_id, ListingStatus.FLAGGED, {"flagReason": reason})

    async def reset(self, entity_id: str) -> PendingAdminAction:
        return await self.submit(
            entity_id,
            ListingStatus.PENDING,
            {"rejectionReason": None, "flagReason": None},
        )

    def confirm(self, listing: Listing) -> None:
        """Observer for applied snapshots; runs on the dispatcher worker."""

        action = self._pending.get(listing.id)
        if action is None or action.state is not ActionState.AWAITING_CONFIRMATION:
            return
        if listing.status == action.requested_status:
            self._confirm(action)

    def cancel_all(self) -> None:
        for action in list(self._pending.values()):
            self._release(action)
            action.settle(ActionState.CANCELLED)

    def _arm(self, action: PendingAdminAction) -> None:
        if self._pending.get(action.entity_id) is not action:
            return
        current = self._current(action.entity_id)
        if current is not None and current.status == action.requested_status:
            self._confirm(action)
            return
        action.state = ActionState.AWAITING_CONFIRMATION
        loop = asyncio.get_running_loop()
        action.timer = loop.call_later(
            self._timeout, self._dispatcher.post, partial(self._expire, action)
        )

    def _confirm(self, action: PendingAdminAction) -> None:
        self._release(action)
        action.settle(ActionState.CONFIRMED)
        log.info("Listing %s confirmed as %s", action.entity_id, action.requested_status)
        self._notify(ActionConfirmed(action.entity_id, action.requested_status))

    def _expire(self, action: PendingAdminAction) -> None:
        if self._pending.get(action.entity_id) is not action:
            return
        if action.state is not ActionState.AWAITING_CONFIRMATION:
            return
        self._release(action)
        action.waited_seconds = self._timeout
        action.settle(ActionState.TIMED_OUT)
        log.warning(
            "No confirmation for %s on listing %s within %.1fs",
            action.requested_status,
            action.entity_id,
            self._timeout,
        )
        self._notify(ActionTimedOut(action.entity_id, action.requested_status, self._timeout))

    def _release(self, action: PendingAdminAction) -> None:
        if self._pending.get(action.entity_id) is action:
            del self._pending[action.entity_id]


__all__ = ["ActionState", "AdminActionCoordinator", "PendingAdminAction"]
