"""Error taxonomy for the synchronization core.

Only ``WriteError``, ``ActionInFlight``, ``ActionTimeout`` and
``ActionNotPermitted`` reach operators. ``TransportError`` is recovered locally
by reconnect + resync, ``OrderingConflict`` is logged and dropped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from listingmap.domain.model import ChangeKind, ListingStatus


class MapSyncError(RuntimeError):
    """Base class for synchronization errors."""


class TransportError(MapSyncError):
    """Raised by store adapters when a read or subscription fails in transit."""


class WriteError(MapSyncError):
    """Raised when the moderation-write API rejects a status transition."""

    def __init__(self, message: str, *, listing_id: str, status: ListingStatus) -> None:
        super().__init__(message)
        self.listing_id = listing_id
        self.status = status


class ActionInFlight(MapSyncError):
    """Raised when an admin action is submitted while another is outstanding."""

    def __init__(self, listing_id: str) -> None:
        super().__init__(f"An admin action for listing {listing_id} is already in flight")
        self.listing_id = listing_id


class ActionTimeout(MapSyncError):
    """Raised to waiters when no confirming change arrived within the window."""

    def __init__(self, listing_id: str, status: ListingStatus, waited_seconds: float) -> None:
        super().__init__(
            f"Listing {listing_id} was not confirmed as {status} within {waited_seconds:.1f}s"
        )
        self.listing_id = listing_id
        self.status = status
        self.waited_seconds = waited_seconds


class ActionNotPermitted(MapSyncError):
    """Raised when a non-privileged session tries to moderate."""


class OrderingConflict(MapSyncError):
    """Describes a stale or duplicate change event that was not applied."""

    def __init__(
        self,
        listing_id: str,
        *,
        kind: ChangeKind,
        version: int,
        current_version: int,
        reason: str,
    ) -> None:
        super().__init__(
            f"Dropped {kind} for {listing_id}: version {version} vs {current_version} ({reason})"
        )
        self.listing_id = listing_id
        self.kind = kind
        self.version = version
        self.current_version = current_version
        self.reason = reason


USER_VISIBLE_ERRORS: tuple[type[MapSyncError], ...] = (
    WriteError,
    ActionInFlight,
    ActionTimeout,
    ActionNotPermitted,
)

__all__ = [
    "USER_VISIBLE_ERRORS",
    "ActionInFlight",
    "ActionNotPermitted",
    "ActionTimeout",
    "MapSyncError",
    "OrderingConflict",
    "TransportError",
    "WriteError",
]
