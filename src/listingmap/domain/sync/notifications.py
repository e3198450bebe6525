"""Side-channel notifications emitted for external consumers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from listingmap.domain.model import BucketKind, Listing, ListingStatus


@dataclass(frozen=True, slots=True)
class OwnerNotification:
    """A listing changed bucket membership; its owner should hear about it."""

    entity_id: str
    owner_id: str | None
    previous_status: ListingStatus
    new_status: ListingStatus


@dataclass(frozen=True, slots=True)
class ActionConfirmed:
    entity_id: str
    status: ListingStatus


@dataclass(frozen=True, slots=True)
class ActionTimedOut:
    entity_id: str
    requested_status: ListingStatus
    waited_seconds: float


@dataclass(frozen=True, slots=True)
class MarkerSelected:
    """A marker was clicked: preview for admin-preview markers, details otherwise."""

    bucket: BucketKind
    listing: Listing
    preview: bool


@dataclass(frozen=True, slots=True)
class StreamDegraded:
    source: ListingStatus | None
    failures: int


type Notification = (
    OwnerNotification | ActionConfirmed | ActionTimedOut | MarkerSelected | StreamDegraded
)
NotificationSink = Callable[[Notification], None]


def discard_notification(_notification: Notification) -> None:
    return None


__all__ = [
    "ActionConfirmed",
    "ActionTimedOut",
    "MarkerSelected",
    "Notification",
    "NotificationSink",
    "OwnerNotification",
    "StreamDegraded",
    "discard_notification",
]
