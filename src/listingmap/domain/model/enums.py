"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ListingStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"


class ChangeKind(StrEnum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    # synthetic: emitted once after a reconnect, marks a possible gap
    RESYNCED = "resynced"


class BucketKind(StrEnum):
    """Privilege-scoped marker sets rendered on the map."""

    PUBLIC = "public"
    ADMIN_PREVIEW = "adminPreview"


class DeltaKind(StrEnum):
    UPSERT = "upsert"
    REMOVE = "remove"
