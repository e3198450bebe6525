"""Domain model for map synchronization."""

from __future__ import annotations

from .enums import BucketKind, ChangeKind, DeltaKind, ListingStatus
from .listing import Listing, Position

__all__ = [
    "BucketKind",
    "ChangeKind",
    "DeltaKind",
    "Listing",
    "ListingStatus",
    "Position",
]
