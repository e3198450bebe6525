"""Domain port definitions for adapters."""

from __future__ import annotations

from .moderation import ModerationWriter
from .rendering import ClickHandler, MarkerStyle, RenderSurface, StyleLookup, VendorStyle
from .store import DocumentChange, ListingStore, SnapshotBatch

__all__ = [
    "ClickHandler",
    "DocumentChange",
    "ListingStore",
    "MarkerStyle",
    "ModerationWriter",
    "RenderSurface",
    "SnapshotBatch",
    "StyleLookup",
    "VendorStyle",
]
