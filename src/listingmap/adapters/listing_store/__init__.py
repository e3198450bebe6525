"""Public interface for the listing store adapter."""

from __future__ import annotations

from .client import HttpListingStore
from .schema import (
    DocumentChangePayload,
    DocumentListResponse,
    ListingDocument,
    SnapshotBatchPayload,
    VendorCategoriesDocument,
)
from .translator import parse_listing, parse_snapshot, to_version

__all__ = [
    "DocumentChangePayload",
    "DocumentListResponse",
    "HttpListingStore",
    "ListingDocument",
    "SnapshotBatchPayload",
    "VendorCategoriesDocument",
    "parse_listing",
    "parse_snapshot",
    "to_version",
]
