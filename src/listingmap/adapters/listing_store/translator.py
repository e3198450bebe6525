"""Translate listing store payloads into domain objects."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from listingmap.domain.model import Listing, ListingStatus, Position
from listingmap.domain.ports.store import DocumentChange, SnapshotBatch

from .schema import ListingDocument, SnapshotBatchPayload

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .schema import DocumentChangePayload

log = getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def to_version(value: datetime | None) -> int:
    """Integer microseconds since the epoch; 0 when the store sent no timestamp."""

    if value is None:
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    delta = value.astimezone(UTC) - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


def parse_listing(
    payload: ListingDocument | Mapping[str, object],
    *,
    doc_id: str | None = None,
    update_time: datetime | None = None,
) -> Listing:
    document = (
        payload if isinstance(payload, ListingDocument) else ListingDocument.model_validate(payload)
    )
    listing_id = doc_id or document.id
    if not listing_id:
        raise ValueError("Listing document has no id")

    try:
        status = ListingStatus(document.status)
    except ValueError as exc:
        raise ValueError(f"Listing {listing_id} has unknown status {document.status!r}") from exc

    position = None
    if document.lat is not None and document.lng is not None:
        position = Position(lat=document.lat, lng=document.lng)

    return Listing(
        id=listing_id,
        status=status,
        version=to_version(document.updated_at or update_time),
        position=position,
        owner_id=document.owner_id,
        display_fields=document.display_fields(),
    )


def parse_change(payload: DocumentChangePayload) -> DocumentChange:
    listing = None
    if payload.data is not None:
        listing = parse_listing(payload.data, doc_id=payload.doc_id, update_time=payload.update_time)
    update_time = to_version(payload.update_time) if payload.update_time is not None else None
    return DocumentChange(
        doc_id=payload.doc_id,
        change_kind=payload.change_kind,
        listing=listing,
        update_time=update_time,
    )


def parse_snapshot(payload: SnapshotBatchPayload | Mapping[str, object]) -> SnapshotBatch:
    batch = (
        payload
        if isinstance(payload, SnapshotBatchPayload)
        else SnapshotBatchPayload.model_validate(payload)
    )
    changes: list[DocumentChange] = []
    for change in batch.changes:
        try:
            changes.append(parse_change(change))
        except ValueError as exc:
            log.warning("Skipping change for %s: %s", change.doc_id, exc)
    return SnapshotBatch(changes=tuple(changes), from_cache=batch.from_cache)


__all__ = ["parse_change", "parse_listing", "parse_snapshot", "to_version"]
