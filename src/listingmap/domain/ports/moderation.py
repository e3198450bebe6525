"""Port for writing moderation decisions back to the store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from listingmap.domain.model import ListingStatus


@runtime_checkable
class ModerationWriter(Protocol):
    """Apply a status transition and record an audit entry.

    Retrying with the same target status must be safe. Failures raise ``WriteError``.
    """

    async def update_status(
        self,
        listing_id: str,
        status: ListingStatus,
        extra: Mapping[str, object] | None = None,
    ) -> None: ...


__all__ = ["ModerationWriter"]
