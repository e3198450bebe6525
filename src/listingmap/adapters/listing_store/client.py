"""HTTP adapter for the remote listing collection and its moderation API."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Self

import httpx
from pydantic import ValidationError

from listingmap.adapters.http_resilience import ResilientClient
from listingmap.config.store import get_store_config
from listingmap.domain.sync.errors import TransportError, WriteError

from .schema import DocumentListResponse, ListingDocument, SnapshotBatchPayload
from .translator import parse_listing, parse_snapshot

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Mapping
    from types import TracebackType

    from listingmap.config.store import StoreConfig
    from listingmap.domain.model import Listing, ListingStatus
    from listingmap.domain.ports.moderation import ModerationWriter
    from listingmap.domain.ports.store import ListingStore, SnapshotBatch

log = getLogger(__name__)

UNKNOWN_OPERATOR = "Unknown"


class HttpListingStore:
    """Listing store and moderation writer over the store's JSON HTTP API."""

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or get_store_config()
        self._client = ResilientClient(self.config.resilience, transport=transport)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, listing_id: str) -> Listing | None:
        try:
            response = await self._client.get(self._path(listing_id))
            if response.status_code == httpx.codes.NOT_FOUND:
                return None
            response.raise_for_status()
            document = ListingDocument.model_validate(response.json())
            return parse_listing(document, doc_id=listing_id)
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to read listing {listing_id}: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"Malformed payload for listing {listing_id}") from exc

    async def get_many(self, listing_ids: Iterable[str]) -> list[Listing]:
        ids = list(dict.fromkeys(listing_ids))
        if not ids:
            return []
        try:
            response = await self._client.post(self._path(":batchGet"), json={"ids": ids})
            response.raise_for_status()
            payload = DocumentListResponse.model_validate(response.json())
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to read {len(ids)} listings: {exc}") from exc
        except ValueError as exc:
            raise TransportError("Malformed batchGet payload") from exc
        return self._parse_documents(payload)

    async def query(self, status: ListingStatus, *, limit: int) -> list[Listing]:
        try:
            response = await self._client.get(
                self.config.collection, params={"status": str(status), "limit": limit}
            )
            response.raise_for_status()
            payload = DocumentListResponse.model_validate(response.json())
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to query {status} listings: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"Malformed payload for {status} query") from exc
        return self._parse_documents(payload)

    async def listen(self, status: ListingStatus | None) -> AsyncIterator[SnapshotBatch]:
        label = str(status) if status is not None else "all"
        params = {"status": str(status)} if status is not None else None
        resilience = self.config.resilience
        timeout = httpx.Timeout(
            resilience.timeout_seconds, read=resilience.stream_read_timeout_seconds
        )
        try:
            async with self._client.stream(
                "GET", self._path(":listen"), params=params, timeout=timeout
            ) as response:
                response.raise_for_status()
                log.debug("Listening for %s listing changes", label)
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        payload = SnapshotBatchPayload.model_validate_json(line)
                    except ValidationError:
                        log.warning("Ignoring malformed %s change batch", label)
                        continue
                    yield parse_snapshot(payload)
        except (httpx.HTTPError, httpx.StreamError) as exc:
            raise TransportError(f"Change stream for {label} listings failed: {exc}") from exc

    async def update_status(
        self,
        listing_id: str,
        status: ListingStatus,
        extra: Mapping[str, object] | None = None,
    ) -> None:
        body: dict[str, object] = {
            "status": str(status),
            "moderatedAt": datetime.now(UTC).isoformat(),
            "moderatedBy": self.config.operator or UNKNOWN_OPERATOR,
        }
        if extra:
            body.update(extra)
        try:
            response = await self._client.patch(self._path(listing_id), json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise WriteError(
                f"Moderation write for listing {listing_id} failed: {exc}",
                listing_id=listing_id,
                status=status,
            ) from exc
        await self._log_moderation(listing_id, status, extra or {})

    async def _log_moderation(
        self, listing_id: str, status: ListingStatus, data: Mapping[str, object]
    ) -> None:
        entry = {
            "action": f"listing_{status}",
            "targetId": listing_id,
            "targetType": "listing",
            "userEmail": self.config.operator,
            "data": dict(data),
            "timestamp": datetime.now(UTC).isoformat(),
        }
        try:
            response = await self._client.post(self.config.audit_collection, json=entry)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.warning("Audit entry for listing %s was not recorded: %s", listing_id, exc)

    def _path(self, suffix: str) -> str:
        if suffix.startswith(":"):
            return f"{self.config.collection}{suffix}"
        return f"{self.config.collection}/{suffix}"

    def _parse_documents(self, payload: DocumentListResponse) -> list[Listing]:
        listings: list[Listing] = []
        for document in payload.documents:
            try:
                listings.append(parse_listing(document))
            except ValueError as exc:
                log.warning("Skipping listing document: %s", exc)
        return listings


if TYPE_CHECKING:

    def _check_ports(store: HttpListingStore) -> tuple[ListingStore, ModerationWriter]:
        return store, store
