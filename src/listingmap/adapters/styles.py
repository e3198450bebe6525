"""Vendor style lookup backed by the store's ``vendor-categories`` config document."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

import httpx

from listingmap.adapters.http_resilience import ResilientClient
from listingmap.adapters.listing_store.schema import VendorCategoriesDocument
from listingmap.config.http_resilience import CacheConfig
from listingmap.domain.ports.rendering import VendorStyle

if TYPE_CHECKING:
    from collections.abc import Mapping

    from listingmap.config.store import StoreConfig
    from listingmap.domain.ports.rendering import StyleLookup

log = getLogger(__name__)

CONFIG_COLLECTION: Final[str] = "config"
VENDOR_CATEGORIES_DOC: Final[str] = "vendor-categories"
FALLBACK_VENDOR: Final[str] = "other"
VENDOR_CONFIG_TTL_SECONDS: Final[float] = 300.0

DEFAULT_VENDOR_STYLES: Final[Mapping[str, VendorStyle]] = MappingProxyType(
    {
        "bozo-headstash": VendorStyle(color="#8e44ad", icon="B"),
        "gumbo": VendorStyle(color="#e74c3c", icon="G"),
        "deep-fried": VendorStyle(color="#f39c12", icon="D"),
        "high-tolerance": VendorStyle(color="#3498db", icon="H"),
        FALLBACK_VENDOR: VendorStyle(color="#95a5a6", icon="O"),
    }
)


class VendorStyleTable:
    """Pure vendor key lookup; unknown vendors get the ``other`` style when present."""

    def __init__(self, styles: Mapping[str, VendorStyle] | None = None) -> None:
        self._styles = dict(DEFAULT_VENDOR_STYLES if styles is None else styles)

    @classmethod
    def from_vendor_categories(cls, payload: object) -> VendorStyleTable:
        """Build a table from the active items of a ``vendor-categories`` document.

        Falls back to the default table when the document lists no items.
        """

        document = VendorCategoriesDocument.model_validate(payload)
        if not document.items:
            return cls()
        styles = {
            item.key: VendorStyle(color=item.color, icon=item.icon)
            for item in document.items
            if item.is_active
        }
        return cls(styles)

    def __len__(self) -> int:
        return len(self._styles)

    def __contains__(self, vendor_key: object) -> bool:
        return vendor_key in self._styles

    def resolve_style(self, vendor_key: str) -> VendorStyle | None:
        return self._styles.get(vendor_key) or self._styles.get(FALLBACK_VENDOR)


async def fetch_vendor_styles(
    config: StoreConfig,
    *,
    cache: CacheConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> VendorStyleTable:
    """Load the vendor table from the store, keeping the defaults on any failure."""

    resilience = replace(
        config.resilience,
        name=f"{config.resilience.name}-config",
        cache=cache or CacheConfig(backend="sqlite", default_ttl_seconds=VENDOR_CONFIG_TTL_SECONDS),
    )
    url = f"{CONFIG_COLLECTION}/{VENDOR_CATEGORIES_DOC}"
    try:
        async with ResilientClient(resilience, transport=transport) as client:
            response = await client.get(url)
            if response.status_code == httpx.codes.NOT_FOUND:
                log.info("No vendor-categories config in the store; using default styles")
                return VendorStyleTable()
            response.raise_for_status()
            table = VendorStyleTable.from_vendor_categories(response.json())
    except (httpx.HTTPError, ValueError) as exc:
        log.warning("Could not load vendor styles, using defaults: %s", exc)
        return VendorStyleTable()
    log.info("Loaded %d vendor styles", len(table))
    return table


if TYPE_CHECKING:

    def _check_lookup(table: VendorStyleTable) -> StyleLookup:
        return table
