from __future__ import annotations

import asyncio

import httpx
import pytest

from listingmap.adapters.styles import DEFAULT_VENDOR_STYLES, VendorStyleTable, fetch_vendor_styles
from listingmap.config import CacheConfig, StoreConfig
from listingmap.domain.ports.rendering import VendorStyle

NO_CACHE = CacheConfig(enabled=False)

VENDOR_CATEGORIES = {
    "items": [
        {"key": "gumbo", "name": "Gumbo", "color": "#111111", "icon": "G", "isActive": True},
        {"key": "retired", "name": "Retired", "color": "#222222", "icon": "R", "isActive": False},
        {"key": "other", "name": "Other", "color": "#333333", "icon": "O"},
    ]
}


def test_default_table_falls_back_to_other() -> None:
    table = VendorStyleTable()

    assert table.resolve_style("gumbo") == DEFAULT_VENDOR_STYLES["gumbo"]
    assert table.resolve_style("unheard-of") == DEFAULT_VENDOR_STYLES["other"]
    assert len(table) == 5


def test_table_without_other_has_no_fallback() -> None:
    table = VendorStyleTable({"gumbo": VendorStyle(color="#e74c3c", icon="G")})

    assert table.resolve_style("unheard-of") is None


def test_vendor_categories_keep_active_items_only() -> None:
    table = VendorStyleTable.from_vendor_categories(VENDOR_CATEGORIES)

    assert "gumbo" in table
    assert "retired" not in table
    assert table.resolve_style("gumbo") == VendorStyle(color="#111111", icon="G")
    assert table.resolve_style("retired") == VendorStyle(color="#333333", icon="O")


def test_empty_vendor_categories_use_defaults() -> None:
    table = VendorStyleTable.from_vendor_categories({"items": []})

    assert len(table) == len(DEFAULT_VENDOR_STYLES)


def test_fetch_vendor_styles_reads_config_document(store_config: StoreConfig) -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json=VENDOR_CATEGORIES)

    table = asyncio.run(
        fetch_vendor_styles(store_config, cache=NO_CACHE, transport=httpx.MockTransport(handler))
    )

    assert paths == ["/config/vendor-categories"]
    assert len(table) == 2


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404),
        httpx.Response(500),
        httpx.Response(200, json={"items": [{"key": "broken"}]}),
        httpx.Response(200, content=b"<html>"),
    ],
)
def test_fetch_vendor_styles_falls_back_to_defaults(
    store_config: StoreConfig, response: httpx.Response
) -> None:
    table = asyncio.run(
        fetch_vendor_styles(
            store_config,
            cache=NO_CACHE,
            transport=httpx.MockTransport(lambda _request: response),
        )
    )

    assert len(table) == len(DEFAULT_VENDOR_STYLES)
    assert table.resolve_style("deep-fried") == DEFAULT_VENDOR_STYLES["deep-fried"]
