from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from listingmap.config import ResilienceConfig, RetryPolicy, StoreConfig

if TYPE_CHECKING:
    from pathlib import Path

STORE_URL = "https://store.test/"


@pytest.fixture(autouse=True)
def isolated_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    data_dir = tmp_path / "data"
    monkeypatch.setenv("LISTINGMAP_DATA_DIR", str(data_dir))
    return data_dir


@pytest.fixture
def store_config() -> StoreConfig:
    return StoreConfig(
        base_url=STORE_URL,
        operator="moderator@example.com",
        resilience=ResilienceConfig(
            name="listing-store",
            base_url=STORE_URL,
            timeout_seconds=5.0,
            retry=RetryPolicy(total=0),
        ),
    )


@pytest.fixture
def listing_document() -> dict[str, object]:
    return {
        "id": "E1",
        "status": "Approved",
        "lat": 42.3601,
        "lng": -71.0589,
        "userId": "owner-1",
        "updatedAt": "2024-05-01T12:00:00Z",
        "title": "Gumbo headstash",
        "vendor": "gumbo",
        "price": 25,
        "city": "Boston",
        "description": "  ",
    }
