from __future__ import annotations

import asyncio

import httpx
import pytest

from listingmap.adapters.http_resilience import ResilientClient, build_retry
from listingmap.config import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy


def test_build_retry_copies_policy() -> None:
    retry = build_retry(RetryPolicy(total=7, backoff_factor=0.1))

    assert retry.total == 7
    assert retry.backoff_factor == 0.1


def test_client_without_cache_is_plain() -> None:
    async def scenario() -> bool:
        async with ResilientClient(ResilienceConfig(name="plain")) as client:
            return client.cached

    assert asyncio.run(scenario()) is False


def test_client_with_memory_cache() -> None:
    async def scenario() -> bool:
        config = ResilienceConfig(name="cached", cache=CacheConfig(backend="memory"))
        async with ResilientClient(config) as client:
            return client.cached

    assert asyncio.run(scenario()) is True


def test_unknown_cache_backend_is_rejected() -> None:
    config = ResilienceConfig(name="broken", cache=CacheConfig(backend="redis"))  # type: ignore[arg-type]

    with pytest.raises(ValueError, match="Unsupported cache backend"):
        ResilientClient(config)


def test_requests_use_base_url_headers_and_rate_limit() -> None:
    seen: list[tuple[str, str | None]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((str(request.url), request.headers.get("Authorization")))
        return httpx.Response(200, json={"ok": True})

    config = ResilienceConfig(
        name="store",
        base_url="https://store.test/",
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        default_headers={"Authorization": "Bearer token"},
        retry=RetryPolicy(total=0),
    )

    async def scenario() -> list[int]:
        async with ResilientClient(config, transport=httpx.MockTransport(handler)) as client:
            first = await client.get("listings/E1")
            second = await client.patch("listings/E1", json={"status": "approved"})
            async with client.stream("GET", "listings:listen") as streamed:
                third = streamed.status_code
            return [first.status_code, second.status_code, third]

    assert asyncio.run(scenario()) == [200, 200, 200]
    assert seen == [
        ("https://store.test/listings/E1", "Bearer token"),
        ("https://store.test/listings/E1", "Bearer token"),
        ("https://store.test/listings:listen", "Bearer token"),
    ]
