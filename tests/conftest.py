"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Iterator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from subway_api.main import app
from subway_api.models.feeds import FeedSource
from subway_api.services.feeds import aggregator as aggregator_module
from subway_api.services.feeds.aggregator import FeedAggregator, reset_aggregator
from subway_api.services.feeds.cache import FeedCache
from subway_api.services.feeds.registry import FeedRegistry
from subway_api.services.stations.resolver import reset_resolver

from fixtures.feed_fixture import build_multi_trip_feed, build_trip_update_feed
from fixtures.stub_fetcher import StubFetcher


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1700000000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_singletons() -> Iterator[None]:
    reset_aggregator()
    reset_resolver()
    yield
    reset_aggregator()
    reset_resolver()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stub_fetcher() -> StubFetcher:
    return StubFetcher(
        {
            "ace": build_trip_update_feed(),
            "nqrw": build_multi_trip_feed(["N", "Q"]),
        }
    )


@pytest.fixture
def installed_aggregator(
    monkeypatch: pytest.MonkeyPatch, stub_fetcher: StubFetcher, clock: FakeClock
) -> FeedAggregator:
    """Aggregator over two stubbed feeds, installed as the app singleton."""
    registry = FeedRegistry(
        [
            FeedSource(feed_id="ace", endpoint="https://example.com/ace"),
            FeedSource(feed_id="nqrw", endpoint="https://example.com/nqrw"),
        ]
    )
    aggregator = FeedAggregator(
        registry=registry,
        cache=FeedCache(ttl_sec=30, clock=clock),
        fetcher=stub_fetcher,  # type: ignore[arg-type]
        timeout_sec=1.0,
    )
    monkeypatch.setattr(aggregator_module, "_aggregator_instance", aggregator)
    return aggregator


@pytest.fixture
async def client(installed_aggregator: FeedAggregator) -> AsyncGenerator[AsyncClient, Any]:
    """Async HTTP client against the app with stubbed feeds."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
