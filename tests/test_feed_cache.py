"""Tests for the per-feed TTL cache."""

import time
from datetime import datetime, timezone

import pytest

from subway_api.models.feeds import TrainUpdate
from subway_api.services.feeds.cache import FeedCache

EPSILON = 0.001
WALL_TS = 1700000000.0


def _update(stop_id: str = "A27N") -> TrainUpdate:
    return TrainUpdate(
        trip_id="trip_1",
        route_id="A",
        stop_id=stop_id,
        arrival_time=None,
        departure_time=datetime(2023, 11, 14, tzinfo=timezone.utc),
        delay_seconds=0,
        feed_id="ace",
        observed_at=datetime(2023, 11, 14, tzinfo=timezone.utc),
    )


class TestFeedCache:
    """Unit tests for FeedCache."""

    def test_get_missing_returns_none(self, clock) -> None:
        cache = FeedCache(ttl_sec=30, clock=clock)
        assert cache.get("ace") is None
        assert cache.is_valid("ace") is False

    def test_put_stamps_fetched_at(self, clock) -> None:
        cache = FeedCache(ttl_sec=30, clock=clock)
        entry = cache.put("ace", [_update()])

        assert entry is not None
        assert entry.stored_at == clock.now
        assert cache.get("ace") is entry
        assert entry.data == (_update(),)

    def test_valid_just_before_ttl(self, clock) -> None:
        cache = FeedCache(ttl_sec=30, clock=clock)
        cache.put("ace", [_update()])

        clock.advance(30 - EPSILON)
        assert cache.is_valid("ace") is True

    def test_invalid_just_after_ttl(self, clock) -> None:
        cache = FeedCache(ttl_sec=30, clock=clock)
        cache.put("ace", [_update()])

        clock.advance(30 + EPSILON)
        assert cache.is_valid("ace") is False
        # Expired entries remain readable
        assert cache.get("ace") is not None

    def test_invalid_exactly_at_ttl(self, clock) -> None:
        cache = FeedCache(ttl_sec=30, clock=clock)
        cache.put("ace", [_update()])

        clock.advance(30)
        assert cache.is_valid("ace") is False

    def test_put_replaces_whole_entry(self, clock) -> None:
        cache = FeedCache(ttl_sec=30, clock=clock)
        first = cache.put("ace", [_update("A27N"), _update("A28N")])
        clock.advance(10)
        second = cache.put("ace", [_update("A32S")])

        assert first is not None and second is not None
        assert cache.get("ace") is second
        assert [u.stop_id for u in second.data] == ["A32S"]
        assert len(cache) == 1
        # Earlier entry is untouched
        assert [u.stop_id for u in first.data] == ["A27N", "A28N"]

    def test_entries_are_independent_per_feed(self, clock) -> None:
        cache = FeedCache(ttl_sec=30, clock=clock)
        cache.put("ace", [_update()])
        clock.advance(20)
        cache.put("g", [])
        clock.advance(15)

        assert cache.is_valid("ace") is False
        assert cache.is_valid("g") is True

    def test_reset_clears_everything(self, clock) -> None:
        cache = FeedCache(ttl_sec=30, clock=clock)
        cache.put("ace", [_update()])
        cache.put("g", [])

        cache.reset()

        assert len(cache) == 0
        assert cache.get("ace") is None

    def test_write_from_before_reset_is_discarded(self, clock) -> None:
        cache = FeedCache(ttl_sec=30, clock=clock)
        generation = cache.generation
        cache.reset()

        assert cache.put("ace", [_update()], generation=generation) is None
        assert cache.get("ace") is None
        assert cache.put("ace", [_update()], generation=cache.generation) is not None

    def test_snapshot(self, clock) -> None:
        cache = FeedCache(ttl_sec=30, clock=clock, wall_clock=lambda: WALL_TS)
        cache.put("ace", [_update(), _update("A28N")])

        rows = cache.snapshot(["ace", "g"])

        assert rows[0]["feed_id"] == "ace"
        assert rows[0]["record_count"] == 2
        assert rows[0]["is_valid"] is True
        assert rows[0]["last_update"] == "2023-11-14T22:13:20+00:00"
        assert rows[1] == {
            "feed_id": "g",
            "cached": False,
            "record_count": 0,
            "last_update": None,
            "is_valid": False,
        }

    @pytest.mark.parametrize("ttl", [30, 45])
    def test_age(self, clock, ttl: int) -> None:
        cache = FeedCache(ttl_sec=ttl, clock=clock)
        entry = cache.put("ace", [])
        clock.advance(12.5)
        assert entry is not None
        assert cache.age(entry) == pytest.approx(12.5)

    def test_wall_clock_step_back_does_not_extend_ttl(self, clock) -> None:
        wall = {"now": 1700000000.0}
        cache = FeedCache(ttl_sec=30, clock=clock, wall_clock=lambda: wall["now"])
        cache.put("ace", [_update()])

        # Wall time jumps back an hour while real time moves past the TTL
        wall["now"] -= 3600
        clock.advance(31)

        assert cache.is_valid("ace") is False
        assert cache.get("ace").fetched_at == 1700000000.0

    def test_default_clock_is_monotonic(self) -> None:
        cache = FeedCache(ttl_sec=30)
        entry = cache.put("ace", [])

        assert entry is not None
        assert entry.stored_at <= time.monotonic()
        assert 0 <= cache.age(entry) < 30
        assert cache.snapshot(["ace"])[0]["last_update"] is not None
