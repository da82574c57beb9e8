"""Tests for the GTFS-RT protobuf decoder."""

import pytest

from subway_api.services.feeds.decoder import FeedDecodeError, FeedDecoder

from fixtures.feed_fixture import (
    build_empty_feed,
    build_multi_trip_feed,
    build_trip_update_feed,
    build_vehicle_position_feed,
)


class TestFeedDecoder:
    """Unit tests for FeedDecoder."""

    def test_decode_trip_update_feed(self) -> None:
        feed = FeedDecoder.decode(build_trip_update_feed(feed_timestamp=1700000000), "ace")
        assert feed.header.timestamp == 1700000000
        assert len(feed.entity) == 1
        assert feed.entity[0].trip_update.trip.route_id == "A"

    def test_decode_vehicle_position_feed(self) -> None:
        feed = FeedDecoder.decode(build_vehicle_position_feed(), "ace")
        assert feed.entity[0].vehicle.vehicle.id == "veh_001"

    def test_decode_multi_entity(self) -> None:
        feed = FeedDecoder.decode(build_multi_trip_feed(["N", "Q", "R", "W"]), "nqrw")
        assert len(feed.entity) == 4

    def test_decode_empty_feed(self) -> None:
        feed = FeedDecoder.decode(build_empty_feed(), "ace")
        assert len(feed.entity) == 0

    def test_decode_invalid_protobuf_raises(self) -> None:
        with pytest.raises(FeedDecodeError, match="ace"):
            FeedDecoder.decode(b"not a protobuf", "ace")

    def test_get_feed_timestamp_unset(self) -> None:
        feed = FeedDecoder.decode(b"", "ace")
        assert FeedDecoder.get_feed_timestamp(feed) == 0
