"""Test fixtures: serialized GTFS-RT feeds shaped like the MTA subway feeds."""

from __future__ import annotations

import time

from google.transit import gtfs_realtime_pb2

BASE_TS = 1700000000


def _new_feed(feed_timestamp: int | None = None) -> gtfs_realtime_pb2.FeedMessage:
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "1.0"
    feed.header.timestamp = feed_timestamp or int(time.time())
    return feed


def _add_trip_update(
    feed: gtfs_realtime_pb2.FeedMessage,
    trip_id: str,
    route_id: str,
    stop_updates: list[dict],
) -> None:
    entity = feed.entity.add()
    entity.id = f"tu_{trip_id}"
    tu = entity.trip_update
    tu.trip.trip_id = trip_id
    if route_id:
        tu.trip.route_id = route_id

    for su in stop_updates:
        stu = tu.stop_time_update.add()
        if su.get("stop_id"):
            stu.stop_id = su["stop_id"]
        if "arrival_time" in su:
            stu.arrival.time = su["arrival_time"]
        if "arrival_delay" in su:
            stu.arrival.delay = su["arrival_delay"]
        if "departure_time" in su:
            stu.departure.time = su["departure_time"]
        if "departure_delay" in su:
            stu.departure.delay = su["departure_delay"]


def build_trip_update_feed(
    trip_id: str = "057150_A..N",
    route_id: str = "A",
    stop_updates: list[dict] | None = None,
    feed_timestamp: int | None = None,
) -> bytes:
    """Build a serialized FeedMessage with one TripUpdate entity.

    Args:
        trip_id: The trip identifier.
        route_id: The route identifier; empty leaves it unset.
        stop_updates: Dicts with stop_id and any of arrival_time,
            arrival_delay, departure_time, departure_delay.
        feed_timestamp: Unix timestamp for the feed header.
    """
    feed = _new_feed(feed_timestamp)
    if stop_updates is None:
        stop_updates = [
            {"stop_id": "A28N", "arrival_time": BASE_TS + 60, "departure_time": BASE_TS + 90},
            {"stop_id": "A27N", "arrival_time": BASE_TS + 180, "arrival_delay": 30},
        ]
    _add_trip_update(feed, trip_id, route_id, stop_updates)
    return feed.SerializeToString()


def build_multi_trip_feed(
    route_ids: list[str],
    stops_per_trip: int = 2,
    feed_timestamp: int | None = None,
) -> bytes:
    """Build a feed with one trip per route id, each with timed stop updates."""
    feed = _new_feed(feed_timestamp)
    for i, route_id in enumerate(route_ids):
        _add_trip_update(
            feed,
            trip_id=f"trip_{i:03d}_{route_id}",
            route_id=route_id,
            stop_updates=[
                {"stop_id": f"{route_id}{j:02d}S", "arrival_time": BASE_TS + 60 * (j + 1)}
                for j in range(stops_per_trip)
            ],
        )
    return feed.SerializeToString()


def build_vehicle_position_feed(
    vehicle_id: str = "veh_001",
    trip_id: str = "057150_A..N",
    route_id: str = "A",
    lat: float = 40.7573,
    lon: float = -73.9897,
    with_position: bool = True,
    feed_timestamp: int | None = None,
) -> bytes:
    """Build a serialized FeedMessage with one VehiclePosition entity."""
    feed = _new_feed(feed_timestamp)
    entity = feed.entity.add()
    entity.id = f"vp_{vehicle_id}"
    vp = entity.vehicle
    vp.vehicle.id = vehicle_id
    vp.trip.trip_id = trip_id
    if route_id:
        vp.trip.route_id = route_id
    if with_position:
        vp.position.latitude = lat
        vp.position.longitude = lon
        vp.position.bearing = 90.0
    vp.current_stop_sequence = 3
    vp.stop_id = "A27N"
    return feed.SerializeToString()


def build_empty_feed(feed_timestamp: int | None = None) -> bytes:
    """Build a FeedMessage with no entities."""
    return _new_feed(feed_timestamp).SerializeToString()


def decode_entities(data: bytes) -> list:
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.ParseFromString(data)
    return list(feed.entity)
