"""GTFS-RT normalizer: feed entities to TrainUpdate / VehiclePosition records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from subway_api.logging import get_logger
from subway_api.models.feeds import FeedRecord, TrainUpdate, VehiclePosition

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)


@dataclass
class NormalizationStats:
    """Per-call counters, logged once per normalized feed."""

    trips: int = 0
    stop_updates: int = 0
    positions: int = 0
    dropped_without_route: int = 0
    dropped_without_stop: int = 0
    dropped_without_time: int = 0
    invalid_times: int = 0


def _ts_to_dt(unix_ts: int) -> datetime | None:
    """Convert a GTFS-RT event time to a tz-aware datetime; 0 means unset.

    Raises:
        ValueError: If the timestamp is outside the representable range.
    """
    if not unix_ts:
        return None
    try:
        return datetime.fromtimestamp(unix_ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"Timestamp out of range: {unix_ts}") from exc


def _event_time(stu: Any, name: str) -> int:
    if not stu.HasField(name):
        return 0
    return getattr(stu, name).time or 0


def _event_delay(stu: Any, name: str) -> int | None:
    if not stu.HasField(name):
        return None
    event = getattr(stu, name)
    return event.delay if event.HasField("delay") else None


class FeedNormalizer:
    """Normalizes decoded GTFS-RT entities into immutable domain records."""

    @staticmethod
    def normalize(
        entities: Iterable[Any],
        feed_id: str,
        observed_at: datetime | None = None,
    ) -> list[FeedRecord]:
        """Normalize entities; see normalize_with_stats."""
        records, _ = FeedNormalizer.normalize_with_stats(entities, feed_id, observed_at)
        return records

    @staticmethod
    def normalize_with_stats(
        entities: Iterable[Any],
        feed_id: str,
        observed_at: datetime | None = None,
    ) -> tuple[list[FeedRecord], NormalizationStats]:
        """Normalize trip updates and vehicle positions.

        Each StopTimeUpdate with a stop id and an arrival or departure time
        becomes one TrainUpdate; a time outside the datetime range is treated
        as unset. Vehicle entities with a route and a position become
        VehiclePosition records. Entities without a route id are counted and
        skipped. Never raises for well-formed entities.

        Returns:
            Tuple of (records, stats).
        """
        now = observed_at or datetime.now(timezone.utc)
        stats = NormalizationStats()
        records: list[FeedRecord] = []

        for entity in entities:
            if entity.HasField("trip_update"):
                records.extend(FeedNormalizer._trip_update_records(entity, feed_id, now, stats))
            if entity.HasField("vehicle"):
                position = FeedNormalizer._vehicle_record(entity, feed_id, now, stats)
                if position is not None:
                    records.append(position)

        if stats.dropped_without_route:
            logger.warning(
                "Dropped entities without route id",
                feed_id=feed_id,
                dropped=stats.dropped_without_route,
            )
        logger.info(
            "Feed normalized",
            feed_id=feed_id,
            trips=stats.trips,
            stop_updates=stats.stop_updates,
            positions=stats.positions,
            dropped_without_stop=stats.dropped_without_stop,
            dropped_without_time=stats.dropped_without_time,
            invalid_times=stats.invalid_times,
            total_records=len(records),
        )
        return records, stats

    @staticmethod
    def _trip_update_records(
        entity: Any,
        feed_id: str,
        now: datetime,
        stats: NormalizationStats,
    ) -> list[TrainUpdate]:
        tu = entity.trip_update
        route_id = tu.trip.route_id if tu.trip.route_id else ""
        if not route_id:
            stats.dropped_without_route += 1
            return []

        trip_id = tu.trip.trip_id if tu.trip.trip_id else ""
        stats.trips += 1
        rows: list[TrainUpdate] = []

        for stu in tu.stop_time_update:
            stop_id = stu.stop_id if stu.stop_id else ""
            if not stop_id:
                stats.dropped_without_stop += 1
                continue

            arrival = FeedNormalizer._event_dt(stu, "arrival", feed_id, stop_id, stats)
            departure = FeedNormalizer._event_dt(stu, "departure", feed_id, stop_id, stats)
            if arrival is None and departure is None:
                stats.dropped_without_time += 1
                continue

            delay = _event_delay(stu, "arrival")
            if delay is None:
                delay = _event_delay(stu, "departure")

            rows.append(
                TrainUpdate(
                    trip_id=trip_id,
                    route_id=route_id,
                    stop_id=stop_id,
                    arrival_time=arrival,
                    departure_time=departure,
                    delay_seconds=delay or 0,
                    feed_id=feed_id,
                    observed_at=now,
                )
            )

        stats.stop_updates += len(rows)
        return rows

    @staticmethod
    def _event_dt(
        stu: Any,
        name: str,
        feed_id: str,
        stop_id: str,
        stats: NormalizationStats,
    ) -> datetime | None:
        """Event time as a datetime; an out-of-range time is treated as unset."""
        unix_ts = _event_time(stu, name)
        try:
            return _ts_to_dt(unix_ts)
        except ValueError:
            stats.invalid_times += 1
            logger.debug(
                "Ignoring out-of-range event time",
                feed_id=feed_id,
                stop_id=stop_id,
                event=name,
                value=unix_ts,
            )
            return None

    @staticmethod
    def _vehicle_record(
        entity: Any,
        feed_id: str,
        now: datetime,
        stats: NormalizationStats,
    ) -> VehiclePosition | None:
        vp = entity.vehicle
        route_id = vp.trip.route_id if vp.HasField("trip") and vp.trip.route_id else ""
        if not route_id:
            # A trip update on the same entity already accounts for it
            if not entity.HasField("trip_update"):
                stats.dropped_without_route += 1
            return None

        # Subway vehicle entities often carry only stop progress, no coordinates
        if not vp.HasField("position"):
            return None

        vehicle_id = vp.vehicle.id if vp.HasField("vehicle") and vp.vehicle.id else None
        stats.positions += 1
        return VehiclePosition(
            trip_id=vp.trip.trip_id if vp.trip.trip_id else "",
            route_id=route_id,
            vehicle_id=vehicle_id,
            latitude=vp.position.latitude,
            longitude=vp.position.longitude,
            bearing=vp.position.bearing if vp.position.HasField("bearing") else None,
            speed=vp.position.speed if vp.position.HasField("speed") else None,
            feed_id=feed_id,
            observed_at=now,
        )
