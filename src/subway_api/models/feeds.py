"""Feed-side domain records: sources, normalized updates, cache entries, results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _epoch_iso(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class FeedSource:
    """A registered upstream feed."""

    feed_id: str
    endpoint: str


@dataclass(frozen=True)
class TrainUpdate:
    """One predicted stop visit taken from a trip update's stop-time entry."""

    trip_id: str
    route_id: str
    stop_id: str
    arrival_time: Optional[datetime]
    departure_time: Optional[datetime]
    delay_seconds: int
    feed_id: str
    observed_at: datetime

    is_vehicle_position = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "stop",
            "trip_id": self.trip_id,
            "route_id": self.route_id,
            "stop_id": self.stop_id,
            "arrival_time": _iso(self.arrival_time),
            "departure_time": _iso(self.departure_time),
            "delay_seconds": self.delay_seconds,
            "feed_id": self.feed_id,
            "observed_at": self.observed_at.isoformat(),
        }


@dataclass(frozen=True)
class VehiclePosition:
    """Position-only update; carries coordinates instead of a stop id."""

    trip_id: str
    route_id: str
    vehicle_id: Optional[str]
    latitude: float
    longitude: float
    bearing: Optional[float]
    speed: Optional[float]
    feed_id: str
    observed_at: datetime

    is_vehicle_position = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "position",
            "trip_id": self.trip_id,
            "route_id": self.route_id,
            "vehicle_id": self.vehicle_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "bearing": self.bearing,
            "speed": self.speed,
            "feed_id": self.feed_id,
            "observed_at": self.observed_at.isoformat(),
        }


FeedRecord = Union[TrainUpdate, VehiclePosition]


@dataclass(frozen=True)
class CacheEntry:
    """Last successful normalized result for one feed."""

    feed_id: str
    data: Tuple[FeedRecord, ...]
    fetched_at: float
    # Monotonic clock reading at store time; TTL age is measured from this
    stored_at: float


@dataclass(frozen=True)
class FeedResult:
    """Outcome of resolving one feed during an aggregation call."""

    feed_id: str
    data: Tuple[FeedRecord, ...] = ()
    cached: bool = False
    stale: bool = False
    failed: bool = False
    reason: Optional[str] = None
    fetched_at: Optional[float] = None
    cache_age_sec: Optional[float] = None

    @classmethod
    def fresh(cls, entry: CacheEntry) -> FeedResult:
        return cls(feed_id=entry.feed_id, data=entry.data, fetched_at=entry.fetched_at)

    @classmethod
    def from_cache(
        cls,
        entry: CacheEntry,
        age_sec: float,
        stale: bool = False,
        reason: Optional[str] = None,
    ) -> FeedResult:
        return cls(
            feed_id=entry.feed_id,
            data=entry.data,
            cached=True,
            stale=stale,
            reason=reason,
            fetched_at=entry.fetched_at,
            cache_age_sec=age_sec,
        )

    @classmethod
    def failure(cls, feed_id: str, reason: str) -> FeedResult:
        return cls(feed_id=feed_id, failed=True, reason=reason)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        if self.failed:
            return {"feed_id": self.feed_id, "failed": True, "reason": self.reason}

        payload: Dict[str, Any] = {
            "feed_id": self.feed_id,
            "data": [record.to_dict() for record in self.data],
            "cached": self.cached,
            "fetched_at": _epoch_iso(self.fetched_at),
        }
        if self.cache_age_sec is not None:
            payload["cache_age_ms"] = int(self.cache_age_sec * 1000)
        if self.stale:
            payload["stale"] = True
            payload["reason"] = self.reason
        return payload


@dataclass
class AggregationSummary:
    """Counts and timings for one aggregation call."""

    successful_feeds: int = 0
    failed_feeds: int = 0
    total_feeds: int = 0
    total_records: int = 0
    total_routes: int = 0
    total_stations: int = 0
    route_stats: Dict[str, int] = field(default_factory=dict)
    processing_time_ms: int = 0
    timestamp: str = ""

    @classmethod
    def build(
        cls,
        successes: List[FeedResult],
        failures: List[FeedResult],
        processing_time_ms: int,
    ) -> AggregationSummary:
        route_stats: Dict[str, int] = {}
        stations = set()
        total_records = 0

        for result in successes:
            total_records += len(result.data)
            for record in result.data:
                route_stats[record.route_id] = route_stats.get(record.route_id, 0) + 1
                if not record.is_vehicle_position:
                    stations.add(record.stop_id)

        return cls(
            successful_feeds=len(successes),
            failed_feeds=len(failures),
            total_feeds=len(successes) + len(failures),
            total_records=total_records,
            total_routes=len(route_stats),
            total_stations=len(stations),
            route_stats=dict(sorted(route_stats.items())),
            processing_time_ms=processing_time_ms,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "successful_feeds": self.successful_feeds,
            "failed_feeds": self.failed_feeds,
            "total_feeds": self.total_feeds,
            "total_records": self.total_records,
            "total_routes": self.total_routes,
            "total_stations": self.total_stations,
            "route_stats": self.route_stats,
            "processing_time_ms": self.processing_time_ms,
            "timestamp": self.timestamp,
        }


@dataclass
class AggregationReport:
    """Successes and failures of a batch fetch plus its summary."""

    successes: List[FeedResult]
    failures: List[FeedResult]
    summary: AggregationSummary

    def merged_records(self) -> List[FeedRecord]:
        """All records across successful feeds."""
        return [record for result in self.successes for record in result.data]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feeds": [result.to_dict() for result in self.successes],
            "failures": [result.to_dict() for result in self.failures],
            "summary": self.summary.to_dict(),
        }
