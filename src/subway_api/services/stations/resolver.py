"""Maps raw feed stop codes to canonical stations with coordinates."""

from __future__ import annotations

from typing import TYPE_CHECKING

from subway_api.config import get_settings
from subway_api.logging import get_logger
from subway_api.models.stations import StationGroup, StationMatch, StationPlacement
from subway_api.services.stations.catalog import StationCatalog

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from subway_api.models.feeds import FeedRecord
    from subway_api.models.stations import MatchStrategy, StationRecord

logger = get_logger(__name__)

DIRECTION_SUFFIXES = frozenset("NSEW")
COMPLEX_PREFIX_LEN = 3
SHORT_PREFIX_LEN = 2


class StationResolver:
    """Cascading stop-code lookup, first match wins.

    1. exact code
    2. code without one trailing N/S/E/W direction suffix
    3. first three characters (station complex code)
    4. first two characters, optionally rejected when the route is known
       and the candidate station does not serve it
    """

    def __init__(self, catalog: StationCatalog, allow_short_prefix: bool = True) -> None:
        self._catalog = catalog
        self._allow_short_prefix = allow_short_prefix

    @property
    def catalog(self) -> StationCatalog:
        return self._catalog

    def resolve(self, raw_stop_code: str, route_id: str | None = None) -> StationRecord | None:
        match = self.match(raw_stop_code, route_id)
        return match.station if match else None

    def match(self, raw_stop_code: str, route_id: str | None = None) -> StationMatch | None:
        code = (raw_stop_code or "").strip().upper()
        if not code:
            return None

        tried: set[str] = set()
        for key, strategy in self._candidates(code):
            if not key or key in tried:
                continue
            tried.add(key)

            station = self._catalog.get(key)
            if station is None:
                continue
            if strategy == "short_prefix" and not self._route_compatible(station, route_id):
                logger.debug(
                    "Rejected short prefix match for route",
                    stop_code=code,
                    matched_key=key,
                    route_id=route_id,
                )
                continue
            return StationMatch(station=station, matched_key=key, strategy=strategy)

        return None

    def place(self, records: Iterable[FeedRecord]) -> StationPlacement:
        """Group stop updates by resolved station.

        Unresolved stop updates go to ``unplaced``; vehicle positions already
        carry coordinates and go to ``positioned``.
        """
        placement = StationPlacement()
        for record in records:
            if record.is_vehicle_position:
                placement.positioned.append(record)
                continue

            station = self.resolve(record.stop_id, record.route_id)
            if station is None:
                placement.unplaced.append(record)
                continue

            group = placement.by_station.get(station.id)
            if group is None:
                group = StationGroup(station=station)
                placement.by_station[station.id] = group
            group.updates.append(record)

        return placement

    def _candidates(self, code: str) -> Iterator[tuple[str, MatchStrategy]]:
        yield code, "exact"
        if len(code) > 1 and code[-1] in DIRECTION_SUFFIXES:
            yield code[:-1], "direction_suffix"
        yield code[:COMPLEX_PREFIX_LEN], "complex_prefix"
        if self._allow_short_prefix:
            yield code[:SHORT_PREFIX_LEN], "short_prefix"

    @staticmethod
    def _route_compatible(station: StationRecord, route_id: str | None) -> bool:
        if not route_id or not station.lines:
            return True
        return station.serves(route_id)


# Singleton instance for the app lifecycle
_resolver_instance: StationResolver | None = None


def get_resolver() -> StationResolver:
    """Get or create the singleton resolver from settings."""
    global _resolver_instance
    if _resolver_instance is None:
        settings = get_settings()
        if settings.station_stops_path:
            catalog = StationCatalog.from_stops_file(settings.station_stops_path)
        else:
            catalog = StationCatalog.default()
        _resolver_instance = StationResolver(
            catalog, allow_short_prefix=settings.station_short_prefix_fallback
        )
    return _resolver_instance


def reset_resolver() -> None:
    """Reset the singleton (for testing)."""
    global _resolver_instance
    _resolver_instance = None
