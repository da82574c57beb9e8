"""Station reference records and resolver results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Tuple

from subway_api.models.feeds import TrainUpdate, VehiclePosition

MatchStrategy = Literal["exact", "direction_suffix", "complex_prefix", "short_prefix"]


@dataclass(frozen=True)
class StationRecord:
    """A canonical station with coordinates."""

    id: str
    lat: float
    lng: float
    display_name: str
    lines: Tuple[str, ...] = ()

    def serves(self, route_id: str) -> bool:
        return route_id.upper() in self.lines

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lat": self.lat,
            "lng": self.lng,
            "display_name": self.display_name,
            "lines": list(self.lines),
        }


@dataclass(frozen=True)
class StationMatch:
    """A resolved station and how the raw code reached it."""

    station: StationRecord
    matched_key: str
    strategy: MatchStrategy


@dataclass
class StationGroup:
    station: StationRecord
    updates: List[TrainUpdate] = field(default_factory=list)

    @property
    def routes(self) -> List[str]:
        return sorted({update.route_id for update in self.updates})


@dataclass
class StationPlacement:
    """Updates grouped for display; nothing is dropped."""

    by_station: Dict[str, StationGroup] = field(default_factory=dict)
    unplaced: List[TrainUpdate] = field(default_factory=list)
    positioned: List[VehiclePosition] = field(default_factory=list)

    @property
    def placed_count(self) -> int:
        return sum(len(group.updates) for group in self.by_station.values())
