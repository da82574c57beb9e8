"""Station reference table: built-in NYC subway complexes or a GTFS stops.txt."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import TYPE_CHECKING

from subway_api.logging import get_logger
from subway_api.models.stations import StationRecord

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = get_logger(__name__)

REQUIRED_STOP_COLUMNS = {"stop_id", "stop_name", "stop_lat", "stop_lon"}

# GTFS location_type for a parent station
PARENT_STATION = "1"

# (stop id, lat, lng, display name, lines)
DEFAULT_STATIONS: tuple[tuple[str, float, float, str, tuple[str, ...]], ...] = (
    # Times Sq-42 St complex
    ("A27", 40.757308, -73.989735, "Times Sq-42 St (A,C,E)", ("A", "C", "E")),
    ("R16", 40.754672, -73.986754, "Times Sq-42 St (N,Q,R,W)", ("N", "Q", "R", "W")),
    ("127", 40.75529, -73.987495, "Times Sq-42 St (1,2,3)", ("1", "2", "3")),
    ("725", 40.755477, -73.987691, "Times Sq-42 St (7)", ("7",)),
    ("902", 40.755983, -73.986229, "Times Sq-42 St (S)", ("S", "GS")),
    # Grand Central-42 St complex
    ("631", 40.751776, -73.976848, "Grand Central-42 St (4,5,6)", ("4", "5", "6", "6X")),
    ("723", 40.751431, -73.976041, "Grand Central-42 St (7)", ("7", "7X")),
    ("901", 40.752769, -73.979189, "Grand Central-42 St (S)", ("S", "GS")),
    # 14 St-Union Sq complex
    ("635", 40.734673, -73.989951, "14 St-Union Sq (4,5,6)", ("4", "5", "6")),
    ("R20", 40.735736, -73.990568, "14 St-Union Sq (N,Q,R,W)", ("N", "Q", "R", "W")),
    ("L03", 40.734789, -73.99073, "14 St-Union Sq (L)", ("L",)),
    # 34 St-Herald Sq complex
    ("D17", 40.749719, -73.987823, "34 St-Herald Sq (B,D,F,M)", ("B", "D", "F", "M")),
    ("R17", 40.749567, -73.98795, "34 St-Herald Sq (N,Q,R,W)", ("N", "Q", "R", "W")),
    # 34 St-Penn Station
    ("A28", 40.752287, -73.993391, "34 St-Penn Station (A,C,E)", ("A", "C", "E")),
    ("128", 40.750373, -73.991057, "34 St-Penn Station (1,2,3)", ("1", "2", "3")),
    # W 4 St-Washington Sq
    ("A32", 40.732338, -74.000495, "W 4 St-Washington Sq (A,C,E)", ("A", "C", "E")),
    ("D20", 40.732338, -74.000495, "W 4 St-Washington Sq (B,D,F,M)", ("B", "D", "F", "M")),
    ("D21", 40.725297, -73.996204, "Broadway-Lafayette St (B,D,F,M)", ("B", "D", "F", "M")),
    # Lower Manhattan
    ("A36", 40.714111, -74.008585, "Chambers St (A,C)", ("A", "C")),
    ("137", 40.715478, -74.009266, "Chambers St (1,2,3)", ("1", "2", "3")),
    ("A38", 40.710197, -74.007691, "Fulton St (A,C)", ("A", "C")),
    ("229", 40.709416, -74.006571, "Fulton St (2,3)", ("2", "3")),
    ("418", 40.710368, -74.009509, "Fulton St (4,5)", ("4", "5")),
    ("M22", 40.710374, -74.007582, "Fulton St (J,Z)", ("J", "Z")),
    ("419", 40.707557, -74.011862, "Wall St (4,5)", ("4", "5")),
    ("230", 40.706821, -74.0091, "Wall St (2,3)", ("2", "3")),
    ("139", 40.707513, -74.013783, "Rector St (1)", ("1",)),
    ("R26", 40.70722, -74.013342, "Rector St (R,W)", ("R", "W")),
    ("M23", 40.706476, -74.011056, "Broad St (J,Z)", ("J", "Z")),
    ("142", 40.702068, -74.013664, "South Ferry (1)", ("1",)),
    # Brooklyn / Queens / Bronx / Staten Island
    ("L08", 40.717304, -73.956872, "Bedford Av (L)", ("L",)),
    ("G22", 40.746554, -73.943832, "Court Sq (G)", ("G",)),
    ("G14", 40.746644, -73.891338, "Jackson Hts-Roosevelt Av (E,F,M,R)", ("E", "F", "M", "R")),
    ("701", 40.7596, -73.83003, "Flushing-Main St (7)", ("7", "7X")),
    ("D24", 40.68446, -73.97689, "Atlantic Av-Barclays Ctr (B,Q)", ("B", "Q")),
    ("235", 40.684359, -73.977666, "Atlantic Av-Barclays Ctr (2,3)", ("2", "3")),
    ("R31", 40.683666, -73.97881, "Atlantic Av-Barclays Ctr (D,N,R)", ("D", "N", "R")),
    ("101", 40.889248, -73.898583, "Van Cortlandt Park-242 St (1)", ("1",)),
    ("A02", 40.868072, -73.919899, "Inwood-207 St (A)", ("A",)),
    ("H11", 40.603995, -73.755405, "Far Rockaway-Mott Av (A)", ("A",)),
    ("S31", 40.643748, -74.073643, "St George (SIR)", ("SI",)),
    ("S09", 40.512764, -74.251961, "Tottenville (SIR)", ("SI",)),
)


class StationCatalogError(Exception):
    """Raised when a stops file cannot be loaded."""


class StationCatalog:
    """Read-only mapping of station id to StationRecord."""

    def __init__(self, stations: Iterable[StationRecord]) -> None:
        self._stations: dict[str, StationRecord] = {}
        for station in stations:
            self._stations[station.id] = station

    @classmethod
    def default(cls) -> StationCatalog:
        """Catalog of major NYC subway station complexes."""
        return cls(
            StationRecord(id=stop_id, lat=lat, lng=lng, display_name=name, lines=lines)
            for stop_id, lat, lng, name, lines in DEFAULT_STATIONS
        )

    @classmethod
    def from_stops_file(cls, path: str | Path) -> StationCatalog:
        """Load stations from a GTFS stops.txt.

        Parent stations (location_type=1) are preferred when the file has
        them, so platform codes resolve through the cascade to their parent.

        Raises:
            StationCatalogError: If the file is missing, empty, lacks required
                columns or has unparseable coordinates.
        """
        stops_path = Path(path)
        if not stops_path.exists():
            msg = f"Stops file not found: {stops_path}"
            raise StationCatalogError(msg)

        with stops_path.open(newline="", encoding="utf-8-sig") as handle:
            reader = csv.DictReader(handle)
            if reader.fieldnames is None:
                msg = f"Empty stops file: {stops_path}"
                raise StationCatalogError(msg)

            missing = REQUIRED_STOP_COLUMNS - set(reader.fieldnames)
            if missing:
                msg = f"Missing required columns in {stops_path.name}: {sorted(missing)}"
                raise StationCatalogError(msg)

            rows = list(reader)

        has_parents = any(
            (row.get("location_type") or "").strip() == PARENT_STATION for row in rows
        )
        stations = list(_parse_stop_rows(rows, parents_only=has_parents))
        logger.info(
            "Station catalog loaded",
            path=str(stops_path),
            station_count=len(stations),
            parents_only=has_parents,
        )
        return cls(stations)

    def get(self, station_id: str) -> StationRecord | None:
        return self._stations.get(station_id)

    def __contains__(self, station_id: object) -> bool:
        return station_id in self._stations

    def __iter__(self) -> Iterator[StationRecord]:
        return iter(self._stations.values())

    def __len__(self) -> int:
        return len(self._stations)


def _parse_stop_rows(rows: list[dict[str, str]], parents_only: bool) -> Iterator[StationRecord]:
    for line_no, row in enumerate(rows, start=2):
        if parents_only and (row.get("location_type") or "").strip() != PARENT_STATION:
            continue

        stop_id = (row.get("stop_id") or "").strip()
        if not stop_id:
            continue

        try:
            lat = float(row["stop_lat"])
            lng = float(row["stop_lon"])
        except (TypeError, ValueError) as exc:
            msg = f"Invalid coordinates for stop_id={stop_id} on line {line_no}"
            raise StationCatalogError(msg) from exc

        yield StationRecord(
            id=stop_id,
            lat=lat,
            lng=lng,
            display_name=(row.get("stop_name") or "").strip() or stop_id,
        )
