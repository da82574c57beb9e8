"""Station lookup and placement endpoints."""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from subway_api.logging import get_logger
from subway_api.services.feeds.aggregator import get_aggregator
from subway_api.services.stations.resolver import get_resolver

logger = get_logger(__name__)

router = APIRouter(prefix="/api/stations", tags=["stations"])


class StationOut(BaseModel):
    id: str
    lat: float
    lng: float
    display_name: str
    lines: List[str]


class StationListResponse(BaseModel):
    stations: List[StationOut]
    count: int


class ResolveResponse(BaseModel):
    """Response for GET /api/stations/resolve/{stop_code}."""

    stop_code: str
    matched_key: str
    strategy: str
    station: StationOut


class StationGroupOut(BaseModel):
    station: StationOut
    routes: List[str]
    update_count: int


class PlacementResponse(BaseModel):
    """Current snapshot grouped by station."""

    stations: List[StationGroupOut]
    placed_count: int
    unplaced: List[Dict[str, Any]]
    positioned: List[Dict[str, Any]]
    failed_feeds: List[str]


@router.get("", response_model=StationListResponse, summary="List known stations")
async def list_stations() -> dict[str, Any]:
    resolver = get_resolver()
    stations = [station.to_dict() for station in resolver.catalog]
    return {"stations": stations, "count": len(stations)}


@router.get(
    "/resolve/{stop_code}",
    response_model=ResolveResponse,
    summary="Resolve a raw feed stop code to a station",
)
async def resolve_stop(
    stop_code: str,
    route_id: Annotated[Optional[str], Query(description="Route hint for prefix matches")] = None,
) -> dict[str, Any]:
    match = get_resolver().match(stop_code, route_id)
    if match is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "Station not found", "stop_code": stop_code},
        )
    return {
        "stop_code": stop_code,
        "matched_key": match.matched_key,
        "strategy": match.strategy,
        "station": match.station.to_dict(),
    }


@router.get(
    "/placement",
    response_model=PlacementResponse,
    summary="Group the current feed snapshot by station",
    description=(
        "Fetches all feeds (cache permitting) and groups stop updates by "
        "resolved station. Updates whose stop code cannot be resolved are "
        "returned under `unplaced`."
    ),
)
async def station_placement() -> dict[str, Any]:
    report = await get_aggregator().fetch_all()
    placement = get_resolver().place(report.merged_records())

    groups = sorted(placement.by_station.values(), key=lambda group: group.station.id)
    logger.info(
        "Station placement built",
        station_count=len(groups),
        placed=placement.placed_count,
        unplaced=len(placement.unplaced),
    )
    return {
        "stations": [
            {
                "station": group.station.to_dict(),
                "routes": group.routes,
                "update_count": len(group.updates),
            }
            for group in groups
        ],
        "placed_count": placement.placed_count,
        "unplaced": [update.to_dict() for update in placement.unplaced],
        "positioned": [position.to_dict() for position in placement.positioned],
        "failed_feeds": [result.feed_id for result in report.failures],
    }
