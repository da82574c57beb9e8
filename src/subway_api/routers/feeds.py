"""Feed aggregation, point query and cache debug endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from subway_api.logging import get_logger
from subway_api.services.feeds.aggregator import FeedNotRegisteredError, get_aggregator

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["feeds"])


# --- Response schemas ---


class FeedInfo(BaseModel):
    """A registered feed."""

    feed_id: str
    endpoint: str


class FeedListResponse(BaseModel):
    feeds: List[FeedInfo]


class FeedResultResponse(BaseModel):
    """One feed's outcome; data is absent for failures."""

    feed_id: str
    data: List[Dict[str, Any]] = []
    cached: bool = False
    stale: bool = False
    failed: bool = False
    reason: Optional[str] = None
    fetched_at: Optional[str] = None
    cache_age_ms: Optional[int] = None


class SummaryResponse(BaseModel):
    successful_feeds: int
    failed_feeds: int
    total_feeds: int
    total_records: int
    total_routes: int
    total_stations: int
    route_stats: Dict[str, int]
    processing_time_ms: int
    timestamp: str


class AllFeedsResponse(BaseModel):
    """Response for GET /api/feeds/all."""

    feeds: List[FeedResultResponse]
    failures: List[FeedResultResponse]
    summary: SummaryResponse


class CacheFeedStatus(BaseModel):
    feed_id: str
    cached: bool
    record_count: int
    last_update: Optional[str] = None
    is_valid: bool


class CacheStatusResponse(BaseModel):
    """Response for GET /api/debug/cache."""

    cache_status: List[CacheFeedStatus]
    cache_duration_sec: float
    total_cached_feeds: int


class ClearCacheResponse(BaseModel):
    message: str


# --- Feed endpoints ---


@router.get(
    "/feeds",
    response_model=FeedListResponse,
    summary="List registered feeds",
)
async def list_feeds() -> dict[str, Any]:
    aggregator = get_aggregator()
    return {
        "feeds": [
            {"feed_id": source.feed_id, "endpoint": source.endpoint}
            for source in aggregator.registry
        ]
    }


@router.get(
    "/feeds/all",
    response_model=AllFeedsResponse,
    summary="Fetch every registered feed",
    description=(
        "Resolves all feeds concurrently, serving each from cache while it is "
        "fresh. Feeds that fail are listed under `failures`; the call itself "
        "succeeds even when every feed fails."
    ),
)
async def fetch_all_feeds() -> dict[str, Any]:
    aggregator = get_aggregator()
    report = await aggregator.fetch_all()
    return report.to_dict()


@router.get(
    "/feeds/{feed_id}",
    response_model=FeedResultResponse,
    summary="Fetch a single feed",
)
async def fetch_feed(feed_id: str) -> dict[str, Any]:
    aggregator = get_aggregator()
    try:
        result = await aggregator.fetch_one(feed_id)
    except FeedNotRegisteredError as exc:
        raise HTTPException(
            status_code=404,
            detail={"error": "Feed not found", "available_feeds": exc.available},
        ) from exc

    if result.failed:
        raise HTTPException(
            status_code=502,
            detail={
                "error": "Failed to fetch feed data",
                "details": result.reason,
                "feed_id": feed_id,
            },
        )
    return result.to_dict()


# --- Debug endpoints ---


@router.get(
    "/debug/cache",
    response_model=CacheStatusResponse,
    summary="Inspect the feed cache",
)
async def cache_status() -> dict[str, Any]:
    return get_aggregator().cache_status()


@router.post(
    "/debug/clear-cache",
    response_model=ClearCacheResponse,
    summary="Clear the feed cache",
)
async def clear_cache() -> dict[str, str]:
    get_aggregator().clear_cache()
    return {"message": "Cache cleared successfully"}
