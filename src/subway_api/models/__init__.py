"""Domain records for feed aggregation and station resolution."""

from subway_api.models.feeds import (
    AggregationReport,
    AggregationSummary,
    CacheEntry,
    FeedRecord,
    FeedResult,
    FeedSource,
    TrainUpdate,
    VehiclePosition,
)
from subway_api.models.stations import (
    StationGroup,
    StationMatch,
    StationPlacement,
    StationRecord,
)

__all__ = [
    "AggregationReport",
    "AggregationSummary",
    "CacheEntry",
    "FeedRecord",
    "FeedResult",
    "FeedSource",
    "StationGroup",
    "StationMatch",
    "StationPlacement",
    "StationRecord",
    "TrainUpdate",
    "VehiclePosition",
]
