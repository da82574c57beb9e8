"""Station reference data and stop-code resolution."""

from subway_api.services.stations.catalog import StationCatalog, StationCatalogError
from subway_api.services.stations.resolver import StationResolver

__all__ = [
    "StationCatalog",
    "StationCatalogError",
    "StationResolver",
]
