"""Static registry of MTA subway GTFS-RT feeds."""

from __future__ import annotations

from typing import TYPE_CHECKING

from subway_api.logging import get_logger
from subway_api.models.feeds import FeedSource

if TYPE_CHECKING:
    from collections.abc import Iterator

    from subway_api.config import Settings

logger = get_logger(__name__)

# Feed id -> path under the MTA feed base URL
MTA_FEED_PATHS: dict[str, str] = {
    "1234567": "nyct%2Fgtfs",
    "ace": "nyct%2Fgtfs-ace",
    "bdfm": "nyct%2Fgtfs-bdfm",
    "g": "nyct%2Fgtfs-g",
    "jz": "nyct%2Fgtfs-jz",
    "l": "nyct%2Fgtfs-l",
    "nqrw": "nyct%2Fgtfs-nqrw",
    "si": "nyct%2Fgtfs-si",
}


class UnknownFeedError(Exception):
    """Raised when configuration names a feed id that has no known endpoint."""


class FeedRegistry:
    """Immutable feed_id -> FeedSource mapping, built once at startup."""

    def __init__(self, sources: list[FeedSource]) -> None:
        self._sources: dict[str, FeedSource] = {}
        for source in sources:
            if source.feed_id in self._sources:
                msg = f"Duplicate feed id: {source.feed_id}"
                raise ValueError(msg)
            self._sources[source.feed_id] = source

    @classmethod
    def from_settings(cls, settings: Settings) -> FeedRegistry:
        """Build the registry from the MTA base URL and the enabled feed list."""
        base = settings.mta_feed_base_url.rstrip("/")
        feed_ids = settings.enabled_feed_ids or list(MTA_FEED_PATHS)

        unknown = [feed_id for feed_id in feed_ids if feed_id not in MTA_FEED_PATHS]
        if unknown:
            msg = f"Unknown feed ids in ENABLED_FEEDS: {unknown}"
            raise UnknownFeedError(msg)

        sources = [
            FeedSource(feed_id=feed_id, endpoint=f"{base}/{MTA_FEED_PATHS[feed_id]}")
            for feed_id in feed_ids
        ]
        logger.info("Feed registry loaded", feed_count=len(sources), feeds=feed_ids)
        return cls(sources)

    def get(self, feed_id: str) -> FeedSource | None:
        return self._sources.get(feed_id)

    @property
    def feed_ids(self) -> list[str]:
        return list(self._sources)

    def __contains__(self, feed_id: object) -> bool:
        return feed_id in self._sources

    def __iter__(self) -> Iterator[FeedSource]:
        return iter(self._sources.values())

    def __len__(self) -> int:
        return len(self._sources)
