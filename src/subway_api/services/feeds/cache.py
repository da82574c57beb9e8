"""Per-feed TTL cache of the last successful normalized result."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from subway_api.logging import get_logger
from subway_api.models.feeds import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Iterable

    from subway_api.models.feeds import FeedRecord

logger = get_logger(__name__)

DEFAULT_TTL_SEC = 30.0


class FeedCache:
    """Holds at most one immutable CacheEntry per feed id.

    Entries are replaced whole by a single dict assignment, so readers never
    observe a partially written entry. ``reset()`` advances a generation
    counter; writers that captured an older generation are discarded.

    Freshness is measured on the monotonic clock; wall time is kept for
    display only.
    """

    def __init__(
        self,
        ttl_sec: float = DEFAULT_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._wall_clock = wall_clock
        self._entries: dict[str, CacheEntry] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def get(self, feed_id: str) -> CacheEntry | None:
        return self._entries.get(feed_id)

    def put(
        self,
        feed_id: str,
        data: Iterable[FeedRecord],
        generation: int | None = None,
    ) -> CacheEntry | None:
        """Upsert the entry for feed_id, stamping wall and monotonic store times.

        Returns:
            The stored entry, or None if the write was superseded by a reset.
        """
        if generation is not None and generation != self._generation:
            logger.info(
                "Discarding superseded cache write",
                feed_id=feed_id,
                write_generation=generation,
                cache_generation=self._generation,
            )
            return None

        entry = CacheEntry(
            feed_id=feed_id,
            data=tuple(data),
            fetched_at=self._wall_clock(),
            stored_at=self._clock(),
        )
        self._entries[feed_id] = entry
        return entry

    def age(self, entry: CacheEntry) -> float:
        return self._clock() - entry.stored_at

    def is_entry_valid(self, entry: CacheEntry) -> bool:
        return self.age(entry) < self.ttl_sec

    def is_valid(self, feed_id: str) -> bool:
        entry = self._entries.get(feed_id)
        return entry is not None and self.is_entry_valid(entry)

    def snapshot(self, feed_ids: Iterable[str]) -> list[dict[str, Any]]:
        """Per-feed record count, last fetch time and validity."""
        rows: list[dict[str, Any]] = []
        for feed_id in feed_ids:
            entry = self._entries.get(feed_id)
            rows.append(
                {
                    "feed_id": feed_id,
                    "cached": entry is not None,
                    "record_count": len(entry.data) if entry else 0,
                    "last_update": (
                        datetime.fromtimestamp(entry.fetched_at, tz=timezone.utc).isoformat()
                        if entry
                        else None
                    ),
                    "is_valid": entry is not None and self.is_entry_valid(entry),
                }
            )
        return rows

    def reset(self) -> None:
        """Drop every entry unconditionally."""
        cleared = len(self._entries)
        self._entries = {}
        self._generation += 1
        logger.info("Feed cache cleared", cleared_entries=cleared, generation=self._generation)

    def __len__(self) -> int:
        return len(self._entries)
