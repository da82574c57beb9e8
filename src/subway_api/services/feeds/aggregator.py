"""Concurrent fetch-or-serve-cached aggregation across all registered feeds."""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import TYPE_CHECKING, Any

from subway_api.config import get_settings
from subway_api.logging import feed_log_context, get_logger
from subway_api.models.feeds import AggregationReport, AggregationSummary, FeedResult
from subway_api.services.feeds.cache import FeedCache
from subway_api.services.feeds.decoder import FeedDecodeError, FeedDecoder
from subway_api.services.feeds.fetcher import FeedFetchError, FeedFetcher
from subway_api.services.feeds.normalizer import FeedNormalizer
from subway_api.services.feeds.registry import FeedRegistry

if TYPE_CHECKING:
    from subway_api.models.feeds import FeedRecord, FeedSource

logger = get_logger(__name__)

DEFAULT_FEED_TIMEOUT_SEC = 10.0


class FeedNotRegisteredError(Exception):
    """Raised by point queries for a feed id that is not in the registry."""

    def __init__(self, feed_id: str, available: list[str]) -> None:
        super().__init__(f"Feed not registered: {feed_id}")
        self.feed_id = feed_id
        self.available = available


class FeedAggregator:
    """Resolves every registered feed concurrently, isolating failures.

    Usage:
        aggregator = FeedAggregator(registry, FeedCache(ttl_sec=30), FeedFetcher())
        report = await aggregator.fetch_all()
        result = await aggregator.fetch_one("ace")

    Each feed is served from cache while valid; otherwise one refresh task
    per feed id downloads, decodes and normalizes it under a hard timeout.
    Overlapping callers join the running refresh instead of starting another.
    """

    def __init__(
        self,
        registry: FeedRegistry,
        cache: FeedCache,
        fetcher: FeedFetcher,
        decoder: FeedDecoder | None = None,
        normalizer: FeedNormalizer | None = None,
        timeout_sec: float = DEFAULT_FEED_TIMEOUT_SEC,
        serve_stale_on_error: bool = False,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._fetcher = fetcher
        self._decoder = decoder or FeedDecoder()
        self._normalizer = normalizer or FeedNormalizer()
        self._timeout_sec = timeout_sec
        self._serve_stale_on_error = serve_stale_on_error
        self._inflight: dict[str, asyncio.Task[FeedResult]] = {}

    @property
    def registry(self) -> FeedRegistry:
        return self._registry

    @property
    def cache(self) -> FeedCache:
        return self._cache

    @property
    def timeout_sec(self) -> float:
        return self._timeout_sec

    async def fetch_all(self) -> AggregationReport:
        """Resolve every registered feed concurrently.

        Never raises for per-feed problems: failures are reported alongside
        successes. Results are ordered by registry order, not completion order.
        """
        cycle_id = str(uuid.uuid4())[:8]
        started = time.perf_counter()
        logger.info("Aggregation started", cycle_id=cycle_id, feed_count=len(self._registry))

        results = await asyncio.gather(
            *(self._resolve(source, cycle_id) for source in self._registry)
        )

        successes = [result for result in results if result.ok]
        failures = [result for result in results if result.failed]
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        summary = AggregationSummary.build(successes, failures, elapsed_ms)

        logger.info(
            "Aggregation complete",
            cycle_id=cycle_id,
            successful_feeds=summary.successful_feeds,
            total_feeds=summary.total_feeds,
            total_records=summary.total_records,
            total_routes=summary.total_routes,
            processing_time_ms=elapsed_ms,
        )
        if failures:
            logger.warning(
                "Some feeds failed",
                cycle_id=cycle_id,
                failed_feeds=[result.feed_id for result in failures],
            )

        return AggregationReport(successes=successes, failures=failures, summary=summary)

    async def fetch_one(self, feed_id: str) -> FeedResult:
        """Resolve a single feed through the same cache as fetch_all.

        Raises:
            FeedNotRegisteredError: If feed_id is not registered.
        """
        source = self._registry.get(feed_id)
        if source is None:
            raise FeedNotRegisteredError(feed_id, self._registry.feed_ids)
        return await self._resolve(source, str(uuid.uuid4())[:8])

    def cache_status(self) -> dict[str, Any]:
        """Cache introspection across all registered feeds."""
        return {
            "cache_status": self._cache.snapshot(self._registry.feed_ids),
            "cache_duration_sec": self._cache.ttl_sec,
            "total_cached_feeds": len(self._cache),
        }

    def clear_cache(self) -> None:
        self._cache.reset()

    async def _resolve(self, source: FeedSource, cycle_id: str) -> FeedResult:
        feed_id = source.feed_id
        entry = self._cache.get(feed_id)
        if entry is not None and self._cache.is_entry_valid(entry):
            logger.debug("Serving cached feed", feed_id=feed_id, cycle_id=cycle_id)
            return FeedResult.from_cache(entry, self._cache.age(entry))

        task = self._inflight.get(feed_id)
        if task is None:
            task = asyncio.create_task(self._refresh(source, cycle_id))
            self._inflight[feed_id] = task
            task.add_done_callback(lambda done, fid=feed_id: self._forget(fid, done))
        else:
            logger.debug("Joining in-flight refresh", feed_id=feed_id, cycle_id=cycle_id)

        result = await asyncio.shield(task)

        if result.failed and self._serve_stale_on_error:
            stale = self._cache.get(feed_id)
            if stale is not None:
                logger.info(
                    "Serving stale feed after failed refresh",
                    feed_id=feed_id,
                    cycle_id=cycle_id,
                    reason=result.reason,
                )
                return FeedResult.from_cache(
                    stale, self._cache.age(stale), stale=True, reason=result.reason
                )
        return result

    def _forget(self, feed_id: str, task: asyncio.Task[FeedResult]) -> None:
        if self._inflight.get(feed_id) is task:
            del self._inflight[feed_id]

    async def _refresh(self, source: FeedSource, cycle_id: str) -> FeedResult:
        """Download, decode, normalize and cache one feed. Never raises."""
        feed_id = source.feed_id
        generation = self._cache.generation

        with feed_log_context(feed_id, cycle_id):
            try:
                records = await asyncio.wait_for(
                    self._download(source), timeout=self._timeout_sec
                )
            except asyncio.TimeoutError:
                reason = f"Timed out after {self._timeout_sec:g}s"
            except (FeedFetchError, FeedDecodeError) as exc:
                reason = str(exc)
            except Exception as exc:
                logger.error("Unexpected feed refresh error", exc_info=exc)
                reason = f"Unexpected error: {exc}"
            else:
                entry = self._cache.put(feed_id, records, generation=generation)
                if entry is None:
                    # Cache was reset mid-flight; hand back the data uncached
                    return FeedResult(feed_id=feed_id, data=tuple(records))
                logger.info("Feed refreshed", record_count=len(entry.data))
                return FeedResult.fresh(entry)

            logger.warning("Feed refresh failed", reason=reason)
        return FeedResult.failure(feed_id, reason)

    async def _download(self, source: FeedSource) -> list[FeedRecord]:
        data = await self._fetcher.fetch(source.endpoint, source.feed_id, self._timeout_sec)
        feed = self._decoder.decode(data, source.feed_id)
        return self._normalizer.normalize(feed.entity, source.feed_id)


# Singleton instance for the app lifecycle
_aggregator_instance: FeedAggregator | None = None


def build_aggregator() -> FeedAggregator:
    """Wire an aggregator from application settings."""
    settings = get_settings()
    return FeedAggregator(
        registry=FeedRegistry.from_settings(settings),
        cache=FeedCache(ttl_sec=settings.feed_cache_ttl_sec),
        fetcher=FeedFetcher(
            timeout_sec=settings.feed_fetch_timeout_sec,
            max_retries=settings.feed_fetch_max_retries,
            backoff_base=settings.feed_fetch_backoff_base,
            headers=settings.feed_request_headers,
        ),
        timeout_sec=settings.feed_fetch_timeout_sec,
        serve_stale_on_error=settings.serve_stale_on_error,
    )


def get_aggregator() -> FeedAggregator:
    """Get or create the singleton aggregator instance."""
    global _aggregator_instance
    if _aggregator_instance is None:
        _aggregator_instance = build_aggregator()
    return _aggregator_instance


def reset_aggregator() -> None:
    """Reset the singleton (for testing)."""
    global _aggregator_instance
    _aggregator_instance = None
