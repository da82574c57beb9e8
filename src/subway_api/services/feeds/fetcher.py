"""GTFS-RT feed fetcher with an explicit timeout and bounded retries."""

from __future__ import annotations

import asyncio
import inspect

import httpx

from subway_api.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 10.0
DEFAULT_MAX_RETRIES = 1
DEFAULT_BACKOFF_BASE = 2.0


class FeedFetchError(Exception):
    """Raised when a feed cannot be downloaded (network error, non-2xx, empty body)."""


class FeedFetcher:
    """Downloads raw protobuf bytes from a feed endpoint."""

    def __init__(
        self,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.timeout_sec = timeout_sec
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self.headers = headers or {}

    async def fetch(self, url: str, feed_id: str, timeout_sec: float | None = None) -> bytes:
        """Download a feed.

        The time budget covers every attempt and the backoff between them:
        each attempt gets an equal share of what remains, and a retry whose
        backoff would exhaust the budget is not made.

        Args:
            url: Feed endpoint.
            feed_id: Label for logging.
            timeout_sec: Total budget; defaults to the fetcher's own.

        Returns:
            Raw protobuf bytes.

        Raises:
            FeedFetchError: If all attempts fail.
        """
        budget = timeout_sec if timeout_sec is not None else self.timeout_sec
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget
        last_error: Exception | None = None
        attempts = 0

        for attempt in range(self.max_retries):
            attempt_timeout = (deadline - loop.time()) / (self.max_retries - attempt)
            attempts += 1
            try:
                logger.debug(
                    "Fetching feed",
                    feed_id=feed_id,
                    attempt=attempts,
                    max_retries=self.max_retries,
                    timeout_sec=round(attempt_timeout, 3),
                )
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(attempt_timeout),
                    follow_redirects=True,
                    headers=self.headers,
                ) as client:
                    response = await client.get(url)
                    raise_result = response.raise_for_status()
                    if inspect.isawaitable(raise_result):
                        await raise_result
                    data = response.content

                if not data:
                    msg = "Empty response body"
                    raise FeedFetchError(msg)

                logger.debug("Feed downloaded", feed_id=feed_id, size_bytes=len(data))
                return data

            except httpx.HTTPStatusError as exc:
                last_error = FeedFetchError(f"HTTP {exc.response.status_code} from upstream")
            except (httpx.RequestError, FeedFetchError) as exc:
                last_error = exc

            if attempt == self.max_retries - 1:
                break

            delay = self.backoff_base ** (attempt + 1)
            if delay >= deadline - loop.time():
                logger.warning(
                    "Feed fetch failed, no time left to retry",
                    feed_id=feed_id,
                    attempt=attempts,
                    error=str(last_error),
                )
                break

            logger.warning(
                "Feed fetch failed, retrying",
                feed_id=feed_id,
                attempt=attempts,
                delay_sec=delay,
                error=str(last_error),
            )
            await asyncio.sleep(delay)

        msg = f"Failed to fetch feed {feed_id} after {attempts} attempts: {last_error}"
        logger.warning(msg, feed_id=feed_id)
        raise FeedFetchError(msg) from last_error
