"""Real-time feed aggregation: fetch, decode, normalize and cache MTA feeds."""

from subway_api.services.feeds.aggregator import FeedAggregator, FeedNotRegisteredError
from subway_api.services.feeds.cache import FeedCache
from subway_api.services.feeds.decoder import FeedDecodeError, FeedDecoder
from subway_api.services.feeds.fetcher import FeedFetcher, FeedFetchError
from subway_api.services.feeds.normalizer import FeedNormalizer
from subway_api.services.feeds.registry import FeedRegistry

__all__ = [
    "FeedAggregator",
    "FeedCache",
    "FeedDecodeError",
    "FeedDecoder",
    "FeedFetchError",
    "FeedFetcher",
    "FeedNormalizer",
    "FeedNotRegisteredError",
    "FeedRegistry",
]
