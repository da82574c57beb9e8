"""GTFS-RT protobuf decode layer."""

from __future__ import annotations

from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from subway_api.logging import get_logger

logger = get_logger(__name__)


class FeedDecodeError(Exception):
    """Raised when a feed payload is not a valid GTFS-RT FeedMessage."""


class FeedDecoder:
    """Decodes raw protobuf bytes into GTFS-RT FeedMessage objects."""

    @staticmethod
    def decode(data: bytes, feed_id: str) -> gtfs_realtime_pb2.FeedMessage:
        """Decode protobuf bytes into a FeedMessage.

        Raises:
            FeedDecodeError: If protobuf parsing fails.
        """
        try:
            feed = gtfs_realtime_pb2.FeedMessage()
            feed.ParseFromString(data)
        except DecodeError as exc:
            msg = f"Failed to decode feed {feed_id}: {exc}"
            logger.warning("Feed decode failed", feed_id=feed_id, error=str(exc))
            raise FeedDecodeError(msg) from exc

        logger.debug(
            "Feed decoded",
            feed_id=feed_id,
            entity_count=len(feed.entity),
            feed_timestamp=FeedDecoder.get_feed_timestamp(feed),
        )
        return feed

    @staticmethod
    def get_feed_timestamp(feed: gtfs_realtime_pb2.FeedMessage) -> int:
        """Header timestamp in unix seconds, or 0 if not set."""
        return feed.header.timestamp if feed.header.timestamp else 0
