"""
Duplicate notification suppression backed by Redis.

A key per notified video id expires after the suppression window, so a
replayed webhook for the same video is ignored for a day and then becomes
eligible again.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

KEY_PREFIX = "youtube-livestream:"
TTL_SECONDS = 24 * 60 * 60


class DuplicateSuppressor:
    """Remembers which videos already triggered a notification."""

    def __init__(
        self,
        client: "redis.Redis",
        key_prefix: str = KEY_PREFIX,
        ttl_seconds: int = TTL_SECONDS,
    ):
        """
        Initialize the suppressor.

        Args:
            client: Async Redis client
            key_prefix: Namespace prepended to every video id
            ttl_seconds: Suppression window in seconds
        """
        self.client = client
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "DuplicateSuppressor":
        """Create a suppressor with its own connection pool."""
        client = redis.Redis.from_url(
            url,
            socket_timeout=5,
            socket_connect_timeout=5,
            decode_responses=True,
        )
        return cls(client, **kwargs)

    def _key(self, item_id: str) -> str:
        return f"{self.key_prefix}{item_id}"

    async def exists(self, item_id: str) -> bool:
        """
        Check whether ``item_id`` was already notified.

        Fails open: if the store cannot be reached the video is reported as
        not yet notified, so a real notification is never dropped.
        """
        try:
            return await self.client.exists(self._key(item_id)) == 1
        except RedisError as e:
            logger.error(f"Error checking if video {item_id} has been notified: {e}")
            return False

    async def mark_notified(self, item_id: str) -> None:
        """Record ``item_id`` as notified for the suppression window."""
        try:
            await self.client.setex(self._key(item_id), self.ttl_seconds, "1")
            logger.info(f"Marked video {item_id} as notified")
        except RedisError as e:
            logger.error(f"Error marking video {item_id} as notified: {e}")

    async def clear(self, item_id: str) -> None:
        """Remove the notified flag for ``item_id``."""
        try:
            await self.client.delete(self._key(item_id))
            logger.info(f"Cleared notification status for video {item_id}")
        except RedisError as e:
            logger.error(f"Error clearing notification status for {item_id}: {e}")

    async def close(self) -> None:
        """Release the Redis connection pool."""
        await self.client.aclose()
        logger.info("Redis connection closed")
