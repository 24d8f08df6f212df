"""
Token bucket rate limiting for bot commands.

Keeps the manual ``/notify`` trigger from being spammed, both per user and
across the whole bot.
"""

import asyncio
import time
from typing import Callable, Dict, Optional

from .logging import get_logger

logger = get_logger("rate_limiter")


class TokenBucket:
    """Token bucket rate limiter implementation."""

    def __init__(
        self,
        capacity: int,
        refill_rate: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize token bucket.

        Args:
            capacity: Maximum number of tokens in bucket
            refill_rate: Tokens added per second
            clock: Monotonic time source
        """
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self._clock = clock
        self.last_refill = clock()
        self._lock = asyncio.Lock()

    async def consume(self, tokens: int = 1) -> bool:
        """Take ``tokens`` from the bucket; False if not enough are available."""
        async with self._lock:
            self._refill()

            if self.tokens >= tokens:
                self.tokens -= tokens
                return True
            return False

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self.last_refill

        if elapsed > 0:
            self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
            self.last_refill = now


class MultiUserRateLimiter:
    """Rate limiter that tracks a global limit plus one limit per user."""

    def __init__(
        self,
        global_max_requests: int,
        user_max_requests: int,
        time_window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize multi-user rate limiter.

        Args:
            global_max_requests: Requests allowed across all users per window
            user_max_requests: Requests allowed per user per window
            time_window: Window length in seconds
            clock: Monotonic time source
        """
        self.time_window = time_window
        self.user_max_requests = user_max_requests
        self._clock = clock
        self.global_bucket = TokenBucket(
            global_max_requests, global_max_requests / time_window, clock
        )
        self.user_buckets: Dict[str, TokenBucket] = {}

    async def allow_request(self, user_id: str) -> bool:
        """
        Check if request is allowed for user.

        Args:
            user_id: User identifier

        Returns:
            True if request is allowed
        """
        if not await self.global_bucket.consume():
            logger.warning("Global rate limit exceeded")
            return False

        if not await self._get_user_bucket(user_id).consume():
            logger.warning(f"User rate limit exceeded for {user_id}")
            return False

        return True

    def _get_user_bucket(self, user_id: str) -> TokenBucket:
        bucket: Optional[TokenBucket] = self.user_buckets.get(user_id)
        if bucket is None:
            bucket = TokenBucket(
                self.user_max_requests,
                self.user_max_requests / self.time_window,
                self._clock,
            )
            self.user_buckets[user_id] = bucket
        return bucket
