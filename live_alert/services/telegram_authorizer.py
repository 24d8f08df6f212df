"""
Telegram bot authorization service.

Decides who may run the manual ``/notify`` trigger and keeps the command
from being spammed.
"""

from typing import Callable, List, Optional, Set

from ..models.telegram import AuthResult
from ..utils.logging import get_logger
from ..utils.rate_limiter import MultiUserRateLimiter

logger = get_logger("telegram_authorizer")


class TelegramAuthorizer:
    """Handles authorization and rate limiting for Telegram bot users."""

    def __init__(
        self,
        authorized_users: List[str],
        global_max_commands_per_minute: int = 10,
        user_max_commands_per_minute: int = 3,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize Telegram authorizer.

        Args:
            authorized_users: Telegram user IDs allowed to run privileged commands
            global_max_commands_per_minute: Global command rate limit
            user_max_commands_per_minute: Per-user command rate limit
            clock: Monotonic time source for the rate limiter
        """
        self.authorized_users: Set[str] = {str(u) for u in authorized_users}
        limiter_kwargs = {"clock": clock} if clock is not None else {}
        self.rate_limiter = MultiUserRateLimiter(
            global_max_requests=global_max_commands_per_minute,
            user_max_requests=user_max_commands_per_minute,
            time_window=60.0,
            **limiter_kwargs,
        )

        logger.info(
            f"Telegram authorizer initialized with "
            f"{len(self.authorized_users)} authorized users"
        )

    async def is_authorized(self, user_id: Optional[str]) -> AuthResult:
        """
        Check if user is authorized and rate limits allow the request.

        Args:
            user_id: Telegram user ID

        Returns:
            AuthResult with authorization status and reason
        """
        if not user_id:
            return AuthResult(authorized=False, reason="Unknown user")

        if user_id not in self.authorized_users:
            logger.warning(f"Unauthorized access attempt from user: {user_id}")
            return AuthResult(
                authorized=False,
                reason="User not authorized to use this command",
                user_id=user_id,
            )

        if not await self.rate_limiter.allow_request(user_id):
            logger.warning(f"Rate limit exceeded for user: {user_id}")
            return AuthResult(
                authorized=False,
                reason="Rate limit exceeded",
                user_id=user_id,
            )

        logger.debug(f"User authorized: {user_id}")
        return AuthResult(authorized=True, reason="User authorized", user_id=user_id)

    def is_user_authorized(self, user_id: str) -> bool:
        """Check if user is in the authorized list, ignoring rate limits."""
        return user_id in self.authorized_users
