"""
Message dispatching components for the Live Alert system.

This module fans a rendered notification out to every configured
destination, retrying each destination independently with linear backoff.
"""

import asyncio
import logging
from abc import abstractmethod
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from telegram import Bot, LinkPreviewOptions
from telegram.constants import ParseMode

from ..interfaces import IMessageDispatcher, INotificationFormatter
from ..models.config import Destination
from ..models.delivery import DeliveryOutcome, DeliveryReport
from ..models.notification import NotificationRecord
from ..utils.error_handling import linear_backoff

logger = logging.getLogger(__name__)


class BaseMessageDispatcher(IMessageDispatcher):
    """Base class for message dispatchers with per-destination retry logic."""

    def __init__(
        self,
        destinations: List[Destination],
        formatter: INotificationFormatter,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize base dispatcher.

        Args:
            destinations: Destinations in delivery order
            formatter: Renders the notification text
            max_retries: Maximum attempts per destination
            retry_delay: Base delay in seconds, multiplied by the attempt number
            sleep: Coroutine used to wait between attempts
        """
        self.destinations = list(destinations)
        self.formatter = formatter
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    async def deliver(self, record: NotificationRecord) -> DeliveryReport:
        """
        Send a notification to every destination.

        A destination that fails all of its attempts is recorded as a failed
        outcome and delivery continues with the next one.

        Args:
            record: Notification to send

        Returns:
            DeliveryReport: One outcome per destination, in configured order
        """
        text = self.formatter.format(record)
        report = DeliveryReport()

        for destination in self.destinations:
            outcome = await self._deliver_to(destination, text, record.item.id)
            report.outcomes.append(outcome)

        return report

    async def _deliver_to(
        self, destination: Destination, text: str, item_id: str
    ) -> DeliveryOutcome:
        timestamp = datetime.now(timezone.utc)
        last_error: Optional[str] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                await self._send_message(destination, text)
                logger.info(
                    f"Successfully sent notification to chat "
                    f"{destination.identifier} for video {item_id}"
                )
                outcome = DeliveryOutcome(
                    destination=destination.identifier,
                    success=True,
                    timestamp=timestamp,
                    attempts=attempt,
                )
                outcome.validate()
                return outcome

            except Exception as e:
                last_error = str(e) or type(e).__name__

                if attempt < self.max_retries:
                    delay = linear_backoff(attempt, self.retry_delay)
                    logger.warning(
                        f"Failed to send notification to chat "
                        f"{destination.identifier}. Retrying in {delay:.1f}s "
                        f"(attempt {attempt}/{self.max_retries}): {last_error}"
                    )
                    await self._sleep(delay)

        logger.error(
            f"Failed to send notification to chat {destination.identifier} "
            f"after {self.max_retries} attempts: {last_error}"
        )
        outcome = DeliveryOutcome(
            destination=destination.identifier,
            success=False,
            timestamp=timestamp,
            error_message=last_error[:500],
            attempts=self.max_retries,
        )
        outcome.validate()
        return outcome

    @abstractmethod
    async def _send_message(self, destination: Destination, text: str) -> None:
        """
        Platform-specific message sending implementation.

        Raises:
            Exception: If sending fails
        """

    @abstractmethod
    async def test_connection(self) -> bool:
        """Test connection to the messaging platform."""


class TelegramDispatcher(BaseMessageDispatcher):
    """Telegram Bot API message dispatcher."""

    def __init__(
        self,
        bot: Bot,
        destinations: List[Destination],
        formatter: INotificationFormatter,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize Telegram dispatcher.

        Args:
            bot: Telegram bot used to send messages
            destinations: Chats (and optional forum topics) to notify
            formatter: Renders the notification text
            max_retries: Maximum attempts per destination
            retry_delay: Base delay in seconds between attempts
            sleep: Coroutine used to wait between attempts
        """
        super().__init__(destinations, formatter, max_retries, retry_delay, sleep)
        self.bot = bot

    async def _send_message(self, destination: Destination, text: str) -> None:
        """Send message via Telegram Bot API."""
        await self.bot.send_message(
            chat_id=destination.chat_id,
            text=text,
            parse_mode=ParseMode.HTML,
            message_thread_id=destination.thread_id,
            link_preview_options=LinkPreviewOptions(is_disabled=False),
        )

    async def test_connection(self) -> bool:
        """Test connection to Telegram Bot API."""
        try:
            bot_info = await self.bot.get_me()
            logger.info(f"Connected to Telegram bot: @{bot_info.username}")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to Telegram: {e}")
            return False
