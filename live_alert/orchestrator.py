"""
Main application orchestrator for the Live Alert system.

This module builds every component from the configuration, wires them
into the feed controller, runs the webhook server and the Telegram bot,
and drives a single shutdown routine for both operator signals and
runtime faults.
"""

import asyncio
import signal
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .components.duplicate_suppressor import DuplicateSuppressor
from .components.feed_controller import FeedIngestionController
from .components.message_dispatcher import TelegramDispatcher
from .components.metadata_fetcher import MetadataFetcher
from .components.notification_formatter import NotificationFormatter
from .components.tag_filter import TagFilter
from .components.telegram_bot_handler import TelegramBotHandler
from .components.webhook_server import WebhookServer
from .models.config import Configuration
from .services.config_manager import ConfigurationManager
from .services.telegram_authorizer import TelegramAuthorizer
from .utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    get_error_tracker,
    with_error_handling,
)
from .utils.logging import get_logger, setup_logging


class ShutdownReason(Enum):
    """Why the application is stopping."""

    SIGNAL = "signal"
    FAULT = "fault"

    @property
    def exit_code(self) -> int:
        return 0 if self is ShutdownReason.SIGNAL else 1


class ApplicationOrchestrator:
    """
    Main application orchestrator that coordinates all system components.

    This class manages the lifecycle of all components, handles system startup
    and shutdown, and maps the shutdown cause to the process exit status.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        config: Optional[Configuration] = None,
    ):
        """
        Initialize the application orchestrator.

        Args:
            config_path: Path to configuration file. If None, uses default paths.
            config: Already loaded configuration, skipping the file lookup
        """
        self.logger = get_logger("orchestrator")

        self.config_path = config_path
        self._config: Optional[Configuration] = config
        self._running = False
        self._stopped = False
        self._shutdown_event = asyncio.Event()
        self._shutdown_reason: Optional[ShutdownReason] = None

        self.error_tracker = get_error_tracker()

        # Component instances
        self._fetcher: Optional[MetadataFetcher] = None
        self._suppressor: Optional[DuplicateSuppressor] = None
        self._dispatcher: Optional[TelegramDispatcher] = None
        self._controller: Optional[FeedIngestionController] = None
        self._bot_handler: Optional[TelegramBotHandler] = None
        self._server: Optional[WebhookServer] = None

        self._startup_time: Optional[datetime] = None
        self._installed_signals = []

    @property
    def shutdown_reason(self) -> Optional[ShutdownReason]:
        return self._shutdown_reason

    @with_error_handling(
        component="orchestrator",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        fallback_value=False,
        suppress_exceptions=True,
    )
    async def initialize(self) -> bool:
        """
        Load configuration and build all components.

        Returns:
            True if initialization successful, False otherwise.
        """
        if self._config is None:
            self._config = ConfigurationManager(self.config_path).load_config()

        setup_logging(log_dir=self._config.log_dir, log_level=self._config.log_level)
        self.logger = get_logger("orchestrator")

        self.logger.info("Starting YouTube livestream notification service...")
        self.logger.info(
            "Configuration loaded and validated successfully",
            extra={
                "channel_id": self._config.youtube.channel_id,
                "destinations": [
                    d.identifier for d in self._config.telegram.destinations
                ],
            },
        )

        self._build_components()
        return True

    def _build_components(self) -> None:
        """Construct components in dependency order."""
        config = self._config

        self._fetcher = MetadataFetcher(api_key=config.youtube.api_key)
        self._suppressor = DuplicateSuppressor.from_url(config.redis_url)

        authorizer = TelegramAuthorizer(config.telegram.authorized_users)
        self._bot_handler = TelegramBotHandler(
            bot_token=config.telegram.bot_token,
            controller=None,
            channel_id=config.youtube.channel_id,
            authorizer=authorizer,
        )

        self._dispatcher = TelegramDispatcher(
            bot=self._bot_handler.bot,
            destinations=config.telegram.destinations,
            formatter=NotificationFormatter(config.timezone),
            max_retries=config.telegram.max_retries,
            retry_delay=config.telegram.retry_delay,
        )

        self._controller = FeedIngestionController(
            fetcher=self._fetcher,
            tag_filter=TagFilter(),
            suppressor=self._suppressor,
            dispatcher=self._dispatcher,
            links=config.platforms,
        )
        self._bot_handler.controller = self._controller

        self._server = WebhookServer(
            controller=self._controller,
            topic_url=config.youtube.topic_url,
            webhook_secret=config.server.webhook_secret,
            port=config.server.port,
        )

        self.logger.info("All components initialized")

    async def start(self) -> None:
        """Start serving webhooks, polling the bot and subscribe to the hub."""
        if self._running:
            self.logger.warning("System is already running")
            return

        self._running = True
        await self._bot_handler.initialize()

        if not await self._dispatcher.test_connection():
            self.logger.warning(
                "Telegram connection test failed, notifications may not be delivered"
            )

        await self._server.start()
        await self._bot_handler.start_polling()

        await self._controller.subscribe(
            self._config.server.hub_url,
            self._config.youtube.topic_url,
            self._config.server.callback_url,
        )

        self._startup_time = datetime.now()
        self.logger.info("Application started successfully")

    def request_shutdown(self, reason: ShutdownReason) -> None:
        """Ask the run loop to stop; only the first request counts."""
        if self._shutdown_reason is not None:
            self.logger.warning("Shutdown already in progress, ignoring request")
            return

        self.logger.info(
            "Initiating graceful shutdown", extra={"reason": reason.value}
        )
        self._shutdown_reason = reason
        self._shutdown_event.set()

    def _install_signal_handlers(self) -> None:
        """Route SIGINT/SIGTERM to an intentional shutdown."""
        loop = asyncio.get_running_loop()
        signals = [signal.SIGINT, signal.SIGTERM]

        for sig in signals:
            try:
                loop.add_signal_handler(sig, self._signal_handler, sig)
                self._installed_signals.append(sig)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler
                signal.signal(
                    sig, lambda signum, frame: self._signal_handler(signum)
                )

        loop.set_exception_handler(self._handle_loop_exception)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._installed_signals:
            loop.remove_signal_handler(sig)
        self._installed_signals = []
        loop.set_exception_handler(None)

    def _signal_handler(self, signum: int) -> None:
        """Handle shutdown signals."""
        self.logger.info(
            "Received shutdown signal, starting graceful shutdown",
            extra={"signal": signal.Signals(signum).name},
        )
        self.request_shutdown(ShutdownReason.SIGNAL)

    def _handle_loop_exception(self, loop, context: Dict[str, Any]) -> None:
        """Treat an exception nobody awaited as a fatal runtime fault."""
        exception = context.get("exception")
        self.error_tracker.record_error(
            component="orchestrator",
            category=ErrorCategory.SYSTEM,
            severity=ErrorSeverity.CRITICAL,
            message=f"Unhandled exception: {context.get('message', exception)}",
            exception=exception,
        )
        self.request_shutdown(ShutdownReason.FAULT)

    async def shutdown(self) -> None:
        """Release every resource; safe to call more than once."""
        if self._stopped:
            return
        self._stopped = True
        self._running = False

        self.logger.info("Shutting down application...")

        if self._server is not None:
            await self._release("HTTP server", self._server.stop())

        if self._bot_handler is not None:
            await self._release("Telegram bot", self._bot_handler.stop())

        if self._fetcher is not None:
            await self._release("metadata fetcher", self._fetcher.close())

        if self._suppressor is not None:
            self.logger.info("Closing Redis connection...")
            await self._release("Redis connection", self._suppressor.close())

        uptime = datetime.now() - self._startup_time if self._startup_time else None
        self.logger.info(f"Application shutdown complete. Uptime: {uptime}")

    async def _release(self, name: str, closing) -> None:
        try:
            await closing
        except Exception as e:
            self.logger.error(f"Error closing {name}: {e}", exc_info=True)

    async def run(self) -> int:
        """
        Run the complete application lifecycle.

        Returns:
            Process exit status: 0 after a signal-initiated shutdown, 1 after a
            startup failure or runtime fault.
        """
        if not await self.initialize():
            self.logger.error("System initialization failed")
            self._shutdown_reason = ShutdownReason.FAULT
            await self.shutdown()
            return ShutdownReason.FAULT.exit_code

        self._install_signal_handlers()
        try:
            await self.start()
            await self._shutdown_event.wait()
        except Exception as e:
            self.logger.error(f"Failed to start application: {e}", exc_info=True)
            self.request_shutdown(ShutdownReason.FAULT)
        finally:
            await self.shutdown()
            self._remove_signal_handlers()

        return self._shutdown_reason.exit_code
