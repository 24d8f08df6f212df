"""
HTTP transport for WebSub callbacks.

Serves the hub's subscription verification handshake, receives pushed
Atom feeds and exposes a health check, all on an aiohttp web server.
"""

import time
from datetime import datetime, timezone
from typing import Optional

import psutil
from aiohttp import web

from ..utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    PayloadError,
    get_error_tracker,
)
from ..utils.logging import get_logger
from .feed_controller import FeedIngestionController

logger = get_logger("webhook")

WEBSUB_PATH = "/websub"
HEALTH_PATH = "/health"


class WebhookServer:
    """aiohttp server exposing the WebSub callback and health endpoints."""

    def __init__(
        self,
        controller: FeedIngestionController,
        topic_url: str,
        webhook_secret: Optional[str] = None,
        host: str = "0.0.0.0",
        port: int = 3000,
        process: Optional[psutil.Process] = None,
    ):
        """
        Initialize the webhook server.

        Args:
            controller: Pipeline that processes pushed feeds
            topic_url: Topic the hub must confirm during verification
            webhook_secret: Shared secret registered with the hub
            host: Interface to bind
            port: Port to bind
            process: Process whose start time drives the reported uptime
        """
        self.controller = controller
        self.topic_url = topic_url
        self.webhook_secret = webhook_secret
        self.host = host
        self.port = port
        self.process = process or psutil.Process()
        self.error_tracker = get_error_tracker()

        self.app = self.create_app()
        self._runner: Optional[web.AppRunner] = None

    def create_app(self) -> web.Application:
        """Build the aiohttp application with all routes registered."""
        app = web.Application()
        app.router.add_get(WEBSUB_PATH, self.handle_verification)
        app.router.add_post(WEBSUB_PATH, self.handle_callback)
        app.router.add_get(HEALTH_PATH, self.handle_health)
        return app

    async def start(self) -> None:
        """Bind the listening socket and start serving."""
        self._runner = web.AppRunner(self.app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f"HTTP server started on port {self.port}")

    async def stop(self) -> None:
        """Stop accepting connections and release the socket."""
        if self._runner is None:
            return

        logger.info("Stopping HTTP server...")
        await self._runner.cleanup()
        self._runner = None
        logger.info("HTTP server stopped")

    async def handle_verification(self, request: web.Request) -> web.Response:
        """Answer the hub's subscription verification request."""
        mode = request.query.get("hub.mode")
        topic = request.query.get("hub.topic")
        challenge = request.query.get("hub.challenge", "")

        logger.info(f"WebSub verification request: mode={mode}, topic={topic}")

        if mode == "subscribe" and topic == self.topic_url:
            logger.info("WebSub subscription verified successfully")
            return web.Response(text=challenge, status=200)

        logger.warning("Invalid WebSub subscription verification request")
        return web.Response(text="Invalid request", status=400)

    async def handle_callback(self, request: web.Request) -> web.Response:
        """Process a feed pushed by the hub."""
        try:
            signature = request.headers.get("X-Hub-Signature")
            body = await request.read()

            logger.debug("WebSub callback received, parsing XML...")
            results = await self.controller.handle_notification(
                body, signature if self.webhook_secret else None
            )

            logger.info(
                f"Processed WebSub callback with {len(results)} entries",
                extra={"results": [result.value for result in results]},
            )
            return web.Response(text="OK", status=200)

        except PayloadError as e:
            logger.warning(str(e))
            return web.Response(text="Invalid payload", status=400)

        except Exception as e:
            self.error_tracker.record_error(
                component="webhook",
                category=ErrorCategory.SYSTEM,
                severity=ErrorSeverity.HIGH,
                message=f"Error processing WebSub callback: {e}",
                exception=e,
            )
            return web.Response(text="Internal Server Error", status=500)

    async def handle_health(self, request: web.Request) -> web.Response:
        """Report liveness and process uptime."""
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            return web.json_response(
                {
                    "status": "healthy",
                    "timestamp": timestamp,
                    "uptime": self.uptime(),
                }
            )
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return web.json_response(
                {"status": "unhealthy", "timestamp": timestamp, "error": str(e)},
                status=500,
            )

    def uptime(self) -> float:
        """Seconds since the process started."""
        return max(0.0, time.time() - self.process.create_time())
