"""
Configuration models for the system.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlparse

from ..utils.logging import resolve_log_level


def _check_http_url(value: str, label: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} cannot be empty")

    parsed_url = urlparse(value)
    if parsed_url.scheme not in ["http", "https"] or not parsed_url.netloc:
        raise ValueError(f"{label} must be an HTTP or HTTPS URL: {value}")


@dataclass(frozen=True)
class PlatformLinks:
    """Static watch links, one per outbound streaming platform."""

    youtube: str
    x: str
    kick: str
    twitch: str
    instagram: str
    linkedin: str

    # Rendering order.
    PLATFORMS = ("youtube", "x", "kick", "twitch", "instagram", "linkedin")

    def as_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in self.PLATFORMS}

    def validate(self) -> bool:
        """Validate that every platform link is an HTTP(S) URL."""
        for name in self.PLATFORMS:
            _check_http_url(getattr(self, name), f"Platform link '{name}'")
        return True


@dataclass(frozen=True)
class Destination:
    """A Telegram chat, optionally scoped to a forum topic."""

    chat_id: str
    thread_id: Optional[int] = None

    @property
    def identifier(self) -> str:
        if self.thread_id is None:
            return self.chat_id
        return f"{self.chat_id}:{self.thread_id}"

    @classmethod
    def parse(cls, value: str) -> "Destination":
        """Parse ``chat_id`` or ``chat_id:thread_id``."""
        value = value.strip()
        chat_id, sep, thread = value.rpartition(":")
        if not sep:
            return cls(chat_id=value)

        try:
            return cls(chat_id=chat_id.strip(), thread_id=int(thread))
        except ValueError:
            raise ValueError(f"Invalid destination thread id in '{value}'")

    def validate(self) -> bool:
        if not self.chat_id or not self.chat_id.strip():
            raise ValueError("Destination chat_id cannot be empty")

        if self.thread_id is not None and self.thread_id <= 0:
            raise ValueError(
                f"Destination thread id must be positive: {self.identifier}"
            )

        return True


@dataclass
class YouTubeConfig:
    """Source channel and API credentials."""

    channel_id: str
    api_key: str

    @property
    def topic_url(self) -> str:
        return (
            "https://www.youtube.com/xml/feeds/videos.xml"
            f"?channel_id={self.channel_id}"
        )

    def validate(self) -> bool:
        if not self.channel_id or not self.channel_id.strip():
            raise ValueError("YouTube channel_id cannot be empty")

        if not self.api_key or not self.api_key.strip():
            raise ValueError("YouTube api_key cannot be empty")

        return True


@dataclass
class TelegramConfig:
    """Bot credentials, delivery destinations and command authorization."""

    bot_token: str
    destinations: List[Destination]
    authorized_users: List[str] = field(default_factory=list)
    max_retries: int = 3
    retry_delay: float = 2.0

    def validate(self) -> bool:
        if not self.bot_token or not self.bot_token.strip():
            raise ValueError("Telegram bot_token cannot be empty")

        if not self.destinations:
            raise ValueError("At least one Telegram destination must be configured")

        for destination in self.destinations:
            destination.validate()

        if self.max_retries < 1:
            raise ValueError("Telegram max_retries must be at least 1")

        if self.retry_delay < 0:
            raise ValueError("Telegram retry_delay cannot be negative")

        return True


@dataclass
class ServerConfig:
    """Webhook HTTP server settings."""

    port: int
    webhook_secret: str
    base_url: Optional[str] = None
    hub_url: str = "https://pubsubhubbub.appspot.com/publish"

    @property
    def callback_url(self) -> str:
        base = self.base_url or f"http://localhost:{self.port}"
        return f"{base.rstrip('/')}/websub"

    def validate(self) -> bool:
        if not isinstance(self.port, int) or not (1 <= self.port <= 65535):
            raise ValueError("Server port must be an integer between 1 and 65535")

        if not self.webhook_secret or not self.webhook_secret.strip():
            raise ValueError("Webhook secret cannot be empty")

        if self.base_url:
            _check_http_url(self.base_url, "Server base_url")

        _check_http_url(self.hub_url, "Hub URL")

        return True


@dataclass
class Configuration:
    """System configuration."""

    youtube: YouTubeConfig
    telegram: TelegramConfig
    platforms: PlatformLinks
    server: ServerConfig
    redis_url: str
    log_level: str = "INFO"
    log_dir: Optional[str] = "logs"
    timezone: str = "Europe/Istanbul"

    def validate(self) -> bool:
        """Validate system configuration."""
        self.youtube.validate()
        self.telegram.validate()
        self.platforms.validate()
        self.server.validate()

        if not self.redis_url or not self.redis_url.strip():
            raise ValueError("Redis URL cannot be empty")

        parsed = urlparse(self.redis_url)
        if parsed.scheme not in ["redis", "rediss", "unix"]:
            raise ValueError(
                f"Redis URL must use redis://, rediss:// or unix://: {self.redis_url}"
            )

        resolve_log_level(self.log_level)

        if not self.timezone or not self.timezone.strip():
            raise ValueError("Notification timezone cannot be empty")

        return True
