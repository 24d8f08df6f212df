"""
Pytest configuration and shared fixtures.

This module provides common fixtures and test doubles for the Live Alert
test suite.
"""

import os
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple
from unittest.mock import AsyncMock, Mock

import pytest

from live_alert.models.config import (
    Configuration,
    Destination,
    PlatformLinks,
    ServerConfig,
    TelegramConfig,
    YouTubeConfig,
)
from live_alert.models.delivery import DeliveryOutcome, DeliveryReport
from live_alert.models.item import ItemMetadata

CHANNEL_ID = "UCxyz1234567890"
TOPIC_URL = f"https://www.youtube.com/xml/feeds/videos.xml?channel_id={CHANNEL_ID}"


def build_feed(*entries: Tuple[Optional[str], str]) -> str:
    """Build a WebSub Atom payload from (video_id, title) pairs."""
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" '
        'xmlns="http://www.w3.org/2005/Atom">',
        '<link rel="hub" href="https://pubsubhubbub.appspot.com"/>',
        "<title>YouTube video feed</title>",
        "<updated>2024-05-01T18:00:00+00:00</updated>",
    ]
    for video_id, title in entries:
        parts.append("<entry>")
        if video_id is not None:
            parts.append(f"<id>yt:video:{video_id}</id>")
            parts.append(f"<yt:videoId>{video_id}</yt:videoId>")
        parts.append(f"<yt:channelId>{CHANNEL_ID}</yt:channelId>")
        parts.append(f"<title>{title}</title>")
        parts.append("<published>2024-05-01T17:59:00+00:00</published>")
        parts.append("<updated>2024-05-01T18:00:00+00:00</updated>")
        parts.append("</entry>")
    parts.append("</feed>")
    return "\n".join(parts)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """In-memory stand-in for the async Redis commands the suppressor uses."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock or FakeClock()
        self.store: Dict[str, Tuple[str, Optional[float]]] = {}
        self.closed = False

    def _live(self, key: str) -> bool:
        if key not in self.store:
            return False
        _, expires_at = self.store[key]
        if expires_at is not None and self.clock() >= expires_at:
            del self.store[key]
            return False
        return True

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._live(key))

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self.store[key] = (value, self.clock() + ttl)
        return True

    async def get(self, key: str) -> Optional[str]:
        return self.store[key][0] if self._live(key) else None

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def aclose(self) -> None:
        self.closed = True


# Test data fixtures
@pytest.fixture
def sample_links():
    """Create the six platform watch links."""
    return PlatformLinks(
        youtube="https://www.youtube.com/@example/live",
        x="https://x.com/example",
        kick="https://kick.com/example",
        twitch="https://www.twitch.tv/example",
        instagram="https://www.instagram.com/example",
        linkedin="https://www.linkedin.com/company/example",
    )


@pytest.fixture
def sample_metadata():
    """Create metadata for a video announcing a livestream."""
    return ItemMetadata(
        id="abc123",
        title="Weekly Q&A",
        description="new episode #live today",
        published_at=datetime(2024, 5, 1, 17, 30, tzinfo=timezone.utc),
        channel_id=CHANNEL_ID,
        channel_title="Example Channel",
        thumbnail_url="https://i.ytimg.com/vi/abc123/hqdefault.jpg",
    )


@pytest.fixture
def sample_destinations():
    """Create three destinations, one scoped to a forum topic."""
    return [
        Destination(chat_id="-100111"),
        Destination(chat_id="-100222", thread_id=7),
        Destination(chat_id="-100333"),
    ]


@pytest.fixture
def sample_configuration(sample_links, sample_destinations):
    """Create a valid configuration."""
    return Configuration(
        youtube=YouTubeConfig(channel_id=CHANNEL_ID, api_key="test_api_key"),
        telegram=TelegramConfig(
            bot_token="123456:test_bot_token",
            destinations=sample_destinations,
            authorized_users=["42"],
        ),
        platforms=sample_links,
        server=ServerConfig(port=3000, webhook_secret="test_secret"),
        redis_url="redis://localhost:6379/0",
        log_level="INFO",
        log_dir=None,
    )


@pytest.fixture
def fake_clock():
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def fake_redis(fake_clock):
    """Create an in-memory Redis double sharing the fake clock."""
    return FakeRedis(fake_clock)


@pytest.fixture
def successful_report():
    """Create a report where every destination succeeded."""
    now = datetime.now(timezone.utc)
    return DeliveryReport(
        outcomes=[
            DeliveryOutcome(destination="-100111", success=True, timestamp=now),
            DeliveryOutcome(destination="-100222:7", success=True, timestamp=now),
        ]
    )


@pytest.fixture
def mock_fetcher(sample_metadata):
    """Create a metadata fetcher mock returning the sample video."""
    fetcher = Mock()
    fetcher.fetch = AsyncMock(return_value=sample_metadata)
    fetcher.list_recent = AsyncMock(return_value=[sample_metadata])
    return fetcher


@pytest.fixture
def mock_suppressor():
    """Create a suppressor mock that has seen nothing."""
    suppressor = Mock()
    suppressor.exists = AsyncMock(return_value=False)
    suppressor.mark_notified = AsyncMock()
    suppressor.clear = AsyncMock()
    return suppressor


@pytest.fixture
def mock_dispatcher(successful_report):
    """Create a dispatcher mock reporting full success."""
    dispatcher = Mock()
    dispatcher.deliver = AsyncMock(return_value=successful_report)
    dispatcher.test_connection = AsyncMock(return_value=True)
    return dispatcher


# Environment fixtures
@pytest.fixture
def mock_env_vars():
    """Set the environment variables read by the built-in configuration."""
    env_vars = {
        "YOUTUBE_CHANNEL_ID": CHANNEL_ID,
        "YOUTUBE_API_KEY": "test_api_key",
        "TELEGRAM_BOT_TOKEN": "123456:test_bot_token",
        "TELEGRAM_CHAT_IDS": "-100111, -100222:7",
        "PLATFORM_LINKS": (
            '{"youtube": "https://www.youtube.com/@example/live",'
            ' "x": "https://x.com/example",'
            ' "kick": "https://kick.com/example",'
            ' "twitch": "https://www.twitch.tv/example",'
            ' "instagram": "https://www.instagram.com/example",'
            ' "linkedin": "https://www.linkedin.com/company/example"}'
        ),
        "PORT": "3000",
        "WEBHOOK_SECRET": "test_secret",
        "LOG_LEVEL": "warn",
        "REDIS_URL": "redis://localhost:6379/0",
    }
    optional_vars = ["BASE_URL", "TELEGRAM_AUTHORIZED_USERS"]

    # Store original values
    original_values = {}
    for key in list(env_vars) + optional_vars:
        original_values[key] = os.environ.get(key)

    for key, value in env_vars.items():
        os.environ[key] = value
    for key in optional_vars:
        os.environ.pop(key, None)

    yield env_vars

    # Restore original values
    for key, original_value in original_values.items():
        if original_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original_value


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")


def pytest_collection_modifyitems(config, items):
    """Add the unit marker to every test not marked otherwise."""
    for item in items:
        if not any(
            marker.name in ["integration", "slow"] for marker in item.iter_markers()
        ):
            item.add_marker(pytest.mark.unit)
