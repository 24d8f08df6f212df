"""
Data models for the Live Alert system.

This module contains the data classes used throughout the application for
representing feed entries, video metadata, notifications, delivery results
and configuration.
"""

from .config import (
    Configuration,
    Destination,
    PlatformLinks,
    ServerConfig,
    TelegramConfig,
    YouTubeConfig,
)
from .delivery import DeliveryOutcome, DeliveryReport
from .feed import EntryResult, FeedEntry
from .item import ItemMetadata
from .notification import NotificationRecord

__all__ = [
    "FeedEntry",
    "EntryResult",
    "ItemMetadata",
    "NotificationRecord",
    "DeliveryOutcome",
    "DeliveryReport",
    "Configuration",
    "Destination",
    "PlatformLinks",
    "ServerConfig",
    "TelegramConfig",
    "YouTubeConfig",
]
