"""
Core components for the Live Alert system.

This module contains the components that fetch video metadata, filter for
the marker tag, suppress duplicates, format notifications and deliver them.
"""

from .duplicate_suppressor import DuplicateSuppressor
from .feed_controller import FeedIngestionController
from .message_dispatcher import BaseMessageDispatcher, TelegramDispatcher
from .metadata_fetcher import MetadataFetcher
from .notification_formatter import NotificationFormatter
from .tag_filter import TagFilter

__all__ = [
    "FeedIngestionController",
    "MetadataFetcher",
    "TagFilter",
    "DuplicateSuppressor",
    "NotificationFormatter",
    "BaseMessageDispatcher",
    "TelegramDispatcher",
]
