"""
Notification models.
"""

from dataclasses import dataclass
from datetime import datetime

from .config import PlatformLinks
from .item import ItemMetadata


@dataclass(frozen=True)
class NotificationRecord:
    """A qualifying item, the links to advertise, and when it was detected."""

    item: ItemMetadata
    links: PlatformLinks
    detected_at: datetime
