"""
Inbound feed models.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


@dataclass
class FeedEntry:
    """One ``<entry>`` of a WebSub notification feed."""

    item_id: Optional[str]
    title: str
    published: Optional[datetime] = None
    updated: Optional[datetime] = None
    channel_id: Optional[str] = None

    def validate(self) -> bool:
        """Validate the feed entry."""
        if not self.item_id or not self.item_id.strip():
            raise ValueError("Feed entry item id cannot be empty")

        return True


class EntryResult(Enum):
    """Where processing of a single feed entry stopped."""

    DELIVERED = "delivered"
    MISSING_ID = "missing_id"
    DUPLICATE = "duplicate"
    METADATA_UNAVAILABLE = "metadata_unavailable"
    NO_TAG = "no_tag"
    FAILED = "failed"
