"""
Video metadata models.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class ItemMetadata:
    """Descriptive attributes of a published video."""

    id: str
    title: str
    description: str
    published_at: datetime
    channel_id: str
    channel_title: str
    thumbnail_url: Optional[str] = None

    def validate(self) -> bool:
        """Validate the metadata."""
        if not self.id or not self.id.strip():
            raise ValueError("Item id cannot be empty")

        if not isinstance(self.title, str):
            raise ValueError("Item title must be a string")

        if not isinstance(self.description, str):
            raise ValueError("Item description must be a string")

        if not isinstance(self.published_at, datetime):
            raise ValueError("published_at must be a datetime object")

        return True
