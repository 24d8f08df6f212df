"""
Protocol interfaces for the Live Alert system.

These protocols are the seams between the feed controller and its
collaborators, so tests and alternative transports can be swapped in.
"""

from typing import List, Optional, Protocol

from .models.config import PlatformLinks
from .models.delivery import DeliveryReport
from .models.item import ItemMetadata
from .models.notification import NotificationRecord


class IMetadataFetcher(Protocol):
    """Protocol for looking up video metadata on the source platform."""

    async def fetch(self, item_id: str) -> Optional[ItemMetadata]:
        """Return metadata for ``item_id``, or None if it does not exist."""
        ...

    async def list_recent(
        self, channel_id: str, max_results: int = 10
    ) -> List[ItemMetadata]:
        """Return the most recent videos published on a channel."""
        ...


class ITagFilter(Protocol):
    """Protocol for the notification predicate."""

    def matches(self, description: Optional[str]) -> bool:
        """Check whether a description carries the marker tag."""
        ...

    def should_notify(self, metadata: ItemMetadata) -> bool:
        """Check the predicate and log the decision."""
        ...


class IDuplicateSuppressor(Protocol):
    """Protocol for the already-notified store."""

    async def exists(self, item_id: str) -> bool:
        """Check whether a notification was already sent for ``item_id``."""
        ...

    async def mark_notified(self, item_id: str) -> None:
        """Record that a notification was sent for ``item_id``."""
        ...

    async def clear(self, item_id: str) -> None:
        """Forget ``item_id`` so it can notify again."""
        ...


class INotificationFormatter(Protocol):
    """Protocol for rendering notifications."""

    def format(self, record: NotificationRecord) -> str:
        """Render a notification record as rich text."""
        ...

    def extract_links(self, text: str) -> PlatformLinks:
        """Recover the platform links from a rendered message."""
        ...


class IMessageDispatcher(Protocol):
    """Protocol for fanning a notification out to every destination."""

    async def deliver(self, record: NotificationRecord) -> DeliveryReport:
        """Send the notification to every configured destination."""
        ...

    async def test_connection(self) -> bool:
        """Test connection to the messaging platform."""
        ...
