"""Marker tag detection for video descriptions."""

import logging
import re
from typing import Optional

from ..models.item import ItemMetadata

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "#live"


class TagFilter:
    """Decides whether a video description announces a livestream."""

    def __init__(self, marker: str = DEFAULT_MARKER, context_length: int = 50):
        """Initialize the filter with the marker token and log context size."""
        self.marker = marker
        self.context_length = context_length
        # The marker must end on a word boundary: "#live!" matches,
        # "#livestream" does not.
        self.pattern = re.compile(re.escape(marker) + r"\b", re.IGNORECASE)

    def matches(self, description: Optional[str]) -> bool:
        """Check if the description contains the marker as a separate word."""
        if not description:
            return False
        return self.pattern.search(description) is not None

    def extract_context(
        self, description: Optional[str], context_length: Optional[int] = None
    ) -> Optional[str]:
        """Return the text surrounding the first marker match, for logging.

        Args:
            description: Text to search
            context_length: Characters to keep on each side of the match

        Returns:
            The excerpt, or None if the marker does not occur
        """
        if not description:
            return None

        match = self.pattern.search(description)
        if not match:
            return None

        length = self.context_length if context_length is None else context_length
        start = max(0, match.start() - length)
        end = min(len(description), match.end() + length)
        return description[start:end]

    def should_notify(self, metadata: ItemMetadata) -> bool:
        """Apply the predicate to a video and log the decision."""
        has_tag = self.matches(metadata.description)

        if has_tag:
            logger.info(
                f'Detected {self.marker} tag in video "{metadata.title}" '
                f"(ID: {metadata.id}). "
                f'Context: "{self.extract_context(metadata.description)}"'
            )
        else:
            logger.debug(
                f'No {self.marker} tag found in video "{metadata.title}" '
                f"(ID: {metadata.id})"
            )

        return has_tag
