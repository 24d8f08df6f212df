"""
Message delivery result models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class DeliveryOutcome:
    """Result of delivering one message to one destination."""

    destination: str
    success: bool
    timestamp: datetime
    error_message: Optional[str] = None
    attempts: int = 1

    def validate(self) -> bool:
        """Validate delivery outcome data."""
        if not self.destination:
            raise ValueError("destination cannot be empty")

        if not isinstance(self.success, bool):
            raise ValueError("success must be a boolean")

        if not isinstance(self.timestamp, datetime):
            raise ValueError("timestamp must be a datetime object")

        if self.error_message is not None:
            if not isinstance(self.error_message, str):
                raise ValueError("error_message must be a string or None")

            if len(self.error_message) > 500:
                raise ValueError("error_message too long (max 500 characters)")

        if not self.success and not self.error_message:
            raise ValueError("error_message should be provided when success is False")

        return True


@dataclass
class DeliveryReport:
    """Ordered per-destination outcomes of one fan-out."""

    outcomes: List[DeliveryOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def failures(self) -> List[DeliveryOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    def __len__(self) -> int:
        return len(self.outcomes)

    def __iter__(self):
        return iter(self.outcomes)
