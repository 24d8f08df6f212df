"""
Telegram-specific data models for the Live Alert system.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class AuthResult:
    """Result of an authorization check."""

    authorized: bool
    reason: str
    user_id: Optional[str] = None
