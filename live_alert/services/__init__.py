"""
Service layer for the Live Alert system.

Configuration loading and bot command authorization.
"""

from .config_manager import ConfigurationManager
from .telegram_authorizer import TelegramAuthorizer

__all__ = [
    "ConfigurationManager",
    "TelegramAuthorizer",
]
