"""
Error handling utilities for the Live Alert system.

This module provides the exception taxonomy, error tracking, and the
retry helpers shared by the components that talk to external services.
"""

import asyncio
import functools
import traceback
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .logging import get_logger


class LiveAlertError(Exception):
    """Base class for errors raised by the Live Alert system."""


class PayloadError(LiveAlertError):
    """Inbound webhook payload is malformed or has no feed entries."""


class FetchError(LiveAlertError):
    """Metadata request failed after all retry attempts."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        retry_after: Optional[str] = None,
    ):
        super().__init__(message)
        self.status = status
        self.retry_after = retry_after


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""

    INPUT = "input"
    NETWORK = "network"
    CONFIGURATION = "configuration"
    MESSAGE_DELIVERY = "message_delivery"
    EXTERNAL_SERVICE = "external_service"
    SYSTEM = "system"


@dataclass
class ErrorInfo:
    """Information about an error occurrence."""

    timestamp: datetime
    component: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    exception_type: str
    traceback: str
    context: Dict[str, Any]


class ErrorTracker:
    """
    Tracks errors and provides statistics for monitoring.
    """

    def __init__(self, max_errors: int = 1000):
        """
        Initialize error tracker.

        Args:
            max_errors: Maximum number of errors to keep in memory
        """
        self.max_errors = max_errors
        self.errors: List[ErrorInfo] = []
        self.error_counts: Dict[str, int] = {}
        self.logger = get_logger("error_tracker")

    def record_error(
        self,
        component: str,
        category: ErrorCategory,
        severity: ErrorSeverity,
        message: str,
        exception: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ErrorInfo:
        """
        Record an error occurrence.

        Args:
            component: Component where error occurred
            category: Error category
            severity: Error severity
            message: Error message
            exception: Exception object if available
            context: Additional context information

        Returns:
            ErrorInfo object
        """
        tb = ""
        if exception is not None:
            tb = "".join(
                traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                )
            )

        error_info = ErrorInfo(
            timestamp=datetime.now(),
            component=component,
            category=category,
            severity=severity,
            message=message,
            exception_type=type(exception).__name__ if exception else "Unknown",
            traceback=tb,
            context=context or {},
        )

        self.errors.append(error_info)
        if len(self.errors) > self.max_errors:
            self.errors.pop(0)

        error_key = f"{component}.{category.value}.{severity.value}"
        self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1

        self.logger.error(
            f"Error recorded: {message}",
            extra={
                "error_component": component,
                "category": category.value,
                "severity": severity.value,
                "exception_type": error_info.exception_type,
                "context": context,
            },
        )

        return error_info

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics."""
        last_hour = datetime.now() - timedelta(hours=1)

        return {
            "total_errors": len(self.errors),
            "errors_last_hour": len(
                [e for e in self.errors if e.timestamp >= last_hour]
            ),
            "error_counts": self.error_counts.copy(),
            "severity_breakdown": {
                severity.value: len([e for e in self.errors if e.severity == severity])
                for severity in ErrorSeverity
            },
        }


def linear_backoff(attempt: int, base_delay: float, max_delay: float = 60.0) -> float:
    """Return ``attempt * base_delay`` capped at ``max_delay``."""
    return min(base_delay * attempt, max_delay)


def parse_retry_after(
    value: Optional[str], default: float, maximum: float
) -> float:
    """
    Convert a Retry-After header into a sleep duration in seconds.

    The header comes from an upstream service and is treated as untrusted:
    anything that is not a non-negative number falls back to ``default``,
    and the result never exceeds ``maximum``.
    """
    if value is None:
        return min(default, maximum)

    try:
        seconds = float(str(value).strip())
    except ValueError:
        return min(default, maximum)

    if seconds != seconds or seconds < 0:  # NaN or negative
        return min(default, maximum)

    return min(seconds, maximum)


# Global error tracker instance
_error_tracker: Optional[ErrorTracker] = None


def get_error_tracker() -> ErrorTracker:
    """Get global error tracker instance."""
    global _error_tracker
    if _error_tracker is None:
        _error_tracker = ErrorTracker()
    return _error_tracker


def with_error_handling(
    component: str,
    category: ErrorCategory,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    fallback_value: Any = None,
    suppress_exceptions: bool = False,
):
    """
    Decorator that records failures in the error tracker.

    Args:
        component: Component name
        category: Error category
        severity: Error severity
        fallback_value: Value to return on failure
        suppress_exceptions: Whether to suppress exceptions
    """

    def decorator(func: Callable) -> Callable:
        def _handle(e: Exception):
            get_error_tracker().record_error(
                component=component,
                category=category,
                severity=severity,
                message=f"Error in {func.__name__}: {str(e)}",
                exception=e,
                context={"function": func.__name__},
            )
            if not suppress_exceptions:
                raise e
            get_logger(component).warning(
                f"Suppressing exception in {func.__name__}: {str(e)}"
            )
            return fallback_value

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                return _handle(e)

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                return _handle(e)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
