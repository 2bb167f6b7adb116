"""
Error handling utilities for the BOOTH notifier.

This module defines the error taxonomy shared by every component, an
in-memory error tracker whose statistics feed the system status, the
backoff schedule used for message retries, and the ``with_error_handling``
decorator used on the orchestrator's coroutines.
"""

import functools
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from .logging import get_logger


class NotifierError(Exception):
    """Base class for all errors raised by the notifier."""


class FetchError(NotifierError):
    """Network failure, timeout or non-2xx response from the catalog source."""


class ParseError(NotifierError):
    """Malformed catalog page, detail payload or stored filter."""


class StorageError(NotifierError):
    """Persistence round-trip failure."""


class TransportError(NotifierError):
    """Notification delivery or destination lookup failure."""


class ConfigError(NotifierError, ValueError):
    """Invalid configuration, surfaced only at startup."""


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""

    NETWORK = "network"
    CONFIGURATION = "configuration"
    PARSING = "parsing"
    STORAGE = "storage"
    MESSAGE_DELIVERY = "message_delivery"
    FILTER_EVALUATION = "filter_evaluation"
    SYSTEM = "system"


ERROR_CATEGORIES = {
    FetchError: ErrorCategory.NETWORK,
    ParseError: ErrorCategory.PARSING,
    StorageError: ErrorCategory.STORAGE,
    TransportError: ErrorCategory.MESSAGE_DELIVERY,
    ConfigError: ErrorCategory.CONFIGURATION,
}


def categorize(exception: Exception) -> ErrorCategory:
    """Map an exception onto its error category."""
    for error_type, category in ERROR_CATEGORIES.items():
        if isinstance(exception, error_type):
            return category
    return ErrorCategory.SYSTEM


@dataclass
class ErrorInfo:
    """A recorded error occurrence."""

    component: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    exception_type: str = "Unknown"
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


class ErrorTracker:
    """
    Keeps the most recent errors and running counts for the status report.
    """

    def __init__(self, max_errors: int = 1000):
        self.errors: Deque[ErrorInfo] = deque(maxlen=max_errors)
        self.error_counts: Counter = Counter()
        self.component_counts: Counter = Counter()
        self.logger = get_logger("error_tracker")

    def record_error(
        self,
        component: str,
        category: ErrorCategory,
        severity: ErrorSeverity,
        message: str,
        exception: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ErrorInfo:
        """
        Record an error occurrence and log it.

        Args:
            component: Component where the error occurred
            category: Error category
            severity: Error severity
            message: Error message
            exception: Exception object if available
            context: Identifiers of the affected item, guild or destination

        Returns:
            ErrorInfo object
        """
        error_info = ErrorInfo(
            component=component,
            category=category,
            severity=severity,
            message=message,
            exception_type=type(exception).__name__ if exception else "Unknown",
            context=context or {},
        )

        self.errors.append(error_info)
        self.error_counts[f"{component}.{category.value}.{severity.value}"] += 1
        self.component_counts[component] += 1

        self.logger.error(
            f"Error recorded: {message}",
            extra={
                "error_component": component,
                "category": category.value,
                "severity": severity.value,
                "exception_type": error_info.exception_type,
                "context": error_info.context,
            },
        )
        return error_info

    def get_error_stats(self) -> Dict[str, Any]:
        """Summarize recorded errors for the status report."""
        last_hour = datetime.now() - timedelta(hours=1)
        categories = Counter(e.category.value for e in self.errors)

        return {
            "total_errors": len(self.errors),
            "errors_last_hour": sum(1 for e in self.errors if e.timestamp >= last_hour),
            "error_counts": dict(self.error_counts),
            "component_error_counts": dict(self.component_counts),
            "category_breakdown": {
                category.value: categories[category.value] for category in ErrorCategory
            },
        }


@dataclass
class RetryConfig:
    """Exponential backoff schedule."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based failed attempt."""
        return min(self.base_delay * (2**attempt), self.max_delay)


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
    category: Optional[ErrorCategory] = None,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    fallback_value: Any = None,
    suppress_exceptions: bool = False,
):
    """
    Decorator recording failures of a coroutine with the error tracker.

    Args:
        component: Component name
        category: Error category; derived from the exception type when None
        severity: Error severity
        fallback_value: Value returned when the exception is suppressed
        suppress_exceptions: Whether to swallow the exception after recording it
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                get_error_tracker().record_error(
                    component=component,
                    category=category or categorize(e),
                    severity=severity,
                    message=f"Error in {func.__name__}: {e}",
                    exception=e,
                    context={"function": func.__name__},
                )
                if not suppress_exceptions:
                    raise

                get_logger(component).warning(
                    f"Suppressing exception in {func.__name__}: {e}"
                )
                return fallback_value

        return wrapper

    return decorator
