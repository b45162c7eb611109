"""
Error handling utilities for the Kufar notifier.

No error raised inside the sync pipeline is allowed to stop the process.
This module gives components a shared way to record failures, retry
initialization steps and mark parts of the pipeline as running in a
degraded mode (for example on the built-in default filter map).
"""

import asyncio
import functools
import random
import traceback
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from .logging import get_logger

COMPONENT_HISTORY = 100


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories matching the pipeline failure taxonomy."""

    NETWORK = "network"
    CONFIGURATION = "configuration"
    PARSING = "parsing"
    RESOLUTION = "resolution"
    MESSAGE_DELIVERY = "message_delivery"
    PERMISSION = "permission"
    STORAGE = "storage"
    SYSTEM = "system"


@dataclass
class ErrorInfo:
    """One recorded failure."""

    timestamp: datetime
    component: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    exception_type: str = "Unknown"
    traceback: str = ""
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.component}.{self.category.value}.{self.severity.value}"


class ErrorTracker:
    """Keeps a bounded history of errors for status reporting."""

    def __init__(self, max_errors: int = 1000):
        self.max_errors = max_errors
        self.errors: Deque[ErrorInfo] = deque(maxlen=max_errors)
        self.error_counts: Counter = Counter()
        self.component_errors: Dict[str, Deque[ErrorInfo]] = {}
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
            component: Component where the error occurred
            category: Failure category
            severity: How bad it is
            message: Human readable description
            exception: Exception object if available
            context: Subscriber keys, listing ids and the like

        Returns:
            The stored ErrorInfo
        """
        error_info = ErrorInfo(
            timestamp=datetime.now(),
            component=component,
            category=category,
            severity=severity,
            message=message,
            context=context or {},
        )
        if exception is not None:
            error_info.exception_type = type(exception).__name__
            error_info.traceback = "".join(
                traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                )
            )

        self.errors.append(error_info)
        self.error_counts[error_info.key] += 1
        self.component_errors.setdefault(
            component, deque(maxlen=COMPONENT_HISTORY)
        ).append(error_info)

        self.logger.error(
            f"Error recorded: {message}",
            extra={
                "component": component,
                "category": category.value,
                "severity": severity.value,
                "exception_type": error_info.exception_type,
                "context": context,
            },
        )
        return error_info

    def get_error_stats(self) -> Dict[str, Any]:
        """Totals, last-hour count and per component/category breakdowns."""
        last_hour = datetime.now() - timedelta(hours=1)
        categories = Counter(error.category for error in self.errors)

        return {
            "total_errors": len(self.errors),
            "errors_last_hour": sum(1 for e in self.errors if e.timestamp >= last_hour),
            "error_counts": dict(self.error_counts),
            "component_error_counts": {
                component: len(history)
                for component, history in self.component_errors.items()
            },
            "category_breakdown": {
                category.value: categories[category] for category in ErrorCategory
            },
        }

    def get_component_errors(self, component: str, limit: int = 10) -> List[ErrorInfo]:
        """Most recent errors of one component, oldest first."""
        return list(self.component_errors.get(component, ()))[-limit:]


class RetryConfig:
    """How often and how patiently a decorated coroutine is retried."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_backoff: bool = True,
        jitter: bool = True,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_backoff = exponential_backoff
        self.jitter = jitter

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds before the retry that follows ``attempt`` (0-based)."""
        delay = self.base_delay
        if self.exponential_backoff:
            delay = min(self.base_delay * (2**attempt), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random() * 0.5
        return delay


_error_tracker: Optional[ErrorTracker] = None


def get_error_tracker() -> ErrorTracker:
    """Process-wide error tracker."""
    global _error_tracker
    if _error_tracker is None:
        _error_tracker = ErrorTracker()
    return _error_tracker


def with_error_handling(
    component: str,
    category: ErrorCategory,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    retry_config: Optional[RetryConfig] = None,
    fallback_value: Any = None,
    suppress_exceptions: bool = False,
):
    """
    Decorator that records failures and optionally retries or suppresses them.

    Works on both coroutines and plain functions; ``retry_config`` only
    applies to coroutines, since the sync pipeline steps that run in a
    thread are retried by the next cycle instead.

    Args:
        component: Component name used in the error history
        category: Failure category
        severity: Failure severity
        retry_config: Retry policy (coroutines only)
        fallback_value: Returned when an exception is suppressed
        suppress_exceptions: Return ``fallback_value`` instead of raising
    """

    def record(func: Callable, error: Exception, context: Dict[str, Any]) -> None:
        get_error_tracker().record_error(
            component=component,
            category=category,
            severity=severity,
            message=f"Error in {func.__name__}: {error}",
            exception=error,
            context={"function": func.__name__, **context},
        )

    def give_up(func: Callable, error: Exception) -> Any:
        if not suppress_exceptions:
            raise error
        get_logger(component).warning(
            f"Suppressing exception in {func.__name__}: {error}"
        )
        return fallback_value

    def decorator(func: Callable) -> Callable:
        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                attempts = retry_config.max_attempts if retry_config else 1

                for attempt in range(attempts):
                    try:
                        result = await func(*args, **kwargs)
                    except Exception as e:
                        record(func, e, {"attempt": attempt + 1, "max_attempts": attempts})
                        if attempt == attempts - 1:
                            return give_up(func, e)

                        delay = retry_config.delay_for(attempt)
                        get_logger(component).info(
                            f"Retrying {func.__name__} in {delay:.2f} seconds "
                            f"(attempt {attempt + 1}/{attempts})"
                        )
                        await asyncio.sleep(delay)
                    else:
                        if attempt:
                            get_logger(component).info(
                                f"{func.__name__} succeeded on attempt {attempt + 1}"
                            )
                        return result

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                record(func, e, {})
                return give_up(func, e)

        return sync_wrapper

    return decorator


class GracefulDegradation:
    """
    Tracks components that are running on fallback behaviour.

    The resolver registers itself here while a host is served from the
    built-in default filter map; the orchestrator does the same for an
    unreachable bot or Telegram channel.
    """

    def __init__(self):
        self.degraded_components: Dict[str, Dict[str, Any]] = {}
        self.logger = get_logger("graceful_degradation")

    def degrade_component(
        self,
        component: str,
        reason: str,
        fallback_behavior: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    ):
        info = {
            "reason": reason,
            "fallback_behavior": fallback_behavior,
            "severity": severity.value,
            "timestamp": datetime.now().isoformat(),
        }
        self.degraded_components[component] = info
        self.logger.warning(
            f"Component degraded: {component}",
            extra={"component": component, **info},
        )

    def restore_component(self, component: str):
        if self.degraded_components.pop(component, None) is not None:
            self.logger.info(f"Component restored: {component}")

    def is_degraded(self, component: str) -> bool:
        return component in self.degraded_components

    def get_all_degraded(self) -> Dict[str, Dict[str, Any]]:
        return dict(self.degraded_components)


_degradation_manager: Optional[GracefulDegradation] = None


def get_degradation_manager() -> GracefulDegradation:
    """Process-wide degradation registry."""
    global _degradation_manager
    if _degradation_manager is None:
        _degradation_manager = GracefulDegradation()
    return _degradation_manager
