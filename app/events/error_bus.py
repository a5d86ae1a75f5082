"""Centralized error event bus.

Components report recoverable faults here (malformed sensor reports,
rejected calibrations, failing frame handlers) so that a host application
can surface them without every component knowing about the UI.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from log_config.logger import get_logger

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    INFO = "info"
    WARNING = "warning"  # operation continues
    ERROR = "error"  # operation failed
    CRITICAL = "critical"  # acquisition cannot continue


class ErrorCategory(Enum):
    SENSOR = "sensor"
    CALIBRATION = "calibration"
    TRACKING = "tracking"
    DISPATCH = "dispatch"
    CONFIG = "config"
    SYSTEM = "system"


_LOG_LEVELS = {
    ErrorSeverity.INFO: "INFO",
    ErrorSeverity.WARNING: "WARNING",
    ErrorSeverity.ERROR: "ERROR",
    ErrorSeverity.CRITICAL: "CRITICAL",
}


@dataclass
class ErrorEvent:
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    source: str
    timestamp: float = field(default_factory=time.time)
    exception: Optional[BaseException] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        exc_info = f" ({self.exception.__class__.__name__})" if self.exception else ""
        return (
            f"[{self.severity.value.upper()}] {self.category.value}/{self.source}: "
            f"{self.message}{exc_info}"
        )


ErrorCallback = Callable[[ErrorEvent], None]


class ErrorEventBus:
    """Publish-subscribe hub for error events with a bounded history."""

    def __init__(self, max_history: int = 100) -> None:
        self._subscribers: Dict[ErrorCategory, List[ErrorCallback]] = {}
        self._all_subscribers: List[ErrorCallback] = []
        self._lock = threading.Lock()
        self._event_history: List[ErrorEvent] = []
        self._max_history = max_history
        self._error_counts: Dict[ErrorCategory, int] = {}

    def subscribe(self, callback: ErrorCallback, category: Optional[ErrorCategory] = None) -> None:
        """Subscribe to one category, or to every category when None."""
        with self._lock:
            if category is None:
                self._all_subscribers.append(callback)
            else:
                self._subscribers.setdefault(category, []).append(callback)

    def unsubscribe(self, callback: ErrorCallback, category: Optional[ErrorCategory] = None) -> None:
        with self._lock:
            targets = self._all_subscribers if category is None else self._subscribers.get(category, [])
            if callback in targets:
                targets.remove(callback)

    def publish(self, event: ErrorEvent) -> None:
        with self._lock:
            self._event_history.append(event)
            if len(self._event_history) > self._max_history:
                self._event_history.pop(0)
            self._error_counts[event.category] = self._error_counts.get(event.category, 0) + 1
            subscribers = self._subscribers.get(event.category, []) + self._all_subscribers

        logger.opt(exception=event.exception).log(_LOG_LEVELS[event.severity], str(event))

        # Subscribers run outside the lock so they may publish in turn.
        for callback in subscribers:
            try:
                callback(event)
            except Exception as exc:
                callback_name = getattr(callback, "__name__", repr(callback))
                logger.error(f"Error in error subscriber {callback_name}: {exc}")

    def get_history(self, category: Optional[ErrorCategory] = None, limit: int = 100) -> List[ErrorEvent]:
        with self._lock:
            history = list(self._event_history)
        if category is not None:
            history = [e for e in history if e.category == category]
        return history[-limit:]

    def get_error_counts(self) -> Dict[ErrorCategory, int]:
        with self._lock:
            return dict(self._error_counts)

    def clear_history(self) -> None:
        with self._lock:
            self._event_history.clear()
            self._error_counts.clear()


_error_bus: Optional[ErrorEventBus] = None
_bus_lock = threading.Lock()


def get_error_bus() -> ErrorEventBus:
    """Return the process-wide error bus, creating it on first use."""
    global _error_bus
    if _error_bus is None:
        with _bus_lock:
            if _error_bus is None:
                _error_bus = ErrorEventBus()
    return _error_bus


def publish_error(
    category: ErrorCategory,
    severity: ErrorSeverity,
    message: str,
    source: str,
    exception: Optional[BaseException] = None,
    **metadata: Any,
) -> None:
    """Build an :class:`ErrorEvent` and publish it on the global bus."""
    get_error_bus().publish(
        ErrorEvent(
            category=category,
            severity=severity,
            message=message,
            source=source,
            exception=exception,
            metadata=metadata,
        )
    )


__all__ = [
    "ErrorCallback",
    "ErrorCategory",
    "ErrorEvent",
    "ErrorEventBus",
    "ErrorSeverity",
    "get_error_bus",
    "publish_error",
]
