"""Event delivery and error reporting."""

from app.events.dispatcher import DISPATCH_MODES, SingleConsumerChannel
from app.events.error_bus import (
    ErrorCategory,
    ErrorEvent,
    ErrorEventBus,
    ErrorSeverity,
    get_error_bus,
    publish_error,
)

__all__ = [
    "DISPATCH_MODES",
    "ErrorCategory",
    "ErrorEvent",
    "ErrorEventBus",
    "ErrorSeverity",
    "SingleConsumerChannel",
    "get_error_bus",
    "publish_error",
]
