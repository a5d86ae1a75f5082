"""Single-consumer delivery channels for frames and battery changes.

Producers (the sensor callback thread) publish items without waiting for
consumers. Each channel owns one consumer thread, so items reach the handler
in publish order and a slow handler never runs concurrently with itself.
"""

from __future__ import annotations

import queue
import threading
import time
from typing import Callable, Generic, Optional, TypeVar

from app.events.error_bus import ErrorCategory, ErrorSeverity, publish_error
from log_config.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DISPATCH_MODES = ("threaded", "inline")

_STOP = object()


class SingleConsumerChannel(Generic[T]):
    """FIFO channel delivering items to one handler.

    In ``threaded`` mode items are queued and delivered by a dedicated
    consumer thread. In ``inline`` mode :meth:`publish` calls the handler
    directly on the publisher's thread.

    A bounded channel (``maxsize > 0``) drops its oldest item when full.
    Handler exceptions are logged and reported on the error bus; delivery of
    later items continues.
    """

    def __init__(self, name: str, mode: str = "threaded", maxsize: int = 0) -> None:
        if mode not in DISPATCH_MODES:
            raise ValueError(f"Unknown dispatch mode: {mode}")
        self._name = name
        self._mode = mode
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._handler: Optional[Callable[[T], None]] = None
        self._handler_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._pending = 0
        self._idle = threading.Condition()
        self._delivered = 0
        self._dropped = 0
        self._handler_errors = 0
        self._last_drop_log_time = 0.0

    @property
    def name(self) -> str:
        return self._name

    @property
    def mode(self) -> str:
        return self._mode

    def set_handler(self, handler: Optional[Callable[[T], None]]) -> None:
        """Install the consumer, replacing any previous one."""
        with self._handler_lock:
            self._handler = handler

    def start(self) -> None:
        if self._mode == "inline" or self._thread is not None:
            return
        self._thread = threading.Thread(target=self._consume, name=f"dispatch-{self._name}", daemon=True)
        self._thread.start()

    def close(self, timeout: float = 2.0) -> None:
        """Deliver whatever is queued, then stop the consumer thread."""
        thread = self._thread
        if thread is None:
            return
        self._thread = None
        self._queue.put(_STOP)
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"Dispatch channel '{self._name}' did not stop in time")

    def publish(self, item: T) -> None:
        if self._mode == "inline":
            self._deliver(item)
            return

        with self._idle:
            self._pending += 1
        try:
            self._queue.put_nowait(item)
            return
        except queue.Full:
            pass

        try:
            self._queue.get_nowait()
            self._mark_done()
            self._record_drop()
        except queue.Empty:
            pass
        self._queue.put_nowait(item)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Block until every published item has been handled.

        Returns:
            True if the channel is idle, False on timeout
        """
        if self._mode == "inline":
            return True
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def get_stats(self) -> dict:
        return {
            "delivered": self._delivered,
            "dropped": self._dropped,
            "handler_errors": self._handler_errors,
            "queued": self._queue.qsize(),
        }

    def _consume(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            try:
                self._deliver(item)
            finally:
                self._mark_done()

    def _deliver(self, item: T) -> None:
        with self._handler_lock:
            handler = self._handler
        if handler is None:
            return
        try:
            handler(item)
            self._delivered += 1
        except Exception as exc:
            self._handler_errors += 1
            logger.error(f"Handler on channel '{self._name}' failed: {exc.__class__.__name__}: {exc}")
            publish_error(
                category=ErrorCategory.DISPATCH,
                severity=ErrorSeverity.WARNING,
                message=f"Handler on channel '{self._name}' failed: {exc}",
                source=f"SingleConsumerChannel.{self._name}",
                exception=exc,
            )

    def _mark_done(self) -> None:
        with self._idle:
            self._pending -= 1
            if self._pending == 0:
                self._idle.notify_all()

    def _record_drop(self) -> None:
        self._dropped += 1
        now = time.monotonic()
        # Throttle to once per 5 seconds.
        if now - self._last_drop_log_time > 5.0:
            self._last_drop_log_time = now
            logger.warning(f"Dispatch channel '{self._name}' full, dropped {self._dropped} items total")
            publish_error(
                category=ErrorCategory.DISPATCH,
                severity=ErrorSeverity.WARNING,
                message=f"Dispatch channel '{self._name}' full, dropping items",
                source=f"SingleConsumerChannel.{self._name}",
                items_dropped=self._dropped,
            )
