"""Simulated infrared sensor backend for pipeline testing."""

from __future__ import annotations

import threading
import time
from typing import Iterable, List, Optional, Sequence, Union

from contracts import SensorReport, SensorSlot
from exceptions import SensorConfigurationError, SensorNotFoundError
from log_config.logger import get_logger

from .sensor_device import BATTERY_MAX, REPORT_MODES, ReportCallback, SensorDevice

logger = get_logger(__name__)

BlobTuple = Sequence[float]
ScriptTick = Union[SensorReport, Sequence[BlobTuple]]


def build_report(blobs: Sequence[BlobTuple], max_blobs: int = 4, battery: int = 0) -> SensorReport:
    """Pack ``(x, y)`` or ``(x, y, size)`` tuples into a fixed-slot report."""
    slots: List[SensorSlot] = []
    for blob in list(blobs)[:max_blobs]:
        size = int(blob[2]) if len(blob) > 2 else None
        slots.append(SensorSlot(found=True, x=int(round(blob[0])), y=int(round(blob[1])), size=size))
    while len(slots) < max_blobs:
        slots.append(SensorSlot(found=False))
    return SensorReport(slots=tuple(slots), battery=battery)


class SimulatedSensor(SensorDevice):
    """Plays back a scripted sequence of blob positions.

    With ``rate_hz`` above zero a daemon thread delivers one report per period
    once a report mode is set. Once the script is exhausted the sensor keeps
    reporting empty ticks unless ``loop`` is set. Tests can skip the thread
    entirely and drive the callback with :meth:`emit`.
    """

    def __init__(
        self,
        script: Optional[Iterable[ScriptTick]] = None,
        rate_hz: float = 0.0,
        max_blobs: int = 4,
        battery: int = 150,
        loop: bool = False,
        fail_on_connect: bool = False,
    ) -> None:
        self._script: List[ScriptTick] = list(script or [])
        self._rate_hz = rate_hz
        self._max_blobs = max_blobs
        self._battery = min(battery, BATTERY_MAX)
        self._loop = loop
        self._fail_on_connect = fail_on_connect
        self._device_id: Optional[str] = None
        self._connected = False
        self._mode: Optional[str] = None
        self._callback: Optional[ReportCallback] = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._tick_index = 0

    @property
    def max_blobs(self) -> int:
        return self._max_blobs

    @property
    def battery(self) -> int:
        return self._battery

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def report_mode(self) -> Optional[str]:
        return self._mode

    def set_battery(self, level: int) -> None:
        self._battery = max(0, min(int(level), BATTERY_MAX))

    def connect(self, device_id: Optional[str] = None) -> None:
        if self._fail_on_connect:
            raise SensorNotFoundError("No simulated sensor available", device_id=device_id)
        self._device_id = device_id or "sim"
        self._connected = True
        logger.info(f"Simulated sensor {self._device_id} connected")

    def set_report_mode(self, mode: str) -> None:
        if not self._connected:
            raise SensorConfigurationError("Sensor is not connected", device_id=self._device_id)
        if mode not in REPORT_MODES:
            raise SensorConfigurationError(
                f"Unsupported report mode '{mode}' (expected one of {', '.join(REPORT_MODES)})",
                device_id=self._device_id,
            )
        self._mode = mode
        if self._rate_hz > 0 and self._thread is None:
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run, name=f"sensor-{self._device_id}", daemon=True
            )
            self._thread.start()

    def set_report_callback(self, callback: Optional[ReportCallback]) -> None:
        with self._lock:
            self._callback = callback

    def disconnect(self) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
            if thread.is_alive():
                logger.warning(f"Sensor thread for {self._device_id} did not stop in time")
        if self._connected:
            logger.info(f"Simulated sensor {self._device_id} disconnected")
        self._connected = False
        self._mode = None

    def emit(self, report: object) -> None:
        """Deliver one report synchronously on the caller's thread."""
        with self._lock:
            callback = self._callback
        if callback is not None:
            callback(report)

    def next_report(self) -> SensorReport:
        """Return the next scripted tick as a report."""
        if self._tick_index >= len(self._script):
            if not self._loop or not self._script:
                return build_report([], self._max_blobs, self._battery)
            self._tick_index = 0
        tick = self._script[self._tick_index]
        self._tick_index += 1
        if isinstance(tick, SensorReport):
            return tick
        return build_report(tick, self._max_blobs, self._battery)

    def _run(self) -> None:
        period = 1.0 / self._rate_hz
        next_due = time.monotonic()
        while not self._stop_event.is_set():
            self.emit(self.next_report())
            next_due += period
            delay = next_due - time.monotonic()
            if delay > 0:
                self._stop_event.wait(delay)
            else:
                next_due = time.monotonic()
