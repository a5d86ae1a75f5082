"""Sensor session abstraction for infrared blob tracking backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from contracts import SensorReport

ReportCallback = Callable[[SensorReport], None]

# Report modes understood by the sensor backends. "ir_accel" is the default
# and "ir_extension_accel" is used when an extension controller is attached.
REPORT_MODES = ("ir_basic", "ir_accel", "ir_extension_accel")

# Largest battery reading the sensor reports.
BATTERY_MAX = 200


class SensorDevice(ABC):
    """Hardware session delivering one :class:`SensorReport` per sample.

    Reports are delivered through the registered callback on the backend's own
    thread. Implementations must not hold internal locks while invoking it.
    """

    @property
    @abstractmethod
    def max_blobs(self) -> int:
        """Number of blob slots in every report."""

    @property
    @abstractmethod
    def battery(self) -> int:
        """Most recent battery reading."""

    @abstractmethod
    def connect(self, device_id: Optional[str] = None) -> None:
        """Open the sensor session or raise SensorConnectionError."""

    @abstractmethod
    def set_report_mode(self, mode: str) -> None:
        """Select the report type; reports start flowing afterwards."""

    @abstractmethod
    def set_report_callback(self, callback: Optional[ReportCallback]) -> None:
        """Register the per-sample callback (None to detach)."""

    @abstractmethod
    def disconnect(self) -> None:
        """Close the session. Safe to call when not connected."""
