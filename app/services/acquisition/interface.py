"""AcquisitionCoordinator interface.

Responsibility: own the sensor session, turn each hardware report into a
sealed :class:`Frame` of classified contacts, and hand frames and battery
changes to their consumers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple

from contracts import CalibrationData, CalibrationRectangle, Frame

FrameCallback = Callable[[Frame], None]
"""Callback invoked once per sensor tick with the sealed frame."""

BatteryCallback = Callable[[int], None]
"""Callback invoked when the battery reading changes.

Args:
    level: New battery reading, clamped to the sensor maximum
"""


class AcquisitionCoordinator(ABC):
    """Abstract interface for the acquisition coordinator.

    Thread-Safety:
        - start(), stop() and set_calibration_data() may be called from any
          thread and are serialized with report processing
        - Frame and battery callbacks run on dispatch threads, never on the
          sensor thread, unless the coordinator is configured for inline
          dispatch
    """

    @abstractmethod
    def start(self) -> None:
        """Open the sensor session and begin producing frames.

        Raises:
            SensorConnectionError: If the sensor cannot be opened or configured
            RuntimeError: If acquisition is already running
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop acquisition and release the sensor session.

        Idempotent: Safe to call multiple times, including after a failed start.
        """

    @abstractmethod
    def is_running(self) -> bool:
        """Return True while the sensor session is producing frames."""

    @abstractmethod
    def set_calibration_data(
        self,
        source: CalibrationRectangle,
        destination: CalibrationRectangle,
        screen_size: Tuple[float, float],
    ) -> None:
        """Install a new calibration.

        The transform is computed before this returns, so a warp performed by
        the next tick always sees a complete calibration.

        Raises:
            DegenerateCalibrationError: If either rectangle is degenerate;
                the previous calibration stays in force
            CalibrationError: If the screen size is not positive
        """

    @abstractmethod
    def apply_calibration(self, data: CalibrationData) -> None:
        """Install a stored :class:`CalibrationData` record."""

    @abstractmethod
    def set_transform_enabled(self, enabled: bool) -> None:
        """Enable or bypass the calibration transform.

        While disabled, contacts carry raw device coordinates.
        """

    @abstractmethod
    def on_frame(self, callback: Optional[FrameCallback]) -> None:
        """Install the single frame consumer (None to detach)."""

    @abstractmethod
    def on_battery_changed(self, callback: Optional[BatteryCallback]) -> None:
        """Install the single battery consumer (None to detach)."""

    @property
    @abstractmethod
    def battery_level(self) -> int:
        """Most recent battery reading."""
