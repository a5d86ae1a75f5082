"""Interactive four-point calibration against a running coordinator."""

from __future__ import annotations

import threading
from enum import Enum
from typing import List, Optional, Tuple

from app.services.acquisition.interface import AcquisitionCoordinator
from calib.store import CalibrationStore
from contracts import CalibrationData, CalibrationRectangle, ContactType, Frame, Point2D
from exceptions import CalibrationError, DegenerateCalibrationError
from log_config.logger import get_logger

logger = get_logger(__name__)

CORNER_ORDER = ("top_left", "top_right", "bottom_left", "bottom_right")


class CalibrationPhase(Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    COMPLETE = "complete"


class CalibrationSession:
    """Collects the four source corners and installs the calibration.

    While collecting, the coordinator's transform is bypassed so contacts
    carry raw device coordinates. Points are taken in top-left, top-right,
    bottom-left, bottom-right order, either explicitly through
    :meth:`add_point` or from the lift-off position of each touch when the
    session is fed frames through :meth:`observe_frame`.
    """

    def __init__(
        self,
        coordinator: AcquisitionCoordinator,
        store: Optional[CalibrationStore] = None,
    ) -> None:
        self._coordinator = coordinator
        self._store = store
        self._lock = threading.Lock()
        self._phase = CalibrationPhase.IDLE
        self._points: List[Point2D] = []
        self._destination: Optional[CalibrationRectangle] = None
        self._screen_size: Tuple[float, float] = (1.0, 1.0)
        self._result: Optional[CalibrationData] = None
        self._saved: Optional[bool] = None

    @property
    def phase(self) -> CalibrationPhase:
        with self._lock:
            return self._phase

    @property
    def points(self) -> List[Point2D]:
        with self._lock:
            return list(self._points)

    @property
    def next_corner(self) -> Optional[str]:
        """Name of the corner the user should touch next."""
        with self._lock:
            if self._phase is not CalibrationPhase.COLLECTING:
                return None
            return CORNER_ORDER[len(self._points)]

    @property
    def result(self) -> Optional[CalibrationData]:
        return self._result

    @property
    def saved(self) -> Optional[bool]:
        """Outcome of the last store write, None if nothing was written."""
        return self._saved

    def begin(self, destination: CalibrationRectangle, screen_size: Tuple[float, float]) -> None:
        with self._lock:
            self._phase = CalibrationPhase.COLLECTING
            self._points = []
            self._destination = destination
            self._screen_size = (float(screen_size[0]), float(screen_size[1]))
            self._result = None
            self._saved = None
        self._coordinator.set_transform_enabled(False)
        logger.info("Calibration started; touch the top-left target")

    def cancel(self) -> None:
        with self._lock:
            if self._phase is not CalibrationPhase.COLLECTING:
                return
            self._phase = CalibrationPhase.IDLE
            self._points = []
        self._coordinator.set_transform_enabled(True)
        logger.info("Calibration cancelled")

    def add_point(self, x: float, y: float) -> Optional[CalibrationData]:
        """Record the next raw corner.

        Returns:
            The installed calibration once the fourth point is recorded,
            otherwise None

        Raises:
            CalibrationError: If no calibration is in progress
            DegenerateCalibrationError: If the four points are degenerate; the
                session returns to collecting from the first corner
        """
        with self._lock:
            if self._phase is not CalibrationPhase.COLLECTING:
                raise CalibrationError("No calibration in progress")
            data = self._record(x, y)
        return None if data is None else self._complete(data)

    def _record(self, x: float, y: float) -> Optional[CalibrationData]:
        # Caller holds the lock and has checked the phase.
        self._points.append(Point2D(float(x), float(y)))
        logger.debug(f"Calibration point {len(self._points)}/4: ({x:.1f}, {y:.1f})")
        if len(self._points) < len(CORNER_ORDER):
            return None
        data = CalibrationData(
            source=CalibrationRectangle(*self._points),
            destination=self._destination,
            screen_size=self._screen_size,
        )
        self._points = []
        return data

    def observe_frame(self, frame: Frame) -> Optional[CalibrationData]:
        """Take a corner from every touch that lifted off in ``frame``."""
        result = None
        for contact in frame.contacts:
            if contact.type is not ContactType.END:
                continue
            with self._lock:
                if self._phase is not CalibrationPhase.COLLECTING:
                    break
                data = self._record(contact.raw_position.x, contact.raw_position.y)
            if data is not None:
                result = self._complete(data)
        return result

    def load_into(self, coordinator: Optional[AcquisitionCoordinator] = None) -> Optional[CalibrationData]:
        """Apply the stored calibration, if any, to ``coordinator``."""
        if self._store is None:
            return None
        data = self._store.load()
        if data is None:
            return None
        target = coordinator or self._coordinator
        try:
            target.apply_calibration(data)
        except CalibrationError as exc:
            logger.warning(f"Stored calibration rejected: {exc}")
            return None
        return data

    def _complete(self, data: CalibrationData) -> CalibrationData:
        try:
            self._coordinator.set_calibration_data(data.source, data.destination, data.screen_size)
        except DegenerateCalibrationError:
            logger.warning("Calibration points are degenerate; restarting from the top-left target")
            raise

        with self._lock:
            self._phase = CalibrationPhase.COMPLETE
            self._result = data
        self._coordinator.set_transform_enabled(True)

        if self._store is not None:
            self._saved = self._store.save(data)
        logger.info("Calibration complete")
        return data
