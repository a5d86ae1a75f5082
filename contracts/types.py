"""Core data contracts for sensing, calibration, tracking, and dispatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class Point2D:
    x: float
    y: float


@dataclass(frozen=True)
class CalibrationRectangle:
    """Four corners of a quadrilateral in absolute coordinates.

    Used both for the device sensing area (source) and for the target display
    area (destination). The corners do not need to be axis-aligned, but they
    must not be collinear.
    """

    top_left: Point2D
    top_right: Point2D
    bottom_left: Point2D
    bottom_right: Point2D

    @classmethod
    def unit(cls) -> "CalibrationRectangle":
        return cls.from_points((0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (1.0, 1.0))

    @classmethod
    def from_points(
        cls,
        top_left: Tuple[float, float],
        top_right: Tuple[float, float],
        bottom_left: Tuple[float, float],
        bottom_right: Tuple[float, float],
    ) -> "CalibrationRectangle":
        return cls(
            top_left=Point2D(float(top_left[0]), float(top_left[1])),
            top_right=Point2D(float(top_right[0]), float(top_right[1])),
            bottom_left=Point2D(float(bottom_left[0]), float(bottom_left[1])),
            bottom_right=Point2D(float(bottom_right[0]), float(bottom_right[1])),
        )

    def corners(self) -> Tuple[Point2D, Point2D, Point2D, Point2D]:
        """Return corners in top-left, top-right, bottom-left, bottom-right order."""
        return (self.top_left, self.top_right, self.bottom_left, self.bottom_right)


@dataclass(frozen=True)
class CalibrationData:
    source: CalibrationRectangle
    destination: CalibrationRectangle
    screen_size: Tuple[float, float]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class BlobObservation:
    """One blob seen by the sensor during a single tick."""

    x: float
    y: float
    size: float = 1.0


@dataclass(frozen=True)
class SensorSlot:
    found: bool
    x: int = 0
    y: int = 0
    size: Optional[int] = None


@dataclass(frozen=True)
class SensorReport:
    """Raw state delivered by the hardware session once per sample."""

    slots: Tuple[SensorSlot, ...]
    battery: int = 0


class ContactType(Enum):
    START = "start"
    MOVE = "move"
    END = "end"


@dataclass(frozen=True)
class Contact:
    id: int
    type: ContactType
    raw_position: Point2D
    normalized_position: Point2D
    size: Tuple[float, float] = (1.0, 1.0)


@dataclass(frozen=True)
class Frame:
    """Every contact produced for one sampling tick, in ascending id order."""

    timestamp_ns: int
    sequence: int
    contacts: Tuple[Contact, ...] = ()

    @property
    def is_empty(self) -> bool:
        return len(self.contacts) == 0

    def ids(self) -> Tuple[int, ...]:
        return tuple(contact.id for contact in self.contacts)
