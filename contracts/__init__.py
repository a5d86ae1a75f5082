"""Shared data contracts for touch tracking."""

from .types import (
    BlobObservation,
    CalibrationData,
    CalibrationRectangle,
    Contact,
    ContactType,
    Frame,
    Point2D,
    SensorReport,
    SensorSlot,
)

__all__ = [
    "BlobObservation",
    "CalibrationData",
    "CalibrationRectangle",
    "Contact",
    "ContactType",
    "Frame",
    "Point2D",
    "SensorReport",
    "SensorSlot",
]
