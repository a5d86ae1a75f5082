"""Calibration module."""

from .session import CORNER_ORDER, CalibrationPhase, CalibrationSession
from .store import CalibrationStore

__all__ = ["CORNER_ORDER", "CalibrationPhase", "CalibrationSession", "CalibrationStore"]
