"""Acquisition service module - sensor session and frame production.

This module turns raw sensor reports into sealed frames of classified
contacts and delivers them to a single consumer.
"""

from .interface import AcquisitionCoordinator, BatteryCallback, FrameCallback
from .implementation import AcquisitionCoordinatorImpl

__all__ = ["AcquisitionCoordinator", "AcquisitionCoordinatorImpl", "BatteryCallback", "FrameCallback"]
