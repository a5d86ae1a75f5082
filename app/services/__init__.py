"""Service layer for the touch tracker.

├── acquisition/  - Sensor session, contact classification and frame dispatch

Each service module contains:
- interface.py: Abstract base class defining the contract
- implementation.py: Concrete implementation
"""

from .acquisition import (
    AcquisitionCoordinator,
    AcquisitionCoordinatorImpl,
    BatteryCallback,
    FrameCallback,
)

__all__ = [
    "AcquisitionCoordinator",
    "AcquisitionCoordinatorImpl",
    "BatteryCallback",
    "FrameCallback",
]
