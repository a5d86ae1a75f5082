"""Rectification interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Tuple


class Rectifier(ABC):
    @abstractmethod
    def warp(self, x: float, y: float) -> Tuple[float, float]:
        """Map a device-space point into calibrated space."""
