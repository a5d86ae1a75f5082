"""Capture module."""

from .sensor_device import BATTERY_MAX, REPORT_MODES, ReportCallback, SensorDevice
from .simulated_sensor import SimulatedSensor, build_report

__all__ = [
    "BATTERY_MAX",
    "REPORT_MODES",
    "ReportCallback",
    "SensorDevice",
    "SimulatedSensor",
    "build_report",
]
