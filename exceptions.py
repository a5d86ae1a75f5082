"""Custom exception classes for TouchTracker."""

from __future__ import annotations

from typing import Optional


class TouchTrackerError(Exception):
    """Base exception for all TouchTracker errors."""

    pass


class SensorError(TouchTrackerError):
    """Base exception for sensor-related errors."""

    def __init__(self, message: str, device_id: Optional[str] = None):
        self.device_id = device_id
        super().__init__(message)


class SensorConnectionError(SensorError):
    """Raised when the sensor session cannot be opened or is lost."""

    pass


class SensorNotFoundError(SensorConnectionError):
    """Raised when no sensor device can be found."""

    pass


class SensorConfigurationError(SensorConnectionError):
    """Raised when the sensor refuses the requested report mode."""

    pass


class MalformedReportError(SensorError):
    """Raised when a sensor report cannot be interpreted."""

    pass


class CalibrationError(TouchTrackerError):
    """Base exception for calibration-related errors."""

    pass


class DegenerateCalibrationError(CalibrationError):
    """Raised when a calibration rectangle yields a singular transform."""

    pass


class ConfigError(TouchTrackerError):
    """Base exception for configuration errors."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when configuration file is invalid or corrupted."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(message)
