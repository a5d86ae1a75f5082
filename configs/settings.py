"""Configuration loading for the touch tracker."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import yaml

from configs.validator import validate_config
from exceptions import InvalidConfigError
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"


@dataclass(frozen=True)
class SensorConfig:
    backend: str
    device_id: Optional[str]
    report_mode: str
    max_blobs: int
    sample_rate_hz: float
    width: int = 1024  # device coordinate range
    height: int = 768


@dataclass(frozen=True)
class TrackingConfig:
    gate_radius: float
    smoothing_window: int
    grace_ticks: int
    contact_size: Tuple[float, float] = (1.0, 1.0)


@dataclass(frozen=True)
class CalibrationConfig:
    store_path: Optional[str]
    screen_width: float
    screen_height: float
    load_on_start: bool = True


@dataclass(frozen=True)
class DispatchConfig:
    mode: str
    frame_queue_size: int
    end_contacts_on_stop: bool = True
    tick_budget_ms: float = 10.0


@dataclass(frozen=True)
class AppConfig:
    sensor: SensorConfig
    tracking: TrackingConfig
    calibration: CalibrationConfig
    dispatch: DispatchConfig

    @property
    def screen_size(self) -> Tuple[float, float]:
        return (self.calibration.screen_width, self.calibration.screen_height)


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Missing optional keys are filled from the schema defaults.

    Raises:
        InvalidConfigError: If the file is missing or cannot be parsed
        ConfigValidationError: If the document fails schema validation
    """
    path = Path(path)
    logger.info(f"Loading configuration from {path}")
    if not path.exists():
        raise InvalidConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise InvalidConfigError(f"Failed to parse configuration file: {e}")

    if data is None:
        data = {}
    validate_config(data)
    return config_from_dict(data)


def config_from_dict(data: dict) -> AppConfig:
    """Build an :class:`AppConfig` from an already validated mapping."""
    try:
        tracking_data = dict(data["tracking"])
        tracking_data["contact_size"] = tuple(tracking_data.get("contact_size", (1.0, 1.0)))
        config = AppConfig(
            sensor=SensorConfig(**data["sensor"]),
            tracking=TrackingConfig(**tracking_data),
            calibration=CalibrationConfig(**data["calibration"]),
            dispatch=DispatchConfig(**data["dispatch"]),
        )
    except (KeyError, TypeError) as e:
        logger.error(f"Failed to construct configuration objects: {e}")
        raise InvalidConfigError(f"Failed to construct configuration: {e}")

    logger.info(
        f"Configuration loaded: {config.sensor.backend} sensor @ {config.sensor.sample_rate_hz:g} Hz, "
        f"gate {config.tracking.gate_radius:g}, dispatch {config.dispatch.mode}"
    )
    return config


def default_config() -> AppConfig:
    return load_config(DEFAULT_CONFIG_PATH)
