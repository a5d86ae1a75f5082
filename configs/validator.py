"""Configuration validation using JSON Schema."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict

import jsonschema
import yaml
from jsonschema import Draft7Validator, validators

from exceptions import ConfigValidationError
from log_config.logger import get_logger

logger = get_logger(__name__)

# JSON Schema for default.yaml. Every key has a default so partial files
# validate and come back complete.
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "sensor": {
            "type": "object",
            "default": {},
            "properties": {
                "backend": {"type": "string", "enum": ["simulated"], "default": "simulated"},
                "device_id": {"type": ["string", "null"], "default": None},
                "report_mode": {
                    "type": "string",
                    "enum": ["ir_basic", "ir_accel", "ir_extension_accel"],
                    "default": "ir_accel",
                },
                "max_blobs": {"type": "integer", "minimum": 1, "maximum": 4, "default": 4},
                "sample_rate_hz": {"type": "number", "minimum": 0, "maximum": 1000, "default": 100},
                "width": {"type": "integer", "minimum": 1, "default": 1024},
                "height": {"type": "integer", "minimum": 1, "default": 768},
            },
            "additionalProperties": False,
        },
        "tracking": {
            "type": "object",
            "default": {},
            "properties": {
                "gate_radius": {"type": "number", "exclusiveMinimum": 0, "default": 60.0},
                "smoothing_window": {"type": "integer", "minimum": 1, "maximum": 32, "default": 4},
                "grace_ticks": {"type": "integer", "minimum": 0, "maximum": 100, "default": 0},
                "contact_size": {
                    "type": "array",
                    "items": {"type": "number", "minimum": 0},
                    "minItems": 2,
                    "maxItems": 2,
                    "default": [1.0, 1.0],
                },
            },
            "additionalProperties": False,
        },
        "calibration": {
            "type": "object",
            "default": {},
            "properties": {
                "store_path": {"type": ["string", "null"], "default": "calibration.json"},
                "screen_width": {"type": "number", "exclusiveMinimum": 0, "default": 1920},
                "screen_height": {"type": "number", "exclusiveMinimum": 0, "default": 1080},
                "load_on_start": {"type": "boolean", "default": True},
            },
            "additionalProperties": False,
        },
        "dispatch": {
            "type": "object",
            "default": {},
            "properties": {
                "mode": {"type": "string", "enum": ["threaded", "inline"], "default": "threaded"},
                "frame_queue_size": {"type": "integer", "minimum": 0, "default": 0},
                "end_contacts_on_stop": {"type": "boolean", "default": True},
                "tick_budget_ms": {"type": "number", "exclusiveMinimum": 0, "default": 10.0},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}


def extend_with_default(validator_class):
    """Extend a JSON Schema validator to fill in default values."""
    validate_properties = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        if isinstance(instance, dict):
            for prop, subschema in properties.items():
                if "default" in subschema:
                    instance.setdefault(prop, copy.deepcopy(subschema["default"]))

        for error in validate_properties(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


DefaultValidatingValidator = extend_with_default(Draft7Validator)


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration against JSON Schema, filling defaults in place.

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    try:
        validator = DefaultValidatingValidator(CONFIG_SCHEMA)
        errors = list(validator.iter_errors(config))
    except jsonschema.exceptions.SchemaError as e:
        logger.error(f"Invalid schema: {e}")
        raise ConfigValidationError(f"Invalid schema definition: {e}")

    if errors:
        error_messages = []
        for error in errors:
            path = " -> ".join(str(p) for p in error.path) if error.path else "root"
            error_messages.append(f"{path}: {error.message}")

        logger.error(f"Configuration validation failed with {len(errors)} errors")
        for msg in error_messages:
            logger.error(f"  - {msg}")

        raise ConfigValidationError(
            f"Configuration validation failed with {len(errors)} error(s). See logs for details.",
            validation_errors=error_messages,
        )

    logger.debug("Configuration validation passed")


def validate_config_file(config_path: str) -> None:
    """Validate a YAML configuration file.

    Raises:
        ConfigValidationError: If the file is missing, unparsable or invalid
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigValidationError(f"Configuration file not found: {config_path}")

    try:
        config = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise ConfigValidationError(f"Failed to parse configuration file: {e}")

    validate_config(config if config is not None else {})


__all__ = ["validate_config", "validate_config_file", "CONFIG_SCHEMA"]
