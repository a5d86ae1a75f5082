"""Persist calibration data between sessions."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from contracts import CalibrationData, CalibrationRectangle
from contracts.versioning import make_envelope, open_envelope
from log_config.logger import get_logger

logger = get_logger(__name__)

_CORNERS = ("top_left", "top_right", "bottom_left", "bottom_right")


def _rect_to_dict(rect: CalibrationRectangle) -> Dict[str, Any]:
    return {name: [point.x, point.y] for name, point in zip(_CORNERS, rect.corners())}


def _rect_from_dict(data: Dict[str, Any]) -> CalibrationRectangle:
    return CalibrationRectangle.from_points(*(tuple(data[name]) for name in _CORNERS))


def calibration_to_dict(data: CalibrationData) -> Dict[str, Any]:
    return {
        "source": _rect_to_dict(data.source),
        "destination": _rect_to_dict(data.destination),
        "screen_size": [float(data.screen_size[0]), float(data.screen_size[1])],
        "timestamp": data.timestamp.isoformat(),
    }


def calibration_from_dict(payload: Dict[str, Any]) -> CalibrationData:
    timestamp = datetime.fromisoformat(payload["timestamp"])
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    width, height = payload["screen_size"]
    return CalibrationData(
        source=_rect_from_dict(payload["source"]),
        destination=_rect_from_dict(payload["destination"]),
        screen_size=(float(width), float(height)),
        timestamp=timestamp,
    )


class CalibrationStore:
    """JSON file holding the most recent calibration.

    Failures never raise: :meth:`save` reports them as False and :meth:`load`
    as None, so a broken file only costs the user a re-calibration.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, data: CalibrationData) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            document = make_envelope(calibration_to_dict(data))
            self._path.write_text(json.dumps(document, indent=2))
        except (OSError, TypeError, ValueError) as exc:
            logger.error(f"Failed to save calibration to {self._path}: {exc}")
            return False
        logger.info(f"Calibration saved to {self._path}")
        return True

    def load(self) -> Optional[CalibrationData]:
        if not self._path.exists():
            return None
        try:
            document = json.loads(self._path.read_text())
            data = calibration_from_dict(open_envelope(document))
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning(f"Ignoring unreadable calibration file {self._path}: {exc}")
            return None
        logger.info(f"Loaded calibration from {self._path} ({data.timestamp.isoformat()})")
        return data

    def delete(self) -> bool:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error(f"Failed to delete calibration file {self._path}: {exc}")
            return False
        return True
