"""Centralized logging configuration using loguru."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"

# Remove default handler
logger.remove()

logger.add(
    sys.stderr,
    level="INFO",
    format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)

_file_sink_ids: List[int] = []


def configure_file_logging(log_dir: Union[str, Path] = "logs", level: str = "DEBUG") -> Path:
    """Attach rotating debug and error log files under ``log_dir``.

    Calling again replaces the previously attached file sinks.

    Returns:
        The resolved log directory
    """
    for sink_id in _file_sink_ids:
        logger.remove(sink_id)
    _file_sink_ids.clear()

    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    _file_sink_ids.append(
        logger.add(
            path / "touchtracker_{time}.log",
            rotation="20 MB",
            retention="7 days",
            level=level,
            format=_FILE_FORMAT,
            enqueue=True,  # Sensor callbacks log from their own thread
        )
    )
    _file_sink_ids.append(
        logger.add(
            path / "errors_{time}.log",
            rotation="10 MB",
            retention="30 days",
            level="ERROR",
            format=_FILE_FORMAT,
            enqueue=True,
        )
    )
    return path


def get_logger(name: Optional[str] = None):
    """Get a logger bound to ``name`` (usually ``__name__``)."""
    if name:
        return logger.bind(name=name)
    return logger


def log_tick_duration(tick: int, duration_ms: float, budget_ms: float = 10.0) -> None:
    """Warn when processing one sensor tick overran its budget."""
    if duration_ms > budget_ms:
        logger.warning(f"Slow tick {tick}: {duration_ms:.2f}ms (budget: {budget_ms}ms)")
    else:
        logger.trace(f"Tick {tick} processed in {duration_ms:.2f}ms")


__all__ = ["logger", "configure_file_logging", "get_logger", "log_tick_duration"]
