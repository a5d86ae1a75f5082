"""Logging configuration."""

from .logger import configure_file_logging, get_logger, log_tick_duration, logger

__all__ = ["logger", "configure_file_logging", "get_logger", "log_tick_duration"]
