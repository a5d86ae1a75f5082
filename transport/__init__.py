"""Output formats for contact frames."""

from .tuio import CURSOR_PROFILE, TuioFormatter, TuioMessage

__all__ = ["CURSOR_PROFILE", "TuioFormatter", "TuioMessage"]
