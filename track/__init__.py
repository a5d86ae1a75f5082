"""Contact tracking."""

from .contact_tracker import ContactTracker
from .tracker import TrackEventHandler, TrackPhase, TrackState, Tracker

__all__ = ["ContactTracker", "TrackEventHandler", "TrackPhase", "TrackState", "Tracker"]
