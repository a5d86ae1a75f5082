"""Tracking interfaces and track state containers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Sequence

from contracts import BlobObservation, Point2D


class TrackPhase(Enum):
    PENDING = "pending"
    ACTIVE = "active"
    ENDING = "ending"


@dataclass(frozen=True)
class TrackState:
    """Snapshot of a track handed to event handlers."""

    track_id: int
    position: Point2D
    raw_position: Point2D
    last_seen_tick: int
    phase: TrackPhase
    size: float = 1.0


TrackEventHandler = Callable[[TrackState], None]


class Tracker(ABC):
    @abstractmethod
    def process_frame(self, observations: Sequence[BlobObservation]) -> None:
        """Run one tick of correspondence, emitting lifecycle events."""

    @abstractmethod
    def reset(self, emit_end: bool = True) -> None:
        """End and discard every live track."""

    @abstractmethod
    def live_tracks(self) -> List[TrackState]:
        """Return snapshots of the live tracks in id order."""
