"""Greedy nearest-neighbour contact tracker with moving-average smoothing."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from contracts import BlobObservation, Point2D
from log_config.logger import get_logger
from track.tracker import TrackEventHandler, TrackPhase, TrackState, Tracker

logger = get_logger(__name__)


@dataclass
class _TrackMemory:
    track_id: int
    history: Deque[Tuple[float, float]]
    raw_x: float
    raw_y: float
    size: float
    last_seen_tick: int
    phase: TrackPhase = TrackPhase.PENDING
    missed_ticks: int = 0

    def smoothed(self) -> Point2D:
        n = len(self.history)
        return Point2D(
            sum(p[0] for p in self.history) / n,
            sum(p[1] for p in self.history) / n,
        )

    def snapshot(self) -> TrackState:
        return TrackState(
            track_id=self.track_id,
            position=self.smoothed(),
            raw_position=Point2D(self.raw_x, self.raw_y),
            last_seen_tick=self.last_seen_tick,
            phase=self.phase,
            size=self.size,
        )


@dataclass
class _TickEvents:
    starts: List[TrackState] = field(default_factory=list)
    updates: List[TrackState] = field(default_factory=list)
    ends: List[TrackState] = field(default_factory=list)


class ContactTracker(Tracker):
    """Assigns persistent ids to unordered blob observations.

    Each tick, observations are visited in the order given; every observation
    claims the nearest live track that has not been claimed yet, provided the
    distance to that track's last raw position is below ``gate_radius``. Ties
    go to the lowest id (the oldest track). Observations left over start new
    tracks.

    Lifecycle per track:
        - first tick: created PENDING, ``on_start`` fires
        - second matched tick: promoted to ACTIVE, no event
        - later matched ticks: ``on_update`` fires
        - missed for more than ``grace_ticks`` ticks: ``on_end`` fires with the
          phase set to ENDING and the track is dropped

    Reported positions are the mean of the last ``smoothing_window`` raw
    positions. Events for one tick are dispatched synchronously in ascending
    track id order before :meth:`process_frame` returns.
    """

    def __init__(
        self,
        gate_radius: float,
        smoothing_window: int = 4,
        grace_ticks: int = 0,
    ) -> None:
        if gate_radius <= 0:
            raise ValueError("gate_radius must be positive")
        if smoothing_window < 1:
            raise ValueError("smoothing_window must be at least 1")
        if grace_ticks < 0:
            raise ValueError("grace_ticks must be non-negative")
        self._gate_radius = float(gate_radius)
        self._smoothing_window = smoothing_window
        self._grace_ticks = grace_ticks
        self._tracks: Dict[int, _TrackMemory] = {}
        self._next_id = 1
        self._tick = 0

        self.on_start: Optional[TrackEventHandler] = None
        self.on_update: Optional[TrackEventHandler] = None
        self.on_end: Optional[TrackEventHandler] = None

    @property
    def gate_radius(self) -> float:
        return self._gate_radius

    @property
    def tick(self) -> int:
        return self._tick

    def live_tracks(self) -> List[TrackState]:
        return [self._tracks[tid].snapshot() for tid in sorted(self._tracks)]

    def process_frame(self, observations: Sequence[BlobObservation]) -> None:
        self._tick += 1
        events = _TickEvents()
        pairs = self._pair_observations(observations)
        claimed = {track_id: observations[index] for track_id, index in pairs.items()}
        paired = set(pairs.values())
        unmatched = [obs for index, obs in enumerate(observations) if index not in paired]

        for track_id in sorted(self._tracks):
            memory = self._tracks[track_id]
            obs = claimed.get(track_id)
            if obs is not None:
                self._absorb(memory, obs)
                if memory.phase is TrackPhase.PENDING:
                    memory.phase = TrackPhase.ACTIVE
                else:
                    events.updates.append(memory.snapshot())
                continue

            memory.missed_ticks += 1
            if memory.missed_ticks > self._grace_ticks:
                memory.phase = TrackPhase.ENDING
                events.ends.append(memory.snapshot())

        for state in events.ends:
            del self._tracks[state.track_id]

        for obs in unmatched:
            memory = self._create(obs)
            events.starts.append(memory.snapshot())

        self._dispatch(events)

    def reset(self, emit_end: bool = True) -> None:
        """End every live track.

        Args:
            emit_end: Fire ``on_end`` for each live track so every START is
                paired with an END. Pass False for a silent hard reset.
        """
        ended = []
        for track_id in sorted(self._tracks):
            memory = self._tracks[track_id]
            memory.phase = TrackPhase.ENDING
            ended.append(memory.snapshot())
        self._tracks.clear()
        self._next_id = 1
        if ended:
            logger.debug(f"Tracker reset dropped {len(ended)} live tracks (emit_end={emit_end})")
        if emit_end:
            self._dispatch(_TickEvents(ends=ended))

    def _pair_observations(self, observations: Sequence[BlobObservation]) -> Dict[int, int]:
        """Greedy shortest-distance-first pairing; maps track id to observation index."""
        candidates: List[Tuple[float, int, int]] = []
        for index, obs in enumerate(observations):
            for track_id, memory in self._tracks.items():
                distance = math.hypot(obs.x - memory.raw_x, obs.y - memory.raw_y)
                if distance < self._gate_radius:
                    candidates.append((distance, track_id, index))
        candidates.sort()

        pairs: Dict[int, int] = {}
        for _, track_id, index in candidates:
            if track_id in pairs or index in pairs.values():
                continue
            pairs[track_id] = index
        return pairs

    def _absorb(self, memory: _TrackMemory, obs: BlobObservation) -> None:
        memory.history.append((float(obs.x), float(obs.y)))
        memory.raw_x = float(obs.x)
        memory.raw_y = float(obs.y)
        memory.size = float(obs.size)
        memory.last_seen_tick = self._tick
        memory.missed_ticks = 0

    def _create(self, obs: BlobObservation) -> _TrackMemory:
        memory = _TrackMemory(
            track_id=self._next_id,
            history=deque([(float(obs.x), float(obs.y))], maxlen=self._smoothing_window),
            raw_x=float(obs.x),
            raw_y=float(obs.y),
            size=float(obs.size),
            last_seen_tick=self._tick,
        )
        self._tracks[memory.track_id] = memory
        self._next_id += 1
        return memory

    def _dispatch(self, events: _TickEvents) -> None:
        ordered = (
            [(state, self.on_start) for state in events.starts]
            + [(state, self.on_update) for state in events.updates]
            + [(state, self.on_end) for state in events.ends]
        )
        ordered.sort(key=lambda item: item[0].track_id)
        for state, handler in ordered:
            if handler is not None:
                handler(state)
