"""Unit tests for the greedy nearest-neighbour contact tracker."""

import unittest
from typing import List, Tuple

import pytest

from contracts import BlobObservation
from track import ContactTracker, TrackPhase, TrackState


class EventLog:
    def __init__(self, tracker: ContactTracker) -> None:
        self.events: List[Tuple[str, TrackState]] = []
        tracker.on_start = lambda state: self.events.append(("start", state))
        tracker.on_update = lambda state: self.events.append(("update", state))
        tracker.on_end = lambda state: self.events.append(("end", state))

    def kinds(self, kind: str) -> List[TrackState]:
        return [state for k, state in self.events if k == kind]

    def clear(self) -> None:
        self.events.clear()


def blobs(*points: Tuple[float, float]) -> List[BlobObservation]:
    return [BlobObservation(x, y) for x, y in points]


class TestTrackLifecycle(unittest.TestCase):
    def setUp(self):
        self.tracker = ContactTracker(gate_radius=50.0)
        self.log = EventLog(self.tracker)

    def test_single_blob_keeps_its_id(self):
        ticks = 10
        for i in range(ticks):
            self.tracker.process_frame(blobs((100.0 + 5 * i, 200.0)))

        starts = self.log.kinds("start")
        updates = self.log.kinds("update")
        self.assertEqual(len(starts), 1)
        self.assertEqual(len(updates), ticks - 2)
        self.assertEqual(self.log.kinds("end"), [])
        self.assertEqual({s.track_id for s in updates}, {starts[0].track_id})
        self.assertEqual(self.tracker.live_tracks()[0].phase, TrackPhase.ACTIVE)

        self.tracker.process_frame([])
        ends = self.log.kinds("end")
        self.assertEqual(len(ends), 1)
        self.assertEqual(ends[0].track_id, starts[0].track_id)
        self.assertEqual(ends[0].phase, TrackPhase.ENDING)
        self.assertEqual(self.tracker.live_tracks(), [])

    def test_second_tick_promotes_without_event(self):
        self.tracker.process_frame(blobs((10.0, 10.0)))
        self.assertEqual(self.tracker.live_tracks()[0].phase, TrackPhase.PENDING)

        self.log.clear()
        self.tracker.process_frame(blobs((12.0, 10.0)))
        self.assertEqual(self.log.events, [])
        self.assertEqual(self.tracker.live_tracks()[0].phase, TrackPhase.ACTIVE)

    def test_blob_outside_gate_starts_new_track(self):
        self.tracker.process_frame(blobs((0.0, 0.0)))
        self.tracker.process_frame(blobs((200.0, 0.0)))

        starts = self.log.kinds("start")
        ends = self.log.kinds("end")
        self.assertEqual([s.track_id for s in starts], [1, 2])
        self.assertEqual([e.track_id for e in ends], [1])

    def test_gate_boundary_is_exclusive(self):
        self.tracker.process_frame(blobs((0.0, 0.0)))
        self.tracker.process_frame(blobs((50.0, 0.0)))

        self.assertEqual(len(self.log.kinds("start")), 2)

    def test_events_dispatched_in_id_order(self):
        self.tracker.process_frame(blobs((0.0, 0.0), (500.0, 0.0)))
        self.tracker.process_frame(blobs((500.0, 0.0), (1000.0, 0.0)))

        tick_two = self.log.events[2:]
        self.assertEqual([(k, s.track_id) for k, s in tick_two], [("end", 1), ("start", 3)])


class TestCorrespondence(unittest.TestCase):
    def test_two_blobs_never_swap(self):
        tracker = ContactTracker(gate_radius=40.0)
        log = EventLog(tracker)

        for i in range(12):
            # Two fingers moving in parallel, reported in alternating order.
            a = (100.0 + 4 * i, 100.0)
            b = (100.0 + 4 * i, 160.0)
            tracker.process_frame(blobs(a, b) if i % 2 == 0 else blobs(b, a))

        self.assertEqual(log.kinds("end"), [])
        by_id = {}
        for state in log.kinds("update"):
            by_id.setdefault(state.track_id, set()).add(state.raw_position.y)
        self.assertEqual(by_id, {1: {100.0}, 2: {160.0}})

    def test_nearest_track_wins_and_ties_go_to_lowest_id(self):
        tracker = ContactTracker(gate_radius=100.0)
        tracker.process_frame(blobs((0.0, 0.0), (20.0, 0.0)))

        log = EventLog(tracker)
        tracker.process_frame(blobs((10.0, 0.0)))

        ends = log.kinds("end")
        self.assertEqual([e.track_id for e in ends], [2])
        self.assertEqual([t.track_id for t in tracker.live_tracks()], [1])

    def test_closer_blob_keeps_id_regardless_of_slot_order(self):
        tracker = ContactTracker(gate_radius=50.0)
        tracker.process_frame(blobs((1.0, 0.0)))
        tracker.process_frame(blobs((1.0, 0.0)))

        log = EventLog(tracker)
        tracker.process_frame(blobs((30.0, 0.0), (3.0, 0.0)))

        self.assertEqual(
            [(k, s.track_id, s.raw_position.x) for k, s in log.events],
            [("update", 1, 3.0), ("start", 2, 30.0)],
        )

    def test_position_is_moving_average(self):
        tracker = ContactTracker(gate_radius=100.0, smoothing_window=4)
        log = EventLog(tracker)
        for x in (0.0, 10.0, 20.0, 30.0, 40.0):
            tracker.process_frame(blobs((x, 0.0)))

        last = log.kinds("update")[-1]
        self.assertAlmostEqual(last.position.x, 25.0)
        self.assertAlmostEqual(last.raw_position.x, 40.0)


class TestGraceAndReset(unittest.TestCase):
    def test_grace_ticks_absorb_dropout(self):
        tracker = ContactTracker(gate_radius=50.0, grace_ticks=2)
        log = EventLog(tracker)

        tracker.process_frame(blobs((10.0, 10.0)))
        tracker.process_frame([])
        tracker.process_frame([])
        self.assertEqual(log.kinds("end"), [])

        tracker.process_frame(blobs((12.0, 10.0)))
        self.assertEqual(len(log.kinds("start")), 1)

        tracker.process_frame([])
        tracker.process_frame([])
        tracker.process_frame([])
        self.assertEqual([e.track_id for e in log.kinds("end")], [1])

    def test_reset_emits_end_for_every_live_track(self):
        tracker = ContactTracker(gate_radius=50.0)
        log = EventLog(tracker)
        tracker.process_frame(blobs((0.0, 0.0), (300.0, 0.0)))

        tracker.reset()

        self.assertEqual([e.track_id for e in log.kinds("end")], [1, 2])
        self.assertEqual(tracker.live_tracks(), [])

        tracker.process_frame(blobs((0.0, 0.0)))
        self.assertEqual(log.kinds("start")[-1].track_id, 1)

    def test_hard_reset_is_silent(self):
        tracker = ContactTracker(gate_radius=50.0)
        log = EventLog(tracker)
        tracker.process_frame(blobs((0.0, 0.0)))

        tracker.reset(emit_end=False)

        self.assertEqual(log.kinds("end"), [])
        self.assertEqual(tracker.live_tracks(), [])


@pytest.mark.parametrize(
    "kwargs",
    [
        {"gate_radius": 0.0},
        {"gate_radius": 10.0, "smoothing_window": 0},
        {"gate_radius": 10.0, "grace_ticks": -1},
    ],
)
def test_invalid_parameters(kwargs) -> None:
    with pytest.raises(ValueError):
        ContactTracker(**kwargs)


if __name__ == "__main__":
    unittest.main()
