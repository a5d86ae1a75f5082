"""Integration tests for the acquisition coordinator.

Most tests run with inline dispatch and drive the simulated sensor
synchronously so that frames can be asserted tick by tick.
"""

import math
import threading
from typing import List, Optional
from unittest.mock import Mock

import pytest

from app.events import ErrorCategory, get_error_bus
from app.services.acquisition import AcquisitionCoordinatorImpl
from capture import SensorDevice, SimulatedSensor, build_report
from configs.settings import AppConfig, config_from_dict
from configs.validator import validate_config
from contracts import CalibrationRectangle, ContactType, Frame, SensorReport, SensorSlot
from exceptions import (
    CalibrationError,
    DegenerateCalibrationError,
    SensorConnectionError,
    SensorNotFoundError,
)

CENTER = (512, 384)


def create_test_config(mode: str = "inline", **tracking) -> AppConfig:
    data = {"dispatch": {"mode": mode}, "calibration": {"store_path": None}, "tracking": dict(tracking)}
    validate_config(data)
    return config_from_dict(data)


class Harness:
    def __init__(self, sensor: Optional[SimulatedSensor] = None, config: Optional[AppConfig] = None):
        self.sensor = sensor or SimulatedSensor()
        self.coordinator = AcquisitionCoordinatorImpl(lambda: self.sensor, config or create_test_config())
        self.frames: List[Frame] = []
        self.battery: List[int] = []
        self.coordinator.on_frame(self.frames.append)
        self.coordinator.on_battery_changed(self.battery.append)

    def tick(self, *blobs, battery: int = 150) -> None:
        self.sensor.emit(build_report(list(blobs), self.sensor.max_blobs, battery))


class SlowDisconnectSensor(SimulatedSensor):
    """Sensor whose first disconnect blocks until released."""

    def __init__(self) -> None:
        super().__init__()
        self.disconnecting = threading.Event()
        self.release = threading.Event()

    def disconnect(self) -> None:
        self.disconnecting.set()
        self.release.wait(timeout=5.0)
        super().disconnect()


@pytest.fixture
def harness():
    h = Harness()
    h.coordinator.start()
    yield h
    h.coordinator.close()


class TestLifecycle:
    def test_start_stop(self):
        h = Harness()
        assert not h.coordinator.is_running()

        h.coordinator.start()
        assert h.coordinator.is_running()
        assert h.sensor.is_connected
        assert h.sensor.report_mode == "ir_accel"

        h.coordinator.stop()
        assert not h.coordinator.is_running()
        assert not h.sensor.is_connected

    def test_stop_is_idempotent(self):
        h = Harness()
        h.coordinator.stop()
        h.coordinator.start()
        h.coordinator.stop()
        h.coordinator.stop()
        assert not h.coordinator.is_running()

    def test_double_start_raises(self, harness):
        with pytest.raises(RuntimeError):
            harness.coordinator.start()

    def test_connection_failure_leaves_coordinator_stopped(self):
        h = Harness(SimulatedSensor(fail_on_connect=True))

        with pytest.raises(SensorNotFoundError):
            h.coordinator.start()
        assert not h.coordinator.is_running()
        h.coordinator.stop()

    def test_unexpected_device_error_is_wrapped(self):
        device = Mock(spec=SensorDevice)
        device.connect.side_effect = OSError("bluetooth stack unavailable")
        coordinator = AcquisitionCoordinatorImpl(lambda: device, create_test_config())

        with pytest.raises(SensorConnectionError) as exc_info:
            coordinator.start()
        assert isinstance(exc_info.value.__cause__, OSError)
        device.disconnect.assert_called_once()
        assert not coordinator.is_running()

    def test_start_waits_for_stop_to_finish_detaching(self):
        h = Harness(SlowDisconnectSensor())
        h.coordinator.start()

        stopper = threading.Thread(target=h.coordinator.stop)
        stopper.start()
        assert h.sensor.disconnecting.wait(timeout=2.0)

        starter = threading.Thread(target=h.coordinator.start)
        starter.start()
        starter.join(timeout=0.2)
        assert starter.is_alive()

        h.sensor.release.set()
        stopper.join(timeout=2.0)
        starter.join(timeout=2.0)
        try:
            assert not starter.is_alive()
            assert h.coordinator.is_running()
            assert h.sensor.is_connected
            h.tick(CENTER)
            assert h.frames[-1].contacts[0].type is ContactType.START
        finally:
            h.coordinator.close()

    def test_can_restart_after_stop(self, harness):
        harness.coordinator.stop()
        harness.coordinator.start()
        harness.tick(CENTER)
        assert harness.frames[-1].contacts[0].type is ContactType.START


class TestFrames:
    def test_reports_ignored_while_stopped(self):
        h = Harness()
        h.coordinator.handle_report(build_report([CENTER]))
        assert h.frames == []

    def test_one_frame_per_tick_with_lifecycle(self, harness):
        for i in range(4):
            harness.tick((CENTER[0] + 2 * i, CENTER[1]))
        harness.tick()

        types = [[c.type for c in f.contacts] for f in harness.frames]
        assert types == [
            [ContactType.START],
            [],
            [ContactType.MOVE],
            [ContactType.MOVE],
            [ContactType.END],
        ]
        assert len({c.id for f in harness.frames for c in f.contacts}) == 1

    def test_sequence_and_timestamps_increase(self, harness):
        for _ in range(20):
            harness.tick(CENTER)

        sequences = [f.sequence for f in harness.frames]
        timestamps = [f.timestamp_ns for f in harness.frames]
        assert sequences == list(range(1, 21))
        assert all(b > a for a, b in zip(timestamps, timestamps[1:]))

    def test_contacts_are_normalized_to_screen(self, harness):
        harness.tick(CENTER)

        contact = harness.frames[0].contacts[0]
        assert (contact.raw_position.x, contact.raw_position.y) == pytest.approx((960.0, 540.0))
        assert (contact.normalized_position.x, contact.normalized_position.y) == pytest.approx((0.5, 0.5))

    def test_contacts_sorted_by_id(self, harness):
        harness.tick((100, 100), (900, 700), (100, 700))
        harness.tick((100, 100), (900, 700), (100, 700))
        harness.tick((100, 700), (900, 700), (100, 100))

        for frame in harness.frames:
            assert list(frame.ids()) == sorted(frame.ids())
        assert harness.frames[-1].ids() == (1, 2, 3)

    def test_blob_size_scales_contact_size(self, harness):
        harness.tick((CENTER[0], CENTER[1], 3))
        assert harness.frames[0].contacts[0].size == (3.0, 3.0)

    def test_stop_ends_live_contacts(self, harness):
        harness.tick(CENTER)
        harness.tick(CENTER)

        harness.coordinator.stop()

        last = harness.frames[-1]
        assert [c.type for c in last.contacts] == [ContactType.END]
        assert last.sequence == 3


class TestMalformedReports:
    @pytest.mark.parametrize(
        "report",
        [
            "not a report",
            SensorReport(slots=None),  # type: ignore[arg-type]
            SensorReport(slots=tuple(SensorSlot(found=False) for _ in range(5))),
            SensorReport(slots=(SensorSlot(found=True, x=math.nan, y=0),)),  # type: ignore[arg-type]
            SensorReport(slots=(SensorSlot(found=True, x="12", y=0),)),  # type: ignore[arg-type]
            SensorReport(slots=(), battery=None),  # type: ignore[arg-type]
        ],
    )
    def test_malformed_report_is_skipped(self, harness, report):
        reported = Mock()
        get_error_bus().subscribe(reported, category=ErrorCategory.SENSOR)
        try:
            harness.tick(CENTER)
            harness.sensor.emit(report)
            harness.tick(CENTER)
        finally:
            get_error_bus().unsubscribe(reported, category=ErrorCategory.SENSOR)

        assert harness.coordinator.is_running()
        assert [f.sequence for f in harness.frames] == [1, 2]
        assert harness.coordinator.get_stats()["reports_skipped"] == 1
        reported.assert_called_once()

    def test_tracking_continues_across_malformed_report(self, harness):
        harness.tick(CENTER)
        harness.sensor.emit(object())
        harness.tick(CENTER)
        harness.tick(CENTER)

        assert [c.type for c in harness.frames[-1].contacts] == [ContactType.MOVE]


class TestBattery:
    def test_battery_changes_are_edge_triggered_and_clamped(self, harness):
        for level in (150, 150, 120, 120, 255, 230):
            harness.tick(battery=level)

        assert harness.battery == [150, 120, 200]
        assert harness.coordinator.battery_level == 200


class TestCalibration:
    def test_calibration_applies_on_next_tick(self, harness):
        harness.coordinator.set_calibration_data(
            CalibrationRectangle.from_points((0, 0), (1024, 0), (0, 768), (1024, 768)),
            CalibrationRectangle.from_points((0, 0), (800, 0), (0, 600), (800, 600)),
            (800, 600),
        )
        harness.tick(CENTER)

        contact = harness.frames[-1].contacts[0]
        assert (contact.raw_position.x, contact.raw_position.y) == pytest.approx((400.0, 300.0))
        assert (contact.normalized_position.x, contact.normalized_position.y) == pytest.approx((0.5, 0.5))

    def test_degenerate_calibration_keeps_previous_mapping(self, harness):
        with pytest.raises(DegenerateCalibrationError):
            harness.coordinator.set_calibration_data(
                CalibrationRectangle.from_points((0, 0), (1, 1), (2, 2), (3, 3)),
                CalibrationRectangle.unit(),
                (1, 1),
            )
        harness.tick(CENTER)

        contact = harness.frames[-1].contacts[0]
        assert (contact.raw_position.x, contact.raw_position.y) == pytest.approx((960.0, 540.0))
        assert harness.coordinator.screen_size == (1920.0, 1080.0)

    def test_collinear_destination_keeps_previous_mapping(self, harness):
        with pytest.raises(DegenerateCalibrationError):
            harness.coordinator.set_calibration_data(
                CalibrationRectangle.from_points((0, 0), (1024, 0), (0, 768), (1024, 768)),
                CalibrationRectangle.from_points((0, 0), (1920, 0), (3840, 0), (0, 1080)),
                (1920, 1080),
            )
        harness.tick(CENTER)

        contact = harness.frames[-1].contacts[0]
        assert (contact.raw_position.x, contact.raw_position.y) == pytest.approx((960.0, 540.0))

    def test_non_positive_screen_size_rejected(self, harness):
        with pytest.raises(CalibrationError):
            harness.coordinator.set_calibration_data(
                CalibrationRectangle.unit(), CalibrationRectangle.unit(), (0, 1080)
            )

    def test_transform_bypass_reports_device_coordinates(self, harness):
        harness.coordinator.set_transform_enabled(False)
        harness.tick(CENTER)

        contact = harness.frames[-1].contacts[0]
        assert (contact.raw_position.x, contact.raw_position.y) == pytest.approx((512.0, 384.0))
        assert (contact.normalized_position.x, contact.normalized_position.y) == pytest.approx((0.5, 0.5))


class TestThreadedDispatch:
    def test_frames_arrive_in_order_on_dispatch_thread(self):
        sensor = SimulatedSensor(script=[[CENTER]], rate_hz=200, loop=True)
        coordinator = AcquisitionCoordinatorImpl(lambda: sensor, create_test_config(mode="threaded"))
        frames: List[Frame] = []
        threads = set()
        enough = threading.Event()

        def on_frame(frame):
            frames.append(frame)
            threads.add(threading.current_thread().name)
            if len(frames) >= 10:
                enough.set()

        coordinator.on_frame(on_frame)
        coordinator.start()
        try:
            assert enough.wait(timeout=5.0)
        finally:
            coordinator.close()

        sequences = [f.sequence for f in frames]
        assert sequences == list(range(1, len(frames) + 1))
        assert threads == {"dispatch-frames"}
        assert frames[-1].contacts[-1].type is ContactType.END
