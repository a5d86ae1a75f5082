"""AcquisitionCoordinator implementation.

Bridges the sensor callback thread to frame consumers:
- Extracts found blobs from each report and maps them through the Warper
- Runs the ContactTracker and collects its events into a per-tick buffer
- Seals the buffer into an immutable Frame and hands it to a dispatch channel
- Reports battery changes edge-triggered on a second channel
"""

from __future__ import annotations

import math
import numbers
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from app.events.dispatcher import SingleConsumerChannel
from app.events.error_bus import ErrorCategory, ErrorSeverity, publish_error
from app.services.acquisition.interface import (
    AcquisitionCoordinator,
    BatteryCallback,
    FrameCallback,
)
from capture.sensor_device import BATTERY_MAX, SensorDevice
from configs.settings import AppConfig, default_config
from contracts import (
    BlobObservation,
    CalibrationData,
    CalibrationRectangle,
    Contact,
    ContactType,
    Frame,
    Point2D,
    SensorReport,
    SensorSlot,
)
from exceptions import (
    CalibrationError,
    DegenerateCalibrationError,
    MalformedReportError,
    SensorConnectionError,
)
from log_config.logger import get_logger, log_tick_duration
from rectify.warper import Warper
from track.contact_tracker import ContactTracker
from track.tracker import TrackState

logger = get_logger(__name__)

DeviceFactory = Callable[[], SensorDevice]


@dataclass
class _AcquisitionState:
    running: bool = False
    stopping: bool = False
    device: Optional[SensorDevice] = None
    screen_size: Tuple[float, float] = (1.0, 1.0)
    transform_enabled: bool = True
    battery: Optional[int] = None
    sequence: int = 0
    last_timestamp_ns: int = 0
    contacts: Optional[List[Contact]] = None
    frames_emitted: int = 0
    reports_skipped: int = 0


class AcquisitionCoordinatorImpl(AcquisitionCoordinator):
    """Coordinator for one sensor session.

    All mutable state lives in one ``_AcquisitionState`` record guarded by a
    single re-entrant lock, so report processing, start/stop and calibration
    updates are serialized. The lock is re-entrant because inline frame
    handlers (such as a calibration session) may call back into the
    coordinator while a report is being processed.

    Before any calibration is installed, the sensor's full device range is
    mapped linearly onto the configured screen.
    """

    def __init__(
        self,
        device_factory: DeviceFactory,
        config: Optional[AppConfig] = None,
        tracker: Optional[ContactTracker] = None,
        warper: Optional[Warper] = None,
    ) -> None:
        self._config = config or default_config()
        self._device_factory = device_factory
        self._lock = threading.RLock()
        self._teardown_done = threading.Condition(self._lock)

        tracking = self._config.tracking
        self._tracker = tracker or ContactTracker(
            gate_radius=tracking.gate_radius,
            smoothing_window=tracking.smoothing_window,
            grace_ticks=tracking.grace_ticks,
        )
        self._tracker.on_start = self._on_track_start
        self._tracker.on_update = self._on_track_update
        self._tracker.on_end = self._on_track_end

        self._state = _AcquisitionState(screen_size=self._config.screen_size)
        self._warper = warper or Warper()
        if warper is None:
            sensor = self._config.sensor
            width, height = self._state.screen_size
            self._warper.set_source(
                CalibrationRectangle.from_points((0, 0), (sensor.width, 0), (0, sensor.height), (sensor.width, sensor.height))
            )
            self._warper.set_destination(
                CalibrationRectangle.from_points((0, 0), (width, 0), (0, height), (width, height))
            )
            self._warper.compute_transform()

        dispatch = self._config.dispatch
        self._frame_channel: SingleConsumerChannel[Frame] = SingleConsumerChannel(
            "frames", mode=dispatch.mode, maxsize=dispatch.frame_queue_size
        )
        self._battery_channel: SingleConsumerChannel[int] = SingleConsumerChannel(
            "battery", mode=dispatch.mode
        )

        logger.info(f"AcquisitionCoordinator initialized (dispatch={dispatch.mode})")

    # ------------------------------------------------------------------ control

    def start(self) -> None:
        with self._lock:
            # A previous stop() may still be detaching the device outside the lock.
            while self._state.stopping:
                self._teardown_done.wait()
            if self._state.running:
                raise RuntimeError("Acquisition already started")

            sensor = self._config.sensor
            device = self._device_factory()
            try:
                device.set_report_callback(self.handle_report)
                device.connect(sensor.device_id)
                device.set_report_mode(sensor.report_mode)
            except Exception as exc:
                self._release(device)
                publish_error(
                    category=ErrorCategory.SENSOR,
                    severity=ErrorSeverity.ERROR,
                    message=f"Failed to start sensor session: {exc}",
                    source="AcquisitionCoordinator.start",
                    exception=exc,
                )
                if isinstance(exc, SensorConnectionError):
                    raise
                raise SensorConnectionError(
                    f"Failed to start sensor session: {exc}", device_id=sensor.device_id
                ) from exc

            self._tracker.reset(emit_end=False)
            self._state.device = device
            self._state.running = True
            self._frame_channel.start()
            self._battery_channel.start()
            logger.info(f"Acquisition started ({sensor.backend}, mode={sensor.report_mode})")

    def stop(self) -> None:
        with self._lock:
            if not self._state.running:
                return
            self._state.running = False
            self._state.stopping = True
            device = self._state.device
            self._state.device = None

            if self._config.dispatch.end_contacts_on_stop:
                contacts = self._collect(lambda: self._tracker.reset(emit_end=True))
                if contacts:
                    self._frame_channel.publish(self._seal(contacts))
            else:
                self._tracker.reset(emit_end=False)

        # The sensor thread may be waiting on the lock; join it only after
        # releasing.
        try:
            self._release(device)
        finally:
            with self._lock:
                self._state.stopping = False
                self._teardown_done.notify_all()
        logger.info("Acquisition stopped")

    def close(self, timeout: float = 2.0) -> None:
        """Stop acquisition and shut down the dispatch threads."""
        self.stop()
        self._frame_channel.close(timeout)
        self._battery_channel.close(timeout)

    def is_running(self) -> bool:
        with self._lock:
            return self._state.running

    def wait_for_dispatch(self, timeout: Optional[float] = None) -> bool:
        """Block until every queued frame and battery change was delivered."""
        frames_idle = self._frame_channel.drain(timeout)
        return self._battery_channel.drain(timeout) and frames_idle

    # -------------------------------------------------------------- calibration

    def set_calibration_data(
        self,
        source: CalibrationRectangle,
        destination: CalibrationRectangle,
        screen_size: Tuple[float, float],
    ) -> None:
        width, height = float(screen_size[0]), float(screen_size[1])
        if width <= 0 or height <= 0:
            raise CalibrationError(f"Screen size must be positive, got {screen_size}")

        with self._lock:
            self._warper.set_source(source)
            self._warper.set_destination(destination)
            try:
                self._warper.compute_transform()
            except DegenerateCalibrationError as exc:
                publish_error(
                    category=ErrorCategory.CALIBRATION,
                    severity=ErrorSeverity.WARNING,
                    message=f"Calibration rejected: {exc}",
                    source="AcquisitionCoordinator.set_calibration_data",
                    exception=exc,
                )
                raise
            self._state.screen_size = (width, height)
        logger.info(f"Calibration updated (screen {width:g}x{height:g})")

    def apply_calibration(self, data: CalibrationData) -> None:
        self.set_calibration_data(data.source, data.destination, data.screen_size)

    def set_transform_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._state.transform_enabled = bool(enabled)
        logger.debug(f"Calibration transform {'enabled' if enabled else 'bypassed'}")

    @property
    def transform_enabled(self) -> bool:
        with self._lock:
            return self._state.transform_enabled

    @property
    def screen_size(self) -> Tuple[float, float]:
        with self._lock:
            return self._state.screen_size

    # ---------------------------------------------------------------- consumers

    def on_frame(self, callback: Optional[FrameCallback]) -> None:
        self._frame_channel.set_handler(callback)

    def on_battery_changed(self, callback: Optional[BatteryCallback]) -> None:
        self._battery_channel.set_handler(callback)

    @property
    def battery_level(self) -> int:
        with self._lock:
            return self._state.battery or 0

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            stats = {
                "frames_emitted": self._state.frames_emitted,
                "reports_skipped": self._state.reports_skipped,
                "live_tracks": len(self._tracker.live_tracks()),
            }
        frame_stats = self._frame_channel.get_stats()
        stats["frames_dropped"] = frame_stats["dropped"]
        stats["handler_errors"] = frame_stats["handler_errors"]
        return stats

    # ------------------------------------------------------------ sensor thread

    def handle_report(self, report: SensorReport) -> None:
        """Process one sensor report. Registered as the device callback."""
        started = time.perf_counter()
        with self._lock:
            if not self._state.running:
                return

            try:
                observations = self._extract_observations(report)
                battery = self._read_battery(report)
            except MalformedReportError as exc:
                self._state.reports_skipped += 1
                logger.warning(f"Skipping malformed sensor report: {exc}")
                publish_error(
                    category=ErrorCategory.SENSOR,
                    severity=ErrorSeverity.WARNING,
                    message=f"Malformed sensor report skipped: {exc}",
                    source="AcquisitionCoordinator.handle_report",
                    exception=exc,
                    reports_skipped=self._state.reports_skipped,
                )
                return

            contacts = self._collect(lambda: self._tracker.process_frame(observations))
            frame = self._seal(contacts)
            self._frame_channel.publish(frame)

            if battery != self._state.battery:
                self._state.battery = battery
                self._battery_channel.publish(battery)

        log_tick_duration(
            frame.sequence,
            (time.perf_counter() - started) * 1000.0,
            self._config.dispatch.tick_budget_ms,
        )

    def _extract_observations(self, report: SensorReport) -> List[BlobObservation]:
        if not isinstance(report, SensorReport):
            raise MalformedReportError(f"Expected SensorReport, got {type(report).__name__}")
        slots = report.slots
        if not isinstance(slots, (tuple, list)):
            raise MalformedReportError("Report slots are missing")
        max_blobs = self._device_max_blobs()
        if len(slots) > max_blobs:
            raise MalformedReportError(f"Report has {len(slots)} slots, sensor supports {max_blobs}")

        observations: List[BlobObservation] = []
        for index, slot in enumerate(slots):
            if not isinstance(slot, SensorSlot):
                raise MalformedReportError(f"Slot {index} is not a SensorSlot")
            if not slot.found:
                continue
            x, y = _finite(slot.x, index, "x"), _finite(slot.y, index, "y")
            size = 1.0 if slot.size is None else _finite(slot.size, index, "size")
            if self._state.transform_enabled:
                try:
                    x, y = self._warper.warp(x, y)
                except DegenerateCalibrationError as exc:
                    logger.debug(f"Dropping blob {index}: {exc}")
                    continue
            observations.append(BlobObservation(x=x, y=y, size=size))
        return observations

    def _read_battery(self, report: SensorReport) -> int:
        battery = report.battery
        if isinstance(battery, bool) or not isinstance(battery, numbers.Integral):
            raise MalformedReportError(f"Battery reading {battery!r} is not an integer")
        return max(0, min(int(battery), BATTERY_MAX))

    def _device_max_blobs(self) -> int:
        device = self._state.device
        if device is None:
            return self._config.sensor.max_blobs
        return device.max_blobs

    # -------------------------------------------------------- tracker callbacks

    def _collect(self, run: Callable[[], None]) -> Tuple[Contact, ...]:
        """Run tracker work with a fresh contact buffer and return it sealed."""
        self._state.contacts = []
        try:
            run()
            return tuple(self._state.contacts)
        finally:
            self._state.contacts = None

    def _seal(self, contacts: Tuple[Contact, ...]) -> Frame:
        self._state.sequence += 1
        timestamp_ns = max(time.monotonic_ns(), self._state.last_timestamp_ns + 1)
        self._state.last_timestamp_ns = timestamp_ns
        self._state.frames_emitted += 1
        return Frame(timestamp_ns=timestamp_ns, sequence=self._state.sequence, contacts=contacts)

    def _on_track_start(self, track: TrackState) -> None:
        self._append_contact(ContactType.START, track)

    def _on_track_update(self, track: TrackState) -> None:
        self._append_contact(ContactType.MOVE, track)

    def _on_track_end(self, track: TrackState) -> None:
        self._append_contact(ContactType.END, track)

    def _append_contact(self, contact_type: ContactType, track: TrackState) -> None:
        if self._state.contacts is None:
            return
        if self._state.transform_enabled:
            ref_w, ref_h = self._state.screen_size
        else:
            ref_w, ref_h = float(self._config.sensor.width), float(self._config.sensor.height)
        size_w, size_h = self._config.tracking.contact_size
        self._state.contacts.append(
            Contact(
                id=track.track_id,
                type=contact_type,
                raw_position=track.position,
                normalized_position=Point2D(track.position.x / ref_w, track.position.y / ref_h),
                size=(size_w * track.size, size_h * track.size),
            )
        )

    # ------------------------------------------------------------------ helpers

    def _release(self, device: Optional[SensorDevice]) -> None:
        if device is None:
            return
        try:
            device.set_report_callback(None)
            device.disconnect()
        except Exception as exc:
            logger.warning(f"Error while closing sensor session: {exc}")
            publish_error(
                category=ErrorCategory.SENSOR,
                severity=ErrorSeverity.WARNING,
                message=f"Error while closing sensor session: {exc}",
                source="AcquisitionCoordinator.stop",
                exception=exc,
            )


def _finite(value: object, index: int, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise MalformedReportError(f"Slot {index} {name}={value!r} is not numeric")
    result = float(value)
    if not math.isfinite(result):
        raise MalformedReportError(f"Slot {index} {name}={value!r} is not finite")
    return result
