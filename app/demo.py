"""Minimal simulated touch tracking demo."""

from __future__ import annotations

import argparse
import time
from pathlib import Path
from typing import List, Sequence, Tuple

from app.services.acquisition import AcquisitionCoordinatorImpl
from calib import CalibrationSession, CalibrationStore
from capture import SimulatedSensor
from configs.settings import AppConfig, DEFAULT_CONFIG_PATH, load_config
from contracts import Frame
from log_config.logger import configure_file_logging
from transport import TuioFormatter


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a simulated touch tracking demo.")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH)
    parser.add_argument("--ticks", type=int, default=40)
    parser.add_argument("--tuio", action="store_true", help="Print TUIO bundles instead of contacts")
    parser.add_argument("--log-dir", type=Path, default=None, help="Also write rotating log files here")
    return parser.parse_args()


def demo_script(config: AppConfig, ticks: int) -> List[Sequence[Tuple[float, float]]]:
    """One finger sweeping diagonally, a short lift, then a two-finger pinch."""
    width, height = config.sensor.width, config.sensor.height
    half = max(ticks // 2, 1)
    script: List[Sequence[Tuple[float, float]]] = []
    for i in range(half):
        t = i / half
        script.append([(width * (0.2 + 0.6 * t), height * (0.2 + 0.6 * t))])
    script.extend([[], []])
    for i in range(ticks - half):
        t = i / max(ticks - half, 1)
        script.append(
            [
                (width * (0.3 + 0.15 * t), height * 0.5),
                (width * (0.7 - 0.15 * t), height * 0.5),
            ]
        )
    return script


def main() -> None:
    args = parse_args()
    if args.log_dir is not None:
        configure_file_logging(args.log_dir)
    config = load_config(args.config)

    script = demo_script(config, args.ticks)
    sensor = SimulatedSensor(
        script=script,
        rate_hz=config.sensor.sample_rate_hz or 100,
        max_blobs=config.sensor.max_blobs,
    )
    coordinator = AcquisitionCoordinatorImpl(lambda: sensor, config)

    if config.calibration.store_path and config.calibration.load_on_start:
        store = CalibrationStore(config.calibration.store_path)
        if CalibrationSession(coordinator, store).load_into() is not None:
            print(f"Using stored calibration from {store.path}")

    formatter = TuioFormatter()

    def show(frame: Frame) -> None:
        if frame.is_empty:
            return
        if args.tuio:
            for message in formatter.build_bundle(frame):
                print(" ".join(str(part) for part in message))
            return
        for contact in frame.contacts:
            print(
                f"seq={frame.sequence} id={contact.id} {contact.type.value:<5} "
                f"x={contact.normalized_position.x:.3f} y={contact.normalized_position.y:.3f}"
            )

    coordinator.on_frame(show)
    coordinator.on_battery_changed(lambda level: print(f"battery={level}"))

    coordinator.start()
    try:
        time.sleep((len(script) + 2) / (config.sensor.sample_rate_hz or 100))
    finally:
        coordinator.close()


if __name__ == "__main__":
    main()
