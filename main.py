#!/usr/bin/env python3
"""
Touchless Map Control
Application entry point.

Drives the GesturePipeline from either a recorded session or the live
camera, sending viewport commands to the simulated (logging) actuator.

Usage:
    python main.py --input session.jsonl      # Replay recorded frames
    python main.py --live                     # Live camera + recognizer
    python main.py --input s.jsonl --report   # Print performance report
"""

import argparse
import json
import logging
import signal
import sys

from touchless_map.control.actuator import LoggingActuator
from touchless_map.core.events import EventBus, Events
from touchless_map.core.pipeline import GesturePipeline, PipelineConfig
from touchless_map.core.types import FrameInput
from touchless_map.utils.config import Config
from touchless_map.utils.logger import setup_logging
from touchless_map.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)


class TouchlessMapControl:
    """Main application: feeds frames to the pipeline until stopped."""

    def __init__(self, config: Config):
        self._config = config
        self._running = False
        self._bus = EventBus()
        self._actuator = LoggingActuator()
        self._perf = PerformanceMonitor(
            window_size=config.get("performance.metrics_window", 100)
        )
        self._pipeline = GesturePipeline(
            PipelineConfig.from_config(config),
            actuator=self._actuator,
            event_bus=self._bus,
            perf=self._perf,
        )

        self._bus.subscribe(Events.MODE_CHANGED, self._on_mode_changed)
        self._bus.subscribe(Events.ACTUATOR_FAILED, self._on_actuator_failed)

    def _on_mode_changed(self, **kwargs):
        logger.debug("Mode changed event: %s -> %s",
                     kwargs.get("previous"), kwargs.get("mode"))

    def _on_actuator_failed(self, **kwargs):
        logger.warning("Actuator command failed: %s (%s)",
                       kwargs.get("action"), kwargs.get("error"))

    def run_replay(self, path: str, tick_ms: float = 16.0) -> int:
        """Replay a JSONL session. Each line is a frame object or `null`.

        Returns:
            Number of ticks processed
        """
        self._pipeline.start()
        self._running = True
        ticks = 0
        clock = 0.0
        try:
            with open(path, "r") as f:
                for line_no, line in enumerate(f, 1):
                    if not self._running:
                        break
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        record = json.loads(line)
                    except json.JSONDecodeError as e:
                        logger.warning("Line %d: invalid JSON (%s), treated as not ready",
                                       line_no, e)
                        record = None

                    clock += tick_ms
                    frame = FrameInput.from_dict(record)
                    if frame is None and record is not None:
                        logger.warning("Line %d: malformed frame record, treated as not ready",
                                       line_no)
                    timestamp = frame.timestamp_ms if frame is not None else None
                    if timestamp is not None:
                        clock = float(timestamp)

                    result = self._pipeline.tick(frame, timestamp_ms=clock)
                    ticks += 1
                    if result.mode_changed:
                        logger.info("Frame %d: %s (%s)", result.frame_id,
                                    result.mode.value, result.rule)
        finally:
            self._shutdown()

        logger.info("Replayed %d ticks: %d pan / %d zoom commands",
                    ticks, self._actuator.pan_calls, self._actuator.zoom_calls)
        return ticks

    def run_live(self) -> bool:
        """Run the camera + recognizer loop until interrupted."""
        from touchless_map.capture.recognizer_source import RecognizerConfig, RecognizerSource

        source = RecognizerSource(RecognizerConfig.from_config(self._config))
        if not source.start():
            logger.error("Failed to start live source. Check camera and model.")
            return False

        self._pipeline.start()
        self._running = True
        try:
            while self._running:
                self._pipeline.tick(source.read())
        finally:
            source.stop()
            self._shutdown()
        return True

    def _shutdown(self):
        self._running = False
        self._pipeline.stop()

    def print_report(self):
        self._perf.print_report()
        logger.info("Mode changes: %d", self._pipeline.control_log.total_mode_changes)

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self._running = False


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Touchless Map Control - hand gestures to map pan/zoom"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--input", type=str, default=None,
        help="Replay a JSONL session (one frame per line, null = not ready)"
    )
    source.add_argument(
        "--live", action="store_true",
        help="Use the camera and MediaPipe gesture recognizer"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override logging.level"
    )
    parser.add_argument(
        "--tick-ms", type=float, default=16.0,
        help="Replay tick spacing for frames without timestamp_ms"
    )
    parser.add_argument(
        "--report", action="store_true",
        help="Print a performance report on exit"
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    config = Config()
    config.load(config_path=args.config)
    if args.log_level:
        config.set("logging.level", args.log_level)

    log_cfg = config.get_section("logging")
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 60)
    logger.info("  TOUCHLESS MAP CONTROL")
    logger.info("  Version: %s", config.get("system.version", "1.0.0"))
    logger.info("  Source: %s", "live camera" if args.live else args.input)
    logger.info("=" * 60)

    app = TouchlessMapControl(config)

    signal.signal(signal.SIGINT, app.handle_signal)
    signal.signal(signal.SIGTERM, app.handle_signal)

    if args.live:
        ok = app.run_live()
    else:
        try:
            app.run_replay(args.input, tick_ms=args.tick_ms)
            ok = True
        except OSError as e:
            logger.error("Cannot read %s: %s", args.input, e)
            ok = False

    if args.report:
        app.print_report()
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
