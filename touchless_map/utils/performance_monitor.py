"""
Per-tick performance tracking for the control pipeline.

Tick rate is derived from the timestamps the pipeline runs on, so a replayed
session reports the rate it was recorded at rather than how fast it was
replayed. Stage latencies are wall-clock and kept over a rolling window.
"""

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Deque, Dict, Optional

import numpy as np

logger = logging.getLogger(__name__)

PIPELINE_STAGES = ("smoothing", "classification", "vectors", "actuation", "total")

# One animation frame at 60 Hz
FRAME_BUDGET_MS = 1000.0 / 60.0


class PerformanceMonitor:
    """Rolling tick interval and stage latency statistics."""

    def __init__(self, window_size: int = 100, frame_budget_ms: float = FRAME_BUDGET_MS):
        self._window_size = window_size
        self._frame_budget_ms = frame_budget_ms
        self._lock = threading.Lock()

        self._intervals_ms: Deque[float] = deque(maxlen=window_size)
        self._last_tick_ms: Optional[float] = None
        self._stages: Dict[str, Deque[float]] = {
            name: deque(maxlen=window_size) for name in PIPELINE_STAGES
        }

        self._frame_count = 0
        self._dropped_frames = 0
        self._overruns = 0
        self._started = time.time()

    @contextmanager
    def measure(self, stage: str):
        """Time the enclosed block as one sample of `stage`."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            with self._lock:
                samples = self._stages.setdefault(stage, deque(maxlen=self._window_size))
                samples.append(elapsed_ms)
                if stage == "total" and elapsed_ms > self._frame_budget_ms:
                    self._overruns += 1

    def tick(self, timestamp_ms: Optional[float] = None):
        """Count one pipeline tick at the given frame time."""
        if timestamp_ms is None:
            timestamp_ms = time.monotonic() * 1000.0
        with self._lock:
            if self._last_tick_ms is not None and timestamp_ms > self._last_tick_ms:
                self._intervals_ms.append(timestamp_ms - self._last_tick_ms)
            self._last_tick_ms = timestamp_ms
            self._frame_count += 1

    def record_drop(self):
        """Count a tick whose frame was not ready."""
        with self._lock:
            self._dropped_frames += 1

    @property
    def fps(self) -> float:
        with self._lock:
            if not self._intervals_ms:
                return 0.0
            mean = float(np.mean(self._intervals_ms))
        return 1000.0 / mean if mean > 0 else 0.0

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def dropped_frames(self) -> int:
        return self._dropped_frames

    @property
    def overruns(self) -> int:
        """Ticks whose total latency exceeded one frame."""
        return self._overruns

    @property
    def total_latency_ms(self) -> float:
        return self.get_stage_latency("total")

    def get_stage_latency(self, stage: str) -> float:
        """Mean latency of a stage in ms, 0 when never measured."""
        return self.get_stage_stats(stage)["mean"]

    def last_latency_ms(self, stage: str) -> float:
        """Latency of the most recent sample of a stage in ms."""
        with self._lock:
            samples = self._stages.get(stage)
            return samples[-1] if samples else 0.0

    def get_stage_stats(self, stage: str) -> Dict[str, float]:
        """mean / p95 / max latency of a stage over the window."""
        with self._lock:
            samples = np.array(self._stages.get(stage, ()), dtype=np.float64)
        if samples.size == 0:
            return {"mean": 0.0, "p95": 0.0, "max": 0.0}
        return {
            "mean": float(samples.mean()),
            "p95": float(np.percentile(samples, 95)),
            "max": float(samples.max()),
        }

    def get_report(self) -> dict:
        with self._lock:
            stages = list(self._stages)
        return {
            "fps": round(self.fps, 1),
            "total_frames": self._frame_count,
            "dropped_frames": self._dropped_frames,
            "drop_rate": round(self._dropped_frames / max(self._frame_count, 1) * 100, 2),
            "overruns": self._overruns,
            "uptime_seconds": round(time.time() - self._started, 1),
            "latencies_ms": {
                name: {k: round(v, 3) for k, v in self.get_stage_stats(name).items()}
                for name in stages
            },
        }

    def print_report(self):
        report = self.get_report()
        logger.info("=" * 60)
        logger.info("PERFORMANCE REPORT")
        logger.info("=" * 60)
        logger.info("Tick rate:      %.1f/s", report["fps"])
        logger.info("Ticks:          %d", report["total_frames"])
        logger.info("Not ready:      %d (%.2f%%)", report["dropped_frames"], report["drop_rate"])
        logger.info("Over budget:    %d", report["overruns"])
        logger.info("Uptime:         %.1fs", report["uptime_seconds"])
        logger.info("-" * 40)
        logger.info("Stage latency (ms):     mean      p95      max")
        for stage, stats in report["latencies_ms"].items():
            logger.info("  %-18s %8.3f %8.3f %8.3f",
                        stage, stats["mean"], stats["p95"], stats["max"])
        logger.info("=" * 60)

    def reset(self):
        with self._lock:
            self._intervals_ms.clear()
            self._last_tick_ms = None
            for samples in self._stages.values():
                samples.clear()
            self._frame_count = 0
            self._dropped_frames = 0
            self._overruns = 0
            self._started = time.time()
