"""
Logging setup plus a recorder for control events (mode changes, flicks,
viewport commands).
"""

import os
import logging
import logging.handlers
import time

CONSOLE_FORMAT = "%(asctime)s  %(levelname)-5s  %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)-36s | %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Install the console handler and, when `log_file` is set, a rotating file.

    Replaces any handlers already on the root logger so repeated calls (CLI
    re-entry, tests) do not duplicate output.
    """
    resolved = getattr(logging, str(level).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(resolved)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=int(max_size_mb * 1024 * 1024),
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    return root_logger


class ControlLogger:
    """Specialized logger for mode transitions, flicks and viewport commands."""

    def __init__(self, max_history: int = 500):
        self.logger = logging.getLogger("control_events")
        self._history = []
        self._max_history = max_history

    def _record(self, entry: dict):
        entry["timestamp"] = time.time()
        self._history.append(entry)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

    def log_mode_change(self, previous, mode, rule=None, frame_id=None):
        """Log a committed control-mode transition."""
        self._record({"event": "mode", "previous": previous, "mode": mode, "rule": rule})
        self.logger.info(
            "Mode: %-9s -> %-9s | Rule: %-12s | Frame: %s",
            previous, mode, rule or "none",
            frame_id if frame_id is not None else "N/A",
        )

    def log_flick(self, vx, vy):
        """Log a flick launch (velocity in px/ms)."""
        self._record({"event": "flick", "vx": vx, "vy": vy})
        self.logger.info("Flick: vx=%.3f vy=%.3f px/ms", vx, vy)

    def log_command(self, action, detail=""):
        """Log a viewport command at debug level; they arrive every frame."""
        self.logger.debug("Command: %-8s | %s", action, detail)

    def get_history(self, last_n=None):
        """Get recent control history."""
        if last_n:
            return self._history[-last_n:]
        return self._history.copy()

    @property
    def total_mode_changes(self):
        return sum(1 for e in self._history if e["event"] == "mode")
