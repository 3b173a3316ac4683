"""
Fireworks celebration trigger.

Committing FIREWORKS starts a fixed-length celebration; re-committing it
while one is running does not restart the clock. The host renders the
effect by watching `active` or the fireworks events.
"""

import logging
from typing import Optional

from touchless_map.core.events import EventBus, Events

logger = logging.getLogger(__name__)


class FireworksTrigger:
    """One-shot timed celebration."""

    def __init__(self, duration_ms: float = 5000.0, event_bus: Optional[EventBus] = None):
        if duration_ms <= 0:
            raise ValueError(f"Fireworks duration must be > 0, got {duration_ms}")
        self.duration_ms = float(duration_ms)
        self._bus = event_bus
        self._started_at: Optional[float] = None
        self._launches = 0

    def start(self, now_ms: float) -> bool:
        """Start unless already running. Returns True when a show began."""
        if self._started_at is not None:
            return False
        self._started_at = now_ms
        self._launches += 1
        logger.info("Fireworks started")
        if self._bus is not None:
            self._bus.emit(Events.FIREWORKS_STARTED, timestamp_ms=now_ms)
        return True

    def update(self, now_ms: float) -> bool:
        """Advance the clock; returns whether the show is still running."""
        if self._started_at is None:
            return False
        if now_ms - self._started_at >= self.duration_ms:
            self.stop(now_ms)
            return False
        return True

    def stop(self, now_ms: Optional[float] = None):
        if self._started_at is None:
            return
        self._started_at = None
        logger.info("Fireworks stopped")
        if self._bus is not None:
            self._bus.emit(Events.FIREWORKS_STOPPED, timestamp_ms=now_ms)

    @property
    def active(self) -> bool:
        return self._started_at is not None

    @property
    def launches(self) -> int:
        return self._launches
