"""
Event bus for pipeline transitions.

The pipeline publishes session, hand, mode, flick and fireworks transitions;
hosts (status panels, overlays, the CLI) subscribe without the core knowing
about them.

Usage:
    bus = EventBus()
    unsubscribe = bus.subscribe(Events.MODE_CHANGED, on_mode_changed)
    bus.emit(Events.MODE_CHANGED, previous=ControlMode.IDLE, mode=ControlMode.PANNING)
"""

import itertools
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)


class EventRecord(NamedTuple):
    """One emitted event, kept in the bus history."""
    name: str
    timestamp: float
    keys: Tuple[str, ...]


@dataclass(order=True)
class _Listener:
    sort_key: Tuple[int, int]
    callback: Callable = field(compare=False)


class EventBus:
    """Synchronous publish/subscribe bus, one per process.

    Listeners run inside the tick that emitted the event, highest priority
    first and in subscription order within a priority. A listener that
    raises is logged and skipped; it never reaches the frame loop.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, max_history: int = 100):
        if self._initialized:
            return
        self._listeners: Dict[str, List[_Listener]] = {}
        self._lock = threading.Lock()
        self._seq = itertools.count()
        self._history: Deque[EventRecord] = deque(maxlen=max_history)
        self._enabled = True
        self._handler_errors = 0
        self._initialized = True

    def subscribe(self, event_name: str, callback: Callable,
                  priority: int = 0) -> Callable[[], None]:
        """Register `callback(**kwargs)` for an event.

        Returns:
            A no-argument function that removes this subscription
        """
        entry = _Listener((-priority, next(self._seq)), callback)
        with self._lock:
            listeners = self._listeners.setdefault(event_name, [])
            listeners.append(entry)
            listeners.sort()
        logger.debug("Subscribed to '%s': %s (priority=%d)",
                     event_name, getattr(callback, "__name__", callback), priority)
        return lambda: self.unsubscribe(event_name, callback)

    def unsubscribe(self, event_name: str, callback: Callable):
        with self._lock:
            listeners = self._listeners.get(event_name)
            if listeners is None:
                return
            listeners[:] = [entry for entry in listeners if entry.callback is not callback]
            if not listeners:
                del self._listeners[event_name]

    def emit(self, event_name: str, **kwargs):
        if not self._enabled:
            return

        with self._lock:
            listeners = list(self._listeners.get(event_name, ()))
            self._history.append(EventRecord(event_name, time.time(), tuple(kwargs)))

        for entry in listeners:
            try:
                entry.callback(**kwargs)
            except Exception as e:
                self._handler_errors += 1
                logger.error("Event handler error [%s -> %s]: %s", event_name,
                             getattr(entry.callback, "__name__", entry.callback), e)

    def set_enabled(self, enabled: bool):
        """Mute or unmute the bus; muted events are neither delivered nor recorded."""
        self._enabled = enabled

    def clear(self, event_name: Optional[str] = None):
        """Remove all listeners, or only those of one event."""
        with self._lock:
            if event_name is None:
                self._listeners.clear()
            else:
                self._listeners.pop(event_name, None)

    @property
    def registered_events(self) -> List[str]:
        with self._lock:
            return list(self._listeners)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._listeners.values())

    @property
    def handler_errors(self) -> int:
        return self._handler_errors

    def get_history(self, last_n: int = 10) -> List[EventRecord]:
        """Most recent events, oldest first."""
        with self._lock:
            return list(self._history)[-last_n:]

    def reset(self):
        """Drop listeners, history and counters (for tests)."""
        with self._lock:
            self._listeners.clear()
            self._history.clear()
        self._enabled = True
        self._handler_errors = 0


class Events:
    """Event names emitted by the pipeline."""

    # Session lifecycle
    SESSION_STARTED = "session_started"
    SESSION_STOPPED = "session_stopped"

    # Tracking
    HAND_DETECTED = "hand_detected"
    HAND_LOST = "hand_lost"

    # Control
    MODE_CHANGED = "mode_changed"
    FLICK_STARTED = "flick_started"
    FLICK_ENDED = "flick_ended"
    FIREWORKS_STARTED = "fireworks_started"
    FIREWORKS_STOPPED = "fireworks_stopped"

    # Actuator
    ACTUATOR_FAILED = "actuator_failed"
