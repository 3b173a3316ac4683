"""
Map actuator boundary.

The host owns the map; this module only decides what to ask of it. Each
tick issues at most one command, chosen by priority:

    1. flick momentum delta
    2. live pan   (x, y) * speed * pan_base_speed_px_s * dt
    3. live zoom  +/- min(speed * multiplier, max_zoom_speed) * dt

The host should apply both calls with zero animation duration; the
pipeline already smooths per tick.

Backends:
    - Any object implementing MapActuator (pan_by / zoom_by)
    - LoggingActuator: simulated, logs and counts commands
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Tuple, runtime_checkable

from touchless_map.core.events import EventBus, Events
from touchless_map.core.types import ControlMode, PanVector, ZoomVector

logger = logging.getLogger(__name__)


@runtime_checkable
class MapActuator(Protocol):
    """What the host map must implement."""

    def pan_by(self, dx_px: float, dy_px: float) -> None:
        """Pan by a relative delta in screen pixels."""
        ...

    def zoom_by(self, delta: float) -> None:
        """Change the zoom level by a relative delta."""
        ...


class LoggingActuator:
    """Simulated actuator: logs every command and keeps running totals."""

    def __init__(self):
        self._callbacks: List[Callable[[str, tuple], None]] = []
        self.pan_calls = 0
        self.zoom_calls = 0
        self.total_pan = [0.0, 0.0]
        self.total_zoom = 0.0

    def pan_by(self, dx_px: float, dy_px: float) -> None:
        self.pan_calls += 1
        self.total_pan[0] += dx_px
        self.total_pan[1] += dy_px
        logger.debug("[SIMULATED] pan_by(%.2f, %.2f)", dx_px, dy_px)
        self._notify("pan", (dx_px, dy_px))

    def zoom_by(self, delta: float) -> None:
        self.zoom_calls += 1
        self.total_zoom += delta
        logger.debug("[SIMULATED] zoom_by(%.4f)", delta)
        self._notify("zoom", (delta,))

    def on_command(self, callback: Callable[[str, tuple], None]):
        """Register a callback invoked after every command."""
        self._callbacks.append(callback)

    def _notify(self, action: str, args: tuple):
        for callback in self._callbacks:
            try:
                callback(action, args)
            except Exception as e:
                logger.error("Actuator callback error: %s", e)

    @property
    def command_count(self) -> int:
        return self.pan_calls + self.zoom_calls


@dataclass
class ViewportConfig:
    """Screen geometry and live pan/zoom rates."""
    width: int = 1280
    height: int = 720
    pan_base_speed_px_s: float = 500.0
    zoom_speed_multiplier: float = 3.0
    max_zoom_speed: float = 1.0
    zoom_dead_zone_threshold: float = 0.02
    max_tick_gap_ms: float = 100.0

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport size must be positive, got {self.width}x{self.height}")
        if self.max_tick_gap_ms <= 0:
            raise ValueError(f"max_tick_gap_ms must be > 0, got {self.max_tick_gap_ms}")

    @classmethod
    def from_dict(cls, d: dict) -> "ViewportConfig":
        """Create config from the `viewport` section."""
        return cls(
            width=int(d.get("width", 1280)),
            height=int(d.get("height", 720)),
            pan_base_speed_px_s=float(d.get("pan_base_speed_px_s", 500.0)),
            zoom_speed_multiplier=float(d.get("zoom_speed_multiplier", 3.0)),
            max_zoom_speed=float(d.get("max_zoom_speed", 1.0)),
            zoom_dead_zone_threshold=float(d.get("zoom_dead_zone_threshold", 0.02)),
            max_tick_gap_ms=float(d.get("max_tick_gap_ms", 100.0)),
        )

    def to_screen(self, x: float, y: float) -> Tuple[float, float]:
        return (x * self.width, y * self.height)


@dataclass(frozen=True)
class ActuatorCommand:
    """The single command a tick issued (or tried to)."""
    action: str  # "momentum" | "pan" | "zoom"
    pan_delta: Optional[Tuple[float, float]] = None
    zoom_delta: Optional[float] = None
    ok: bool = True


class ViewportDriver:
    """Converts one tick's outputs into at most one actuator call."""

    def __init__(self, config: Optional[ViewportConfig] = None,
                 actuator: Optional[MapActuator] = None,
                 event_bus: Optional[EventBus] = None):
        self.config = config or ViewportConfig()
        self.actuator = actuator if actuator is not None else LoggingActuator()
        self._bus = event_bus
        self._last_tick_ms: Optional[float] = None
        self._failures = 0

    def elapsed_s(self, now_ms: float) -> float:
        """Seconds since the previous tick, capped; 0 on the first tick."""
        last = self._last_tick_ms
        self._last_tick_ms = now_ms
        if last is None:
            return 0.0
        gap = min(max(0.0, now_ms - last), self.config.max_tick_gap_ms)
        return gap / 1000.0

    def drive(self, now_ms: float, mode: ControlMode,
              pan: Optional[PanVector] = None,
              zoom: Optional[ZoomVector] = None,
              momentum_delta: Optional[Tuple[float, float]] = None) -> Optional[ActuatorCommand]:
        """Issue this tick's command. Returns None when nothing was sent."""
        dt = self.elapsed_s(now_ms)

        if momentum_delta is not None:
            return self._pan("momentum", momentum_delta[0], momentum_delta[1])

        if mode == ControlMode.PANNING and pan is not None and not pan.in_dead_zone:
            scale = pan.speed * self.config.pan_base_speed_px_s * dt
            if scale > 0.0:
                return self._pan("pan", pan.x * scale, pan.y * scale)
            return None

        if mode.is_zoom and zoom is not None and not zoom.in_dead_zone:
            if zoom.speed < self.config.zoom_dead_zone_threshold:
                return None
            rate = min(zoom.speed * self.config.zoom_speed_multiplier,
                       self.config.max_zoom_speed)
            sign = 1.0 if zoom.direction == ControlMode.ZOOM_IN else -1.0
            delta = sign * rate * dt
            if delta != 0.0:
                return self._zoom(delta)

        return None

    def _pan(self, action: str, dx: float, dy: float) -> ActuatorCommand:
        try:
            self.actuator.pan_by(dx, dy)
        except Exception as e:
            self._report_failure(action, e)
            return ActuatorCommand(action=action, pan_delta=(dx, dy), ok=False)
        return ActuatorCommand(action=action, pan_delta=(dx, dy))

    def _zoom(self, delta: float) -> ActuatorCommand:
        try:
            self.actuator.zoom_by(delta)
        except Exception as e:
            self._report_failure("zoom", e)
            return ActuatorCommand(action="zoom", zoom_delta=delta, ok=False)
        return ActuatorCommand(action="zoom", zoom_delta=delta)

    def _report_failure(self, action: str, error: Exception):
        self._failures += 1
        logger.error("Actuator %s failed: %s", action, error)
        if self._bus is not None:
            self._bus.emit(Events.ACTUATOR_FAILED, action=action, error=str(error))

    @property
    def failure_count(self) -> int:
        return self._failures

    def reset(self):
        self._last_tick_ms = None
