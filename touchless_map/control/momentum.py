"""
Flick momentum.

While the hand pans outside the dead zone, its screen-space fingertip is
tracked frame to frame. A fast enough movement launches a FlickMomentum
that keeps panning the map after the hand stops, decaying per reference
tick until it falls below the stop threshold:

    v(t) = v0 * decay ** (elapsed_ms / reference_tick_ms)

A cooldown after each launch ignores raw hand movement so the live gesture
does not fight the momentum for the viewport.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from touchless_map.core.types import FlickMomentum

logger = logging.getLogger(__name__)


@dataclass
class FlickConfig:
    """Flick physics. Velocities are in screen px/ms."""
    velocity_threshold: float = 1.2
    launch_multiplier: float = 0.8
    decay: float = 0.95
    stop_threshold: float = 0.02
    cooldown_ms: float = 300.0
    reference_tick_ms: float = 16.0

    def __post_init__(self):
        if not 0.0 < self.decay < 1.0:
            raise ValueError(f"Momentum decay must be in (0, 1), got {self.decay}")
        if self.stop_threshold <= 0:
            raise ValueError(f"stop_threshold must be > 0, got {self.stop_threshold}")
        if self.reference_tick_ms <= 0:
            raise ValueError(f"reference_tick_ms must be > 0, got {self.reference_tick_ms}")
        if self.velocity_threshold < 0 or self.launch_multiplier < 0 or self.cooldown_ms < 0:
            raise ValueError("Flick threshold, multiplier and cooldown must be >= 0")

    @classmethod
    def from_dict(cls, d: dict) -> "FlickConfig":
        """Create config from the `flick` section."""
        return cls(
            velocity_threshold=float(d.get("velocity_threshold", 1.2)),
            launch_multiplier=float(d.get("launch_multiplier", 0.8)),
            decay=float(d.get("decay", 0.95)),
            stop_threshold=float(d.get("stop_threshold", 0.02)),
            cooldown_ms=float(d.get("cooldown_ms", 300.0)),
            reference_tick_ms=float(d.get("reference_tick_ms", 16.0)),
        )


class FlickIntegrator:
    """Tracks the panning fingertip and integrates released momentum.

    Example:
        >>> flick = FlickIntegrator(FlickConfig())
        >>> flick.track((640, 360), now_ms=0)
        >>> flick.track((700, 360), now_ms=16)   # 3.75 px/ms -> launch
        >>> flick.step(now_ms=32)                 # decayed pan delta in px
    """

    def __init__(self, config: Optional[FlickConfig] = None):
        self.config = config or FlickConfig()
        self._anchor: Optional[Tuple[float, float, float]] = None  # (x, y, t)
        self._momentum: Optional[FlickMomentum] = None
        self._cooldown_until: Optional[float] = None
        self._flick_count = 0

    def track(self, point_px: Tuple[float, float], now_ms: float) -> Optional[FlickMomentum]:
        """Feed one fingertip sample; returns the momentum when a flick launches."""
        if self.in_cooldown(now_ms):
            return None

        x, y = float(point_px[0]), float(point_px[1])
        anchor = self._anchor
        self._anchor = (x, y, now_ms)
        if anchor is None:
            return None

        dt = now_ms - anchor[2]
        if dt <= 0:
            return None

        # Screen y grows downward; momentum uses the pan-vector convention.
        vx = (x - anchor[0]) / dt
        vy = -(y - anchor[1]) / dt
        speed = (vx * vx + vy * vy) ** 0.5
        if speed <= self.config.velocity_threshold:
            return None

        m = self.config.launch_multiplier
        self._momentum = FlickMomentum(vx=vx * m, vy=vy * m,
                                       start_time=now_ms, updated_at=now_ms)
        self._anchor = None
        self._cooldown_until = now_ms + self.config.cooldown_ms
        self._flick_count += 1
        logger.debug("Flick launched at %.2f px/ms", speed)
        return self._momentum

    def step(self, now_ms: float) -> Optional[Tuple[float, float]]:
        """Decay the momentum and return this tick's pan delta in px.

        Returns None when there is no momentum, including the tick on which
        it drops below the stop threshold and is discarded, and when no time
        has passed since the last step.
        """
        momentum = self._momentum
        if momentum is None:
            return None

        elapsed = now_ms - momentum.updated_at
        if elapsed <= 0.0:
            return None
        factor = self.config.decay ** (elapsed / self.config.reference_tick_ms)
        momentum.vx *= factor
        momentum.vy *= factor
        momentum.updated_at = now_ms

        if momentum.speed < self.config.stop_threshold:
            logger.debug("Momentum stopped after %.0f ms", now_ms - momentum.start_time)
            self._momentum = None
            return None

        return (momentum.vx * elapsed, momentum.vy * elapsed)

    def release_anchor(self):
        """Forget the tracked point (dead zone entered, mode left, hands lost)."""
        self._anchor = None

    def cancel(self):
        """Drop any momentum; a new pan gesture has taken over."""
        if self._momentum is not None:
            logger.debug("Momentum cancelled by new pan gesture")
        self._momentum = None
        self._cooldown_until = None

    def in_cooldown(self, now_ms: float) -> bool:
        return self._cooldown_until is not None and now_ms < self._cooldown_until

    @property
    def active(self) -> bool:
        return self._momentum is not None

    @property
    def momentum(self) -> Optional[FlickMomentum]:
        return self._momentum

    @property
    def has_anchor(self) -> bool:
        return self._anchor is not None

    @property
    def flick_count(self) -> int:
        return self._flick_count

    def reset(self):
        self._anchor = None
        self._momentum = None
        self._cooldown_until = None
