"""
Pan and zoom vectors from the index fingertip's offset to the dead zone.

The dead zone is a fixed circle around the frame centre; the hand rests
there to mean "no input". Outside it, speed ramps linearly from the circle
edge to the frame edge:

    speed = clamp((d - r) / (0.5 - r) * amplifier, 0, 1)
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from touchless_map.core.types import ControlMode, Hand, Landmark, PanVector, ZoomVector

logger = logging.getLogger(__name__)


@dataclass
class DeadZone:
    """Closed circle in normalized frame coordinates."""
    center: Tuple[float, float] = (0.5, 0.5)
    radius: float = 0.1

    def __post_init__(self):
        self.center = (float(self.center[0]), float(self.center[1]))
        self.radius = float(self.radius)
        if not 0.0 <= self.radius < 0.5:
            raise ValueError(f"Dead zone radius must be in [0, 0.5), got {self.radius}")

    @classmethod
    def from_dict(cls, d: dict) -> "DeadZone":
        center = d.get("center", (0.5, 0.5))
        return cls(center=(center[0], center[1]), radius=d.get("radius", 0.1))

    def offset(self, point: Landmark) -> np.ndarray:
        return np.array([point.x - self.center[0], point.y - self.center[1]], dtype=np.float64)

    def contains(self, point: Landmark) -> bool:
        return float(np.linalg.norm(self.offset(point))) <= self.radius


class VectorCalculator:
    """Turns the primary hand's index tip into pan/zoom vectors."""

    def __init__(self, dead_zone: Optional[DeadZone] = None,
                 pan_speed_amplifier: float = 1.4):
        self.dead_zone = dead_zone or DeadZone()
        if pan_speed_amplifier < 0:
            raise ValueError(f"pan_speed_amplifier must be >= 0, got {pan_speed_amplifier}")
        self.pan_speed_amplifier = float(pan_speed_amplifier)

    def _speed(self, dist: float) -> float:
        r = self.dead_zone.radius
        ramp = (dist - r) / (0.5 - r) * self.pan_speed_amplifier
        return float(np.clip(ramp, 0.0, 1.0))

    def pan_vector(self, hand: Optional[Hand]) -> PanVector:
        tip = hand.index_tip if hand is not None and hand.is_complete else None
        if tip is None:
            return PanVector.idle()

        offset = self.dead_zone.offset(tip)
        dist = float(np.linalg.norm(offset))
        if dist <= self.dead_zone.radius or not math.isfinite(dist):
            return PanVector.idle(distance=dist if math.isfinite(dist) else 0.0)

        direction = offset / dist
        return PanVector(
            x=float(direction[0]),
            y=float(-direction[1]),
            speed=self._speed(dist),
            in_dead_zone=False,
            distance=dist,
        )

    def zoom_vector(self, hand: Optional[Hand], direction: ControlMode) -> ZoomVector:
        """Zoom speed from fingertip displacement; the mode supplies the sign."""
        if not direction.is_zoom:
            raise ValueError(f"Zoom direction must be ZOOM_IN or ZOOM_OUT, got {direction}")

        tip = hand.index_tip if hand is not None and hand.is_complete else None
        if tip is None:
            return ZoomVector(direction=direction, speed=0.0, in_dead_zone=True)

        dist = float(np.linalg.norm(self.dead_zone.offset(tip)))
        if dist <= self.dead_zone.radius or not math.isfinite(dist):
            return ZoomVector(direction=direction, speed=0.0, in_dead_zone=True,
                              distance=dist if math.isfinite(dist) else 0.0)

        return ZoomVector(direction=direction, speed=self._speed(dist),
                          in_dead_zone=False, distance=dist)

    def compute(self, mode: ControlMode, hand: Optional[Hand]):
        """(pan, zoom) for the committed mode; the unused one is None."""
        if mode == ControlMode.PANNING:
            return self.pan_vector(hand), None
        if mode.is_zoom:
            return None, self.zoom_vector(hand, mode)
        return None, None
