"""
Geometry primitives over hand landmarks.

Both primitives tolerate missing points: distance() reports "infinitely
far" and angle() reports 0, so threshold comparisons downstream simply fail
to match instead of raising.
"""

import math
from typing import Optional

import numpy as np

from touchless_map.core.types import Hand, Landmark, LandmarkIndex


def _vec(p: Landmark) -> np.ndarray:
    return np.array([p.x, p.y, p.z if p.z is not None else 0.0], dtype=np.float64)


def distance(p1: Optional[Landmark], p2: Optional[Landmark]) -> float:
    """Euclidean distance between two 3D points (missing z counts as 0)."""
    if p1 is None or p2 is None:
        return math.inf
    return float(np.linalg.norm(_vec(p1) - _vec(p2)))


def angle(origin: Optional[Landmark], p1: Optional[Landmark],
          p2: Optional[Landmark]) -> float:
    """Angle in degrees between vectors origin->p1 and origin->p2."""
    if origin is None or p1 is None or p2 is None:
        return 0.0
    a = _vec(p1) - _vec(origin)
    b = _vec(p2) - _vec(origin)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    cos_angle = np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0)
    return float(np.degrees(np.arccos(cos_angle)))


def half_hand_size(hand: Optional[Hand]) -> float:
    """Wrist to middle-finger MCP distance, the unit for relative thresholds.

    Returns 0.0 when the hand or either landmark is unavailable.
    """
    if hand is None:
        return 0.0
    size = distance(hand.get(LandmarkIndex.WRIST), hand.get(LandmarkIndex.MIDDLE_MCP))
    return size if math.isfinite(size) else 0.0
