"""
Geometric Gesture Classifier
============================

Pure, stateless predicates over one smoothed 21-landmark hand.

Every distance threshold is a ratio of the half hand size (wrist to
middle-finger MCP), so a gesture reads the same at arm's length and up
close. Image-space y grows downward: an extended finger has its tip above
(smaller y than) its PIP joint.

    pointing_up  -> index extended, thumb tucked, other fingers folded
    close_pinch  -> thumb tip on a curled index tip
    spread       -> wide thumb/index angle with the other fingers folded
    open_palm    -> all four fingertips above their knuckles
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from touchless_map.core.types import Hand, LandmarkIndex as L
from touchless_map.recognition.geometry import angle, distance, half_hand_size

logger = logging.getLogger(__name__)

# (tip, dip, pip, mcp) per non-thumb finger
_FINGERS = {
    "index": (L.INDEX_TIP, L.INDEX_DIP, L.INDEX_PIP, L.INDEX_MCP),
    "middle": (L.MIDDLE_TIP, L.MIDDLE_DIP, L.MIDDLE_PIP, L.MIDDLE_MCP),
    "ring": (L.RING_TIP, L.RING_DIP, L.RING_PIP, L.RING_MCP),
    "pinky": (L.PINKY_TIP, L.PINKY_DIP, L.PINKY_PIP, L.PINKY_MCP),
}
_FOLDED_FINGERS = ("middle", "ring", "pinky")


@dataclass
class GestureThresholds:
    """Hand-size-relative thresholds shared by all predicates."""
    thumb_curl_ratio: float = 0.5
    curl_tolerance_ratio: float = 0.2
    close_pinch_ratio: float = 0.75
    index_middle_min_ratio: float = 0.58
    fingers_closed_ratio: float = 0.8
    spread_angle_deg: float = 60.0
    require_fingers_closed: bool = True

    def __post_init__(self):
        for name in ("thumb_curl_ratio", "curl_tolerance_ratio", "close_pinch_ratio",
                     "index_middle_min_ratio", "fingers_closed_ratio"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if not 0.0 <= self.spread_angle_deg <= 180.0:
            raise ValueError(f"spread_angle_deg must be in [0, 180], got {self.spread_angle_deg}")

    @classmethod
    def from_dict(cls, d: dict) -> "GestureThresholds":
        """Create thresholds from the `gestures` config section."""
        return cls(
            thumb_curl_ratio=float(d.get("thumb_curl_ratio", 0.5)),
            curl_tolerance_ratio=float(d.get("curl_tolerance_ratio", 0.2)),
            close_pinch_ratio=float(d.get("close_pinch_ratio", 0.75)),
            index_middle_min_ratio=float(d.get("index_middle_min_ratio", 0.58)),
            fingers_closed_ratio=float(d.get("fingers_closed_ratio", 0.8)),
            spread_angle_deg=float(d.get("spread_angle_deg", 60.0)),
            require_fingers_closed=bool(d.get("require_fingers_closed", True)),
        )


_DEFAULT_THRESHOLDS = GestureThresholds()


# =============================================================================
# Finger helpers
# =============================================================================

def _hand_size(hand: Optional[Hand]) -> float:
    """Half hand size, or 0 for hands the predicates must reject."""
    if hand is None or not hand.is_complete:
        return 0.0
    return half_hand_size(hand)


def pinch_distance(hand: Optional[Hand]) -> Optional[float]:
    """Raw thumb-tip to index-tip distance, None when the hand is unusable."""
    if hand is None or not hand.is_complete:
        return None
    d = distance(hand.get(L.THUMB_TIP), hand.get(L.INDEX_TIP))
    return d if math.isfinite(d) else None


def _finger_extended(hand: Hand, finger: str) -> bool:
    tip, _, pip, mcp = (hand.get(i) for i in _FINGERS[finger])
    return tip.y < pip.y < mcp.y


def _finger_curled(hand: Hand, finger: str, tolerance: float = 0.0) -> bool:
    tip, _, pip, _ = (hand.get(i) for i in _FINGERS[finger])
    return tip.y > pip.y - tolerance


def _fingers_curled(hand: Hand, tolerance: float = 0.0) -> bool:
    return all(_finger_curled(hand, f, tolerance) for f in _FOLDED_FINGERS)


def _fingers_closed(hand: Hand, size: float, t: GestureThresholds) -> bool:
    """Middle, ring and pinky tips tucked in toward the thumb base."""
    if not t.require_fingers_closed:
        return True
    limit = t.fingers_closed_ratio * size
    thumb_cmc = hand.get(L.THUMB_CMC)
    return all(distance(hand.get(_FINGERS[f][0]), thumb_cmc) < limit
               for f in _FOLDED_FINGERS)


# =============================================================================
# Predicates
# =============================================================================

def is_pointing_up(hand: Optional[Hand],
                   thresholds: Optional[GestureThresholds] = None) -> bool:
    """Index finger extended upward, thumb and remaining fingers tucked."""
    t = thresholds or _DEFAULT_THRESHOLDS
    size = _hand_size(hand)
    if size <= 0.0:
        return False

    if not _finger_extended(hand, "index"):
        return False

    thumb_gap = distance(hand.get(L.THUMB_TIP), hand.get(L.MIDDLE_PIP))
    if thumb_gap >= t.thumb_curl_ratio * size:
        return False

    if not _fingers_curled(hand, tolerance=t.curl_tolerance_ratio * size):
        return False

    return _fingers_closed(hand, size, t)


def is_close_pinch(hand: Optional[Hand],
                   thresholds: Optional[GestureThresholds] = None,
                   pinch_distance: Optional[float] = None) -> bool:
    """Thumb tip pressed to a curled index tip.

    Args:
        hand: Smoothed hand
        thresholds: Threshold set (defaults when None)
        pinch_distance: Smoothed thumb/index distance; replaces the raw
            distance when given

    The index/middle-MCP ratio rejects a closed fist, where the thumb also
    touches a curled index but the index tip sits on the palm.
    """
    t = thresholds or _DEFAULT_THRESHOLDS
    size = _hand_size(hand)
    if size <= 0.0:
        return False

    gap = pinch_distance
    if gap is None:
        gap = distance(hand.get(L.THUMB_TIP), hand.get(L.INDEX_TIP))
    if gap >= t.close_pinch_ratio * size:
        return False

    tip, dip, pip, _ = (hand.get(i) for i in _FINGERS["index"])
    if not tip.y > dip.y > pip.y:
        return False

    reach = distance(tip, hand.get(L.MIDDLE_MCP)) / size
    if reach < t.index_middle_min_ratio:
        return False

    return _fingers_closed(hand, size, t)


def is_spread(hand: Optional[Hand],
              thresholds: Optional[GestureThresholds] = None) -> bool:
    """Wide thumb/index "V" with middle, ring and pinky folded."""
    t = thresholds or _DEFAULT_THRESHOLDS
    size = _hand_size(hand)
    if size <= 0.0:
        return False

    opening = angle(hand.get(L.THUMB_MCP), hand.get(L.THUMB_TIP), hand.get(L.INDEX_TIP))
    if opening < t.spread_angle_deg:
        return False

    if not _fingers_curled(hand):
        return False

    return _fingers_closed(hand, size, t)


def is_open_palm(hand: Optional[Hand],
                 thresholds: Optional[GestureThresholds] = None) -> bool:
    """All four non-thumb fingertips above their MCP joints."""
    if hand is None or not hand.is_complete:
        return False
    return all(hand.get(tip).y < hand.get(mcp).y
               for tip, _, _, mcp in _FINGERS.values())


# =============================================================================
# Classifier
# =============================================================================

@dataclass(frozen=True)
class GestureFlags:
    """Snapshot of every predicate for one hand on one frame."""
    pointing_up: bool = False
    close_pinch: bool = False
    spread: bool = False
    open_palm: bool = False

    @property
    def any(self) -> bool:
        return self.pointing_up or self.close_pinch or self.spread or self.open_palm


class GestureClassifier:
    """Bundles the predicates under one threshold set.

    Example:
        >>> classifier = GestureClassifier(GestureThresholds(spread_angle_deg=55))
        >>> flags = classifier.classify(hand, pinch_distance=0.04)
        >>> flags.close_pinch
        True
    """

    def __init__(self, thresholds: Optional[GestureThresholds] = None):
        self.thresholds = thresholds or GestureThresholds()

    def classify(self, hand: Optional[Hand],
                 pinch_distance: Optional[float] = None) -> GestureFlags:
        if hand is None or not hand.is_complete:
            return GestureFlags()

        flags = GestureFlags(
            pointing_up=is_pointing_up(hand, self.thresholds),
            close_pinch=is_close_pinch(hand, self.thresholds, pinch_distance),
            spread=is_spread(hand, self.thresholds),
            open_palm=is_open_palm(hand, self.thresholds),
        )
        logger.debug("Gesture flags: %s", flags)
        return flags

    def is_pointing_up(self, hand: Optional[Hand]) -> bool:
        return is_pointing_up(hand, self.thresholds)

    def is_close_pinch(self, hand: Optional[Hand],
                       pinch_distance: Optional[float] = None) -> bool:
        return is_close_pinch(hand, self.thresholds, pinch_distance)

    def is_spread(self, hand: Optional[Hand]) -> bool:
        return is_spread(hand, self.thresholds)

    def is_open_palm(self, hand: Optional[Hand]) -> bool:
        return is_open_palm(hand, self.thresholds)
