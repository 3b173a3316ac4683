"""
Shared domain types for the Touchless Map Control system.

Centralizes enums, landmark containers and per-tick output records used
across modules to eliminate circular imports and ensure type consistency.
"""

import math
import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, List, NamedTuple, Optional, Sequence, Tuple


NUM_LANDMARKS = 21


# =============================================================================
# Landmarks
# =============================================================================

class LandmarkIndex(IntEnum):
    """Hand landmark indices following MediaPipe convention."""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


def _finite(value) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class Landmark(NamedTuple):
    """A single landmark point with normalized coordinates."""
    x: float  # 0.0 to 1.0, normalized by image width
    y: float  # 0.0 to 1.0, normalized by image height (grows downward)
    z: Optional[float] = None  # Relative depth, more negative = closer
    visibility: Optional[float] = None

    @classmethod
    def coerce(cls, obj: Any) -> Optional["Landmark"]:
        """Build a Landmark from whatever the vision collaborator hands over.

        Accepts a Landmark, a mapping with x/y(/z/visibility) keys, an
        object exposing x/y attributes (MediaPipe NormalizedLandmark) or a
        2-4 item sequence. Returns None for anything malformed.
        """
        if obj is None:
            return None
        if isinstance(obj, Landmark):
            raw = (obj.x, obj.y, obj.z, obj.visibility)
        elif isinstance(obj, dict):
            raw = (obj.get("x"), obj.get("y"), obj.get("z"), obj.get("visibility"))
        elif hasattr(obj, "x") and hasattr(obj, "y"):
            raw = (obj.x, obj.y, getattr(obj, "z", None), getattr(obj, "visibility", None))
        elif isinstance(obj, (list, tuple)) and 2 <= len(obj) <= 4:
            raw = tuple(obj) + (None,) * (4 - len(obj))
        else:
            return None

        x, y = _finite(raw[0]), _finite(raw[1])
        if x is None or y is None:
            return None
        z = _finite(raw[2]) if raw[2] is not None else None
        visibility = _finite(raw[3]) if raw[3] is not None else None
        return cls(x=x, y=y, z=z, visibility=visibility)

    def to_pixel(self, width: int, height: int) -> Tuple[float, float]:
        """Convert normalized coordinates to screen-space pixels."""
        return (self.x * width, self.y * height)


@dataclass
class Hand:
    """One detected hand: exactly 21 ordered landmarks plus metadata.

    `slot` is the smoother arena row the hand is filtered through and
    `categories` the ranked gesture labels the vision model attached.
    """
    landmarks: List[Landmark]
    slot: int = 0
    categories: List[str] = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Optional[Sequence[Any]], slot: int = 0,
                 categories: Optional[Sequence[str]] = None) -> Optional["Hand"]:
        """Validate a raw landmark sequence.

        Returns None unless the sequence yields exactly 21 usable
        landmarks; an inconsistent hand is treated as missing data.
        """
        if raw is None:
            return None
        try:
            items = list(raw)
        except TypeError:
            return None
        if len(items) != NUM_LANDMARKS:
            return None

        landmarks = []
        for item in items:
            lm = Landmark.coerce(item)
            if lm is None:
                return None
            landmarks.append(lm)

        labels = [str(c) for c in (categories or []) if c]
        return cls(landmarks=landmarks, slot=slot, categories=labels)

    def get(self, index: LandmarkIndex) -> Optional[Landmark]:
        """Get landmark by index, None when out of range."""
        if 0 <= index < len(self.landmarks):
            return self.landmarks[index]
        return None

    @property
    def is_complete(self) -> bool:
        return len(self.landmarks) == NUM_LANDMARKS

    @property
    def top_category(self) -> Optional[str]:
        """Highest-confidence label from the vision model, if any."""
        return self.categories[0] if self.categories else None

    @property
    def index_tip(self) -> Optional[Landmark]:
        return self.get(LandmarkIndex.INDEX_TIP)


# =============================================================================
# Control Modes and Output Vectors
# =============================================================================

class ControlMode(Enum):
    """Committed viewport control modes."""
    IDLE = "IDLE"
    PANNING = "PANNING"
    ZOOM_IN = "ZOOM_IN"
    ZOOM_OUT = "ZOOM_OUT"
    FIREWORKS = "FIREWORKS"

    @classmethod
    def from_string(cls, name: str) -> "ControlMode":
        """Convert a mode name to ControlMode, raising ValueError if unknown."""
        try:
            return cls(str(name).upper())
        except ValueError:
            raise ValueError(f"Unknown control mode: {name!r}") from None

    @property
    def is_zoom(self) -> bool:
        return self in (ControlMode.ZOOM_IN, ControlMode.ZOOM_OUT)


@dataclass(frozen=True)
class PanVector:
    """Pan direction (unit vector, y inverted) and dead-zone-relative speed."""
    x: float
    y: float
    speed: float
    in_dead_zone: bool
    distance: float = 0.0

    @classmethod
    def idle(cls, distance: float = 0.0) -> "PanVector":
        return cls(x=0.0, y=0.0, speed=0.0, in_dead_zone=True, distance=distance)


@dataclass(frozen=True)
class ZoomVector:
    """Zoom direction from the committed mode plus displacement speed."""
    direction: ControlMode
    speed: float
    in_dead_zone: bool
    distance: float = 0.0


@dataclass
class FlickMomentum:
    """Released pan velocity in screen px/ms, pan-vector sign convention."""
    vx: float
    vy: float
    start_time: float
    updated_at: float

    @property
    def speed(self) -> float:
        return math.hypot(self.vx, self.vy)


# =============================================================================
# Frame Input / Pipeline Output
# =============================================================================

@dataclass
class FrameInput:
    """One frame from the vision collaborator.

    `hands` holds one raw landmark sequence per detected hand, primary
    first; `categories` is the parallel list of ranked labels per hand.
    """
    hands: List[Any] = field(default_factory=list)
    categories: List[List[str]] = field(default_factory=list)
    timestamp_ms: Optional[float] = None

    @classmethod
    def from_recognizer_result(cls, result: Any,
                               timestamp_ms: Optional[float] = None) -> "FrameInput":
        """Adapt a MediaPipe GestureRecognizerResult-shaped object."""
        hands = getattr(result, "hand_landmarks", None)
        if hands is None:
            hands = getattr(result, "landmarks", None) or []

        categories = []
        for ranked in getattr(result, "gestures", None) or []:
            labels = []
            for category in ranked or []:
                name = getattr(category, "category_name", None)
                if name is None and isinstance(category, dict):
                    name = category.get("category_name")
                if name:
                    labels.append(name)
            categories.append(labels)

        return cls(hands=list(hands), categories=categories, timestamp_ms=timestamp_ms)

    @classmethod
    def from_dict(cls, data: Any) -> Optional["FrameInput"]:
        """Build from a replay record: {"hands": [...], "categories": [...]}.

        Returns None for a record whose containers are the wrong shape; the
        caller treats that frame as not ready.
        """
        if not isinstance(data, dict):
            return None
        hands = data.get("hands") or []
        categories = data.get("categories") or []
        if not isinstance(hands, list) or not isinstance(categories, list):
            return None

        timestamp_ms = data.get("timestamp_ms")
        if timestamp_ms is not None:
            if isinstance(timestamp_ms, bool):
                return None
            timestamp_ms = _finite(timestamp_ms)
            if timestamp_ms is None:
                return None

        return cls(hands=list(hands), categories=[_labels(c) for c in categories],
                   timestamp_ms=timestamp_ms)

    def categories_for(self, hand_index: int) -> List[str]:
        """Ranked labels of one hand; a malformed entry reads as no labels."""
        categories = self.categories if isinstance(self.categories, (list, tuple)) else []
        if 0 <= hand_index < len(categories):
            return _labels(categories[hand_index])
        return []


def _labels(entry: Any) -> List[str]:
    """One hand's category entry as a list of labels.

    A bare string is a single label, not a sequence of characters.
    """
    if isinstance(entry, str):
        return [entry] if entry else []
    if not isinstance(entry, (list, tuple)):
        return []
    return [label for label in entry if isinstance(label, str) and label]


class PipelineResult:
    """Result of a single pipeline tick."""

    __slots__ = (
        "frame_id", "timestamp_ms", "frame_ready", "hand_count", "hands",
        "raw_mode", "mode", "mode_changed", "rule", "category",
        "pan_vector", "zoom_vector", "pinch_distance",
        "action", "pan_delta", "zoom_delta",
        "momentum_active", "fireworks_active", "latency_ms",
    )

    def __init__(self, mode: ControlMode = ControlMode.IDLE):
        self.frame_id = 0
        self.timestamp_ms = 0.0
        self.frame_ready = False
        self.hand_count = 0
        self.hands: List[Hand] = []
        self.raw_mode: Optional[ControlMode] = None
        self.mode = mode
        self.mode_changed = False
        self.rule: Optional[str] = None
        self.category: Optional[str] = None
        self.pan_vector: Optional[PanVector] = None
        self.zoom_vector: Optional[ZoomVector] = None
        self.pinch_distance: Optional[float] = None
        self.action: Optional[str] = None
        self.pan_delta: Optional[Tuple[float, float]] = None
        self.zoom_delta: Optional[float] = None
        self.momentum_active = False
        self.fireworks_active = False
        self.latency_ms = 0.0

    def __repr__(self):
        return (f"PipelineResult(frame={self.frame_id}, mode={self.mode.value}, "
                f"hands={self.hand_count}, action={self.action})")


def now_ms() -> float:
    """Monotonic clock in milliseconds, the pipeline's default time base."""
    return time.monotonic() * 1000.0
