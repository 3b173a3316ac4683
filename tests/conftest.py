"""
Shared fixtures: synthetic right hands and singleton resets.

All factory hands share one palm (wrist (0.5, 0.8), middle MCP (0.5, 0.6),
so the half hand size is 0.2) and differ only in finger joints.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from touchless_map.core.events import EventBus
from touchless_map.core.types import FrameInput, Hand, Landmark, LandmarkIndex as L
from touchless_map.utils.config import Config


_PALM = {
    L.WRIST: (0.50, 0.80),
    L.THUMB_CMC: (0.42, 0.75),
    L.THUMB_MCP: (0.37, 0.69),
    L.INDEX_MCP: (0.43, 0.62),
    L.MIDDLE_MCP: (0.50, 0.60),
    L.RING_MCP: (0.56, 0.61),
    L.PINKY_MCP: (0.61, 0.64),
}

# Middle, ring and pinky folded onto the palm
_OTHERS_CURLED = {
    L.MIDDLE_PIP: (0.50, 0.53), L.MIDDLE_DIP: (0.50, 0.58), L.MIDDLE_TIP: (0.50, 0.64),
    L.RING_PIP: (0.56, 0.54), L.RING_DIP: (0.56, 0.59), L.RING_TIP: (0.53, 0.67),
    L.PINKY_PIP: (0.61, 0.58), L.PINKY_DIP: (0.60, 0.62), L.PINKY_TIP: (0.55, 0.69),
}

_OTHERS_EXTENDED = {
    L.MIDDLE_PIP: (0.50, 0.45), L.MIDDLE_DIP: (0.50, 0.38), L.MIDDLE_TIP: (0.50, 0.32),
    L.RING_PIP: (0.57, 0.47), L.RING_DIP: (0.58, 0.41), L.RING_TIP: (0.59, 0.36),
    L.PINKY_PIP: (0.63, 0.53), L.PINKY_DIP: (0.65, 0.48), L.PINKY_TIP: (0.66, 0.44),
}

_INDEX_UP = {L.INDEX_PIP: (0.43, 0.50), L.INDEX_DIP: (0.43, 0.44), L.INDEX_TIP: (0.43, 0.38)}
_INDEX_HOOKED = {L.INDEX_PIP: (0.41, 0.52), L.INDEX_DIP: (0.38, 0.55), L.INDEX_TIP: (0.36, 0.59)}
_INDEX_FOLDED = {L.INDEX_PIP: (0.43, 0.54), L.INDEX_DIP: (0.44, 0.59), L.INDEX_TIP: (0.45, 0.64)}

_THUMB_TUCKED = {L.THUMB_IP: (0.40, 0.62), L.THUMB_TIP: (0.47, 0.57)}
_THUMB_OUT = {L.THUMB_IP: (0.30, 0.66), L.THUMB_TIP: (0.24, 0.64)}
_THUMB_ON_INDEX = {L.THUMB_IP: (0.35, 0.64), L.THUMB_TIP: (0.36, 0.59)}


def build_landmarks(*parts, dx=0.0, dy=0.0):
    """Assemble 21 landmarks from joint maps, optionally translated."""
    joints = dict(_PALM)
    for part in parts:
        joints.update(part)
    assert len(joints) == 21
    return [Landmark(x=joints[i][0] + dx, y=joints[i][1] + dy, z=0.0) for i in L]


def pointing_landmarks(dx=0.0, dy=0.0):
    return build_landmarks(_INDEX_UP, _THUMB_TUCKED, _OTHERS_CURLED, dx=dx, dy=dy)


def pinch_landmarks(dx=0.0, dy=0.0):
    return build_landmarks(_INDEX_HOOKED, _THUMB_ON_INDEX, _OTHERS_CURLED, dx=dx, dy=dy)


def spread_landmarks(dx=0.0, dy=0.0):
    return build_landmarks(_INDEX_UP, _THUMB_OUT, _OTHERS_CURLED, dx=dx, dy=dy)


def fist_landmarks(dx=0.0, dy=0.0):
    return build_landmarks(_INDEX_FOLDED, _THUMB_TUCKED, _OTHERS_CURLED, dx=dx, dy=dy)


def open_palm_landmarks(dx=0.0, dy=0.0):
    return build_landmarks(_INDEX_UP, _THUMB_OUT, _OTHERS_EXTENDED, dx=dx, dy=dy)


def pointing_at(x, y):
    """Pointing landmarks translated so the index tip sits at (x, y)."""
    tip = _INDEX_UP[L.INDEX_TIP]
    return pointing_landmarks(dx=x - tip[0], dy=y - tip[1])


def tip_hand(x, y):
    """Minimal complete hand whose index tip is exactly (x, y)."""
    landmarks = [Landmark(0.5, 0.8, 0.0)] * 21
    landmarks[L.INDEX_TIP] = Landmark(x, y, 0.0)
    return Hand(landmarks=landmarks)


def make_hand(landmarks, categories=None, slot=0):
    return Hand.from_raw(landmarks, slot=slot, categories=categories)


def frame_of(*hands, categories=None, timestamp_ms=None):
    """FrameInput from landmark lists."""
    return FrameInput(hands=list(hands), categories=categories or [],
                      timestamp_ms=timestamp_ms)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Fresh event bus and config for every test."""
    Config.reset()
    EventBus().reset()
    yield
    EventBus().reset()
    Config.reset()


@pytest.fixture
def pointing_hand():
    return make_hand(pointing_landmarks())


@pytest.fixture
def pinch_hand():
    return make_hand(pinch_landmarks())


@pytest.fixture
def spread_hand():
    return make_hand(spread_landmarks())


@pytest.fixture
def fist_hand():
    return make_hand(fist_landmarks())


@pytest.fixture
def open_palm_hand():
    return make_hand(open_palm_landmarks())


@pytest.fixture
def event_log():
    """Records every event emitted on the bus as (name, kwargs)."""
    from touchless_map.core.events import Events

    bus = EventBus()
    log = []
    names = [v for k, v in vars(Events).items() if k.isupper()]
    for name in names:
        bus.subscribe(name, lambda _n=name, **kw: log.append((_n, kw)))
    return log
