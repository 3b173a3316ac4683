"""
Control-mode state machine.

Raw per-frame decisions come from an explicit ordered rule list (first match
wins), and a fixed-length debounce window gates what is actually committed:

    category label -> close pinch -> spread -> pointing up -> [open palm] -> IDLE
                                      |
                            ModeDebouncer (deque, maxlen=N)
                                      |
                               committed mode

Losing every hand is the one signal trusted instantly: it commits IDLE
without waiting for the window.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from touchless_map.core.types import ControlMode, Hand
from touchless_map.recognition.gesture_classifier import GestureClassifier, GestureFlags

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_MODES = {
    "Closed_Fist": "IDLE",
    "Open_Palm": "FIREWORKS",
    "Pointing_Up": "PANNING",
}


@dataclass
class ModeConfig:
    """Mode dispatch and debounce configuration."""
    debounce_frames: int = 3
    geometric_fireworks: bool = False
    category_modes: Dict[str, ControlMode] = field(
        default_factory=lambda: {k: ControlMode(v) for k, v in DEFAULT_CATEGORY_MODES.items()}
    )

    def __post_init__(self):
        if int(self.debounce_frames) < 1:
            raise ValueError(f"debounce_frames must be >= 1, got {self.debounce_frames}")

    @classmethod
    def from_dict(cls, d: dict) -> "ModeConfig":
        """Create config from the `modes` section; unknown mode names raise ValueError."""
        raw_categories = d.get("category_modes", DEFAULT_CATEGORY_MODES) or {}
        return cls(
            debounce_frames=int(d.get("debounce_frames", 3)),
            geometric_fireworks=bool(d.get("geometric_fireworks", False)),
            category_modes={str(k): ControlMode.from_string(v)
                            for k, v in raw_categories.items()},
        )


@dataclass(frozen=True)
class FrameSignals:
    """What the rules see for the primary hand on one frame."""
    flags: GestureFlags
    category: Optional[str] = None


@dataclass(frozen=True)
class ModeRule:
    """One entry in the ordered dispatch list."""
    name: str
    mode: ControlMode
    matches: Callable[[FrameSignals], bool]


def build_default_rules(config: Optional[ModeConfig] = None) -> List[ModeRule]:
    """Build the ordered rule list.

    External category labels come first so an explicit "Closed_Fist" beats
    any geometric reading of the same hand.
    """
    config = config or ModeConfig()
    rules = []

    for label, mode in config.category_modes.items():
        rules.append(ModeRule(
            name=f"category:{label}",
            mode=mode,
            matches=lambda s, label=label: s.category == label,
        ))

    rules.append(ModeRule("close_pinch", ControlMode.ZOOM_OUT, lambda s: s.flags.close_pinch))
    rules.append(ModeRule("spread", ControlMode.ZOOM_IN, lambda s: s.flags.spread))
    rules.append(ModeRule("pointing_up", ControlMode.PANNING, lambda s: s.flags.pointing_up))

    if config.geometric_fireworks:
        rules.append(ModeRule("open_palm", ControlMode.FIREWORKS, lambda s: s.flags.open_palm))

    return rules


def evaluate_rules(rules: List[ModeRule], signals: FrameSignals):
    """Return (mode, rule name) of the first matching rule, else (IDLE, None)."""
    for rule in rules:
        if rule.matches(signals):
            return rule.mode, rule.name
    return ControlMode.IDLE, None


class ModeDebouncer:
    """Commit a raw mode only after it fills the whole window.

    A switch needs `window` consecutive identical raw decisions that also
    differ from the committed mode; anything else keeps the current mode.
    """

    def __init__(self, window: int = 3):
        window = int(window)
        if window < 1:
            raise ValueError(f"Debounce window must be >= 1, got {window}")
        self._history = deque(maxlen=window)

    def push(self, raw: ControlMode, current: ControlMode) -> ControlMode:
        self._history.append(raw)
        if len(self._history) < self._history.maxlen:
            return current
        if raw != current and all(m == raw for m in self._history):
            return raw
        return current

    def clear(self):
        self._history.clear()

    @property
    def window(self) -> int:
        return self._history.maxlen

    @property
    def history(self) -> List[ControlMode]:
        return list(self._history)


@dataclass(frozen=True)
class ModeDecision:
    """Outcome of one state-machine step."""
    raw: Optional[ControlMode]
    committed: ControlMode
    changed: bool
    previous: ControlMode
    rule: Optional[str] = None
    flags: Optional[GestureFlags] = None


class ControlModeStateMachine:
    """Raw decisions in, debounced control mode out.

    Example:
        >>> sm = ControlModeStateMachine(build_default_rules(), debounce_frames=3)
        >>> decision = sm.update(hand)
        >>> decision.committed
        <ControlMode.IDLE: 'IDLE'>
    """

    def __init__(self, rules: Optional[List[ModeRule]] = None,
                 debounce_frames: int = 3,
                 classifier: Optional[GestureClassifier] = None):
        self._rules = list(rules) if rules is not None else build_default_rules()
        self._debouncer = ModeDebouncer(debounce_frames)
        self._classifier = classifier or GestureClassifier()
        self._mode = ControlMode.IDLE

    @classmethod
    def from_config(cls, config: ModeConfig,
                    classifier: Optional[GestureClassifier] = None) -> "ControlModeStateMachine":
        return cls(build_default_rules(config), config.debounce_frames, classifier)

    def update(self, hand: Optional[Hand],
               pinch_distance: Optional[float] = None) -> ModeDecision:
        """Classify the primary hand and push the raw decision through the window."""
        if hand is None:
            return self.hands_lost()

        flags = self._classifier.classify(hand, pinch_distance)
        raw, rule = self.decide(flags, hand.top_category)

        previous = self._mode
        self._mode = self._debouncer.push(raw, previous)
        changed = self._mode != previous
        if changed:
            logger.debug("Mode committed %s -> %s after %d frames of '%s'",
                         previous.value, self._mode.value, self._debouncer.window, rule)

        return ModeDecision(raw=raw, committed=self._mode, changed=changed,
                            previous=previous, rule=rule, flags=flags)

    def decide(self, flags: GestureFlags, category: Optional[str] = None):
        """Raw (undebounced) decision for one frame."""
        return evaluate_rules(self._rules, FrameSignals(flags=flags, category=category))

    def hands_lost(self) -> ModeDecision:
        """Commit IDLE immediately and forget the debounce history."""
        previous = self._mode
        self._mode = ControlMode.IDLE
        self._debouncer.clear()
        return ModeDecision(raw=None, committed=ControlMode.IDLE,
                            changed=previous != ControlMode.IDLE,
                            previous=previous, rule="no_hands")

    def reset(self):
        self._mode = ControlMode.IDLE
        self._debouncer.clear()

    @property
    def mode(self) -> ControlMode:
        return self._mode

    @property
    def rules(self) -> List[ModeRule]:
        return list(self._rules)

    @property
    def history(self) -> List[ControlMode]:
        return self._debouncer.history
