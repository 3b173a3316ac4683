"""
Exponential moving-average smoothing of hand landmarks.

One EMASmoother per (hand slot, landmark index), held in a fixed arena
allocated when tracking starts. The filter is causal and recursive:

    output_t = alpha * input_t + (1 - alpha) * output_{t-1}

Smaller alpha = heavier smoothing and more lag.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from touchless_map.core.types import Hand, Landmark, NUM_LANDMARKS

logger = logging.getLogger(__name__)


@dataclass
class SmoothingConfig:
    """Smoothing configuration."""
    landmark_alpha: float = 0.5
    pinch_alpha: float = 0.3
    max_hands: int = 2

    def __post_init__(self):
        self.landmark_alpha = _check_alpha(self.landmark_alpha)
        self.pinch_alpha = _check_alpha(self.pinch_alpha)
        if int(self.max_hands) < 1:
            raise ValueError(f"max_hands must be >= 1, got {self.max_hands}")

    @classmethod
    def from_dict(cls, d: dict, max_hands: int = 2) -> "SmoothingConfig":
        """Create config from dictionary."""
        return cls(
            landmark_alpha=float(d.get("landmark_alpha", 0.5)),
            pinch_alpha=float(d.get("pinch_alpha", 0.3)),
            max_hands=int(max_hands),
        )


def _check_alpha(alpha: float) -> float:
    alpha = float(alpha)
    if not 0.0 < alpha <= 1.0:
        raise ValueError(f"Smoothing alpha must be in (0, 1], got {alpha}")
    return alpha


class EMASmoother:
    """EMA filter state for one landmark slot.

    Holds the last emitted landmark and, independently, the last emitted
    scalar so the same class serves non-landmark signals such as pinch
    distance. The first value after construction or reset() passes
    through unchanged and seeds the state.
    """

    __slots__ = ("alpha", "_last_landmark", "_last_value")

    def __init__(self, alpha: float = 0.5):
        self.alpha = _check_alpha(alpha)
        self._last_landmark: Optional[Landmark] = None
        self._last_value: Optional[float] = None

    def smooth(self, value: Optional[float]) -> Optional[float]:
        """Smooth a scalar signal; None passes through without touching state."""
        if value is None:
            return None
        if self._last_value is None:
            self._last_value = value
            return value
        smoothed = self.alpha * value + (1.0 - self.alpha) * self._last_value
        self._last_value = smoothed
        return smoothed

    def smooth_landmark(self, landmark: Optional[Landmark]) -> Optional[Landmark]:
        """Smooth one landmark.

        z is filtered only when both the new and the previous landmark
        carry a depth; otherwise the raw z is emitted (and remembered) so a
        missing depth never bleeds into the filtered channel.
        """
        if landmark is None:
            return None

        previous = self._last_landmark
        if previous is None:
            self._last_landmark = landmark
            return landmark

        a = self.alpha
        if landmark.z is not None and previous.z is not None:
            z = a * landmark.z + (1.0 - a) * previous.z
        else:
            z = landmark.z

        smoothed = Landmark(
            x=a * landmark.x + (1.0 - a) * previous.x,
            y=a * landmark.y + (1.0 - a) * previous.y,
            z=z,
            visibility=landmark.visibility,
        )
        self._last_landmark = smoothed
        return smoothed

    def reset(self) -> None:
        """Clear history; the next input is emitted unsmoothed."""
        self._last_landmark = None
        self._last_value = None

    @property
    def is_seeded(self) -> bool:
        return self._last_landmark is not None or self._last_value is not None


class HandSmootherBank:
    """Fixed max_hands x 21 arena of landmark smoothers.

    Example:
        >>> bank = HandSmootherBank(max_hands=2, alpha=0.5)
        >>> smoothed = bank.smooth_hand(hand)
        >>> bank.release_missing({0})   # slot 1 went away, start it cold
    """

    def __init__(self, max_hands: int = 2, alpha: float = 0.5):
        if max_hands < 1:
            raise ValueError(f"max_hands must be >= 1, got {max_hands}")
        self._max_hands = int(max_hands)
        self._alpha = _check_alpha(alpha)
        self._slots: List[List[EMASmoother]] = [
            [EMASmoother(self._alpha) for _ in range(NUM_LANDMARKS)]
            for _ in range(self._max_hands)
        ]

    def smooth_hand(self, hand: Hand) -> Hand:
        """Return a new Hand with every landmark run through its slot's filter.

        Hands beyond the arena's capacity pass through raw.
        """
        if not 0 <= hand.slot < self._max_hands:
            logger.debug("Hand slot %d outside smoother arena, passing through", hand.slot)
            return hand

        smoothers = self._slots[hand.slot]
        landmarks = [
            smoothers[i].smooth_landmark(lm) or lm
            for i, lm in enumerate(hand.landmarks[:NUM_LANDMARKS])
        ]
        return Hand(landmarks=landmarks, slot=hand.slot, categories=list(hand.categories))

    def reset_slot(self, slot: int) -> None:
        if 0 <= slot < self._max_hands:
            for smoother in self._slots[slot]:
                smoother.reset()

    def release_missing(self, present_slots: Iterable[int]) -> List[int]:
        """Reset every seeded slot that had no hand this frame.

        Returns the slots that were reset.
        """
        present = set(present_slots)
        released = []
        for slot in range(self._max_hands):
            if slot not in present and self.is_slot_seeded(slot):
                self.reset_slot(slot)
                released.append(slot)
        if released:
            logger.debug("Smoother slots released: %s", released)
        return released

    def is_slot_seeded(self, slot: int) -> bool:
        return any(s.is_seeded for s in self._slots[slot])

    def reset(self) -> None:
        for slot in range(self._max_hands):
            self.reset_slot(slot)

    @property
    def max_hands(self) -> int:
        return self._max_hands

    @property
    def alpha(self) -> float:
        return self._alpha
