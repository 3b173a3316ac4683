"""
Per-frame hand intake: validation, slot assignment and primary-hand choice.

Hands arrive in the vision model's order (highest confidence first). Each
one keeps its position as its smoother slot, so slot 0 is always the
primary hand. Malformed hands are dropped here and never reach the
classifier; a bad second hand does not cost the frame its first.
"""

import logging
from typing import List, Optional

import numpy as np

from touchless_map.core.types import FrameInput, Hand, LandmarkIndex

logger = logging.getLogger(__name__)


class HandTracker:
    """Turns a FrameInput into validated Hand objects."""

    def __init__(self, max_hands: int = 2, min_spread: float = 0.02):
        self._max_hands = max_hands
        self._min_spread = min_spread
        self._hands: List[Hand] = []
        self._rejected = 0

    def update(self, frame: FrameInput) -> List[Hand]:
        """Validate the frame's hands.

        Returns:
            List of valid Hand objects, primary first
        """
        hands = []
        raw_hands = frame.hands
        if not isinstance(raw_hands, (list, tuple)):
            if raw_hands is not None:
                self._rejected += 1
                logger.debug("Frame hands container is %s, treated as no hands",
                             type(raw_hands).__name__)
            raw_hands = []
        for i, raw in enumerate(raw_hands):
            hand = Hand.from_raw(raw, slot=i, categories=frame.categories_for(i))
            if hand is None or not self._is_valid_hand(hand):
                self._rejected += 1
                logger.debug("Rejected malformed hand at index %d", i)
                continue
            hands.append(hand)

        if len(hands) > self._max_hands:
            logger.debug("%d hands detected, only %d are smoothed",
                         len(hands), self._max_hands)

        self._hands = hands
        return hands

    def _is_valid_hand(self, hand: Hand) -> bool:
        """Reject collapsed skeletons that would break size-relative thresholds.

        Checks:
        - Sufficient overall spread (not all points collapsed)
        - Wrist-to-middle-MCP length is non-degenerate
        """
        xy = np.array([[lm.x, lm.y] for lm in hand.landmarks], dtype=np.float64)
        total_spread = float(np.ptp(xy, axis=0).sum())
        if total_spread < self._min_spread:
            return False

        wrist = xy[LandmarkIndex.WRIST]
        middle_mcp = xy[LandmarkIndex.MIDDLE_MCP]
        if float(np.linalg.norm(wrist - middle_mcp)) < 1e-4:
            return False

        return True

    @property
    def primary(self) -> Optional[Hand]:
        """The primary (first valid, highest-confidence) hand."""
        return self._hands[0] if self._hands else None

    @property
    def hands(self) -> List[Hand]:
        return list(self._hands)

    @property
    def hand_count(self) -> int:
        return len(self._hands)

    @property
    def present_slots(self) -> set:
        return {hand.slot for hand in self._hands}

    @property
    def rejected_count(self) -> int:
        return self._rejected

    def reset(self):
        """Clear all tracking state."""
        self._hands = []
        self._rejected = 0
