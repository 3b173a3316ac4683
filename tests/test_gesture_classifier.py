"""
Tests for Gesture Recognition Module
=====================================
"""

import pytest

from touchless_map.core.types import Hand, Landmark, LandmarkIndex as L
from touchless_map.recognition.gesture_classifier import (
    GestureClassifier,
    GestureFlags,
    GestureThresholds,
    is_close_pinch,
    is_open_palm,
    is_pointing_up,
    is_spread,
    pinch_distance,
)

from conftest import make_hand, pointing_landmarks


class TestPointingUp:

    def test_pointing_hand(self, pointing_hand):
        assert is_pointing_up(pointing_hand)

    def test_other_shapes_rejected(self, pinch_hand, spread_hand, fist_hand, open_palm_hand):
        assert not is_pointing_up(pinch_hand)
        assert not is_pointing_up(spread_hand)  # thumb not tucked
        assert not is_pointing_up(fist_hand)
        assert not is_pointing_up(open_palm_hand)

    def test_scale_invariant(self):
        """Thresholds scale with the hand: a half-size hand still points."""
        small = [Landmark(0.5 + (lm.x - 0.5) * 0.5, 0.5 + (lm.y - 0.5) * 0.5, 0.0)
                 for lm in pointing_landmarks()]
        assert is_pointing_up(make_hand(small))

    def test_thumb_curl_threshold_configurable(self, pointing_hand):
        strict = GestureThresholds(thumb_curl_ratio=0.1)  # 0.02 < thumb gap of 0.05
        assert not is_pointing_up(pointing_hand, strict)

    def test_missing_hand(self):
        assert not is_pointing_up(None)

    def test_incomplete_hand(self, pointing_hand):
        partial = Hand(landmarks=pointing_hand.landmarks[:20])
        assert not is_pointing_up(partial)


class TestClosePinch:

    def test_coincident_tips_with_curled_index(self, pinch_hand):
        assert is_close_pinch(pinch_hand)

    def test_fist_rejected_by_reach_ratio(self, fist_hand):
        """Thumb touches the curled index in a fist too, but the tip sits on the palm."""
        assert not is_close_pinch(fist_hand)

    def test_extended_index_rejected(self, pointing_hand, open_palm_hand):
        assert not is_close_pinch(pointing_hand)
        assert not is_close_pinch(open_palm_hand)

    def test_smoothed_distance_overrides_raw(self, pinch_hand):
        # 0.75 * 0.2 = 0.15 is the cut-off
        assert not is_close_pinch(pinch_hand, pinch_distance=0.2)
        assert is_close_pinch(pinch_hand, pinch_distance=0.1)

    def test_pinch_distance_helper(self, pinch_hand, pointing_hand):
        assert pinch_distance(pinch_hand) == pytest.approx(0.0)
        assert pinch_distance(pointing_hand) > 0.15
        assert pinch_distance(None) is None


class TestSpread:

    def test_wide_thumb_with_folded_fingers(self, spread_hand):
        assert is_spread(spread_hand)

    def test_narrow_angle_rejected(self, pointing_hand):
        assert not is_spread(pointing_hand)

    def test_extended_fingers_rejected(self, open_palm_hand):
        assert not is_spread(open_palm_hand)

    def test_angle_threshold_configurable(self, spread_hand):
        assert not is_spread(spread_hand, GestureThresholds(spread_angle_deg=85.0))


class TestOpenPalm:

    def test_open_palm(self, open_palm_hand):
        assert is_open_palm(open_palm_hand)

    def test_folded_fingers(self, pointing_hand, fist_hand):
        assert not is_open_palm(pointing_hand)
        assert not is_open_palm(fist_hand)

    def test_missing_hand(self):
        assert not is_open_palm(None)


class TestGestureClassifier:
    """Test suite for the bundled classifier."""

    @pytest.fixture
    def classifier(self):
        return GestureClassifier()

    def test_flags_for_each_shape(self, classifier, pointing_hand, pinch_hand,
                                  spread_hand, fist_hand, open_palm_hand):
        assert classifier.classify(pointing_hand) == GestureFlags(pointing_up=True)
        assert classifier.classify(pinch_hand) == GestureFlags(close_pinch=True)
        assert classifier.classify(spread_hand) == GestureFlags(spread=True)
        assert classifier.classify(fist_hand) == GestureFlags()
        assert classifier.classify(open_palm_hand) == GestureFlags(open_palm=True)

    def test_degenerate_hand_never_matches(self, classifier):
        collapsed = Hand(landmarks=[Landmark(0.5, 0.5, 0.0)] * 21)
        assert not classifier.classify(collapsed).any

    def test_missing_hand(self, classifier):
        assert classifier.classify(None) == GestureFlags()

    def test_fingers_closed_check_optional(self, pointing_hand):
        loose = list(pointing_hand.landmarks)
        # Middle tip curled but far from the thumb base
        loose[L.MIDDLE_TIP] = Landmark(0.62, 0.66, 0.0)
        hand = Hand(landmarks=loose)

        assert not GestureClassifier().is_pointing_up(hand)
        relaxed = GestureClassifier(GestureThresholds(require_fingers_closed=False))
        assert relaxed.is_pointing_up(hand)

    def test_thresholds_from_dict(self):
        t = GestureThresholds.from_dict({"spread_angle_deg": 45, "require_fingers_closed": False})
        assert t.spread_angle_deg == 45.0
        assert t.require_fingers_closed is False
        assert t.close_pinch_ratio == 0.75

    def test_invalid_thresholds(self):
        with pytest.raises(ValueError):
            GestureThresholds(close_pinch_ratio=-0.1)
        with pytest.raises(ValueError):
            GestureThresholds(spread_angle_deg=200)
