"""Gesture recognition and control-mode selection."""
from .control_mode import ControlModeStateMachine, ModeConfig, ModeDebouncer, ModeRule
from .gesture_classifier import GestureClassifier, GestureFlags, GestureThresholds

__all__ = [
    "ControlModeStateMachine",
    "ModeConfig",
    "ModeDebouncer",
    "ModeRule",
    "GestureClassifier",
    "GestureFlags",
    "GestureThresholds",
]
