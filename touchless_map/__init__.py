"""
Touchless Map Control
=====================

Turns per-frame 21-point hand landmarks into debounced control modes and
pan/zoom commands for a 2D map viewport.

Modules:
    - core: Shared types, event bus, per-frame pipeline
    - detection: Hand validation and landmark smoothing
    - recognition: Geometry, gesture predicates, control-mode state machine
    - control: Pan/zoom vectors, flick momentum, map actuator, fireworks
    - capture: Live camera + MediaPipe gesture recognizer (optional)
    - utils: Configuration, logging, performance monitoring
"""

__version__ = "1.0.0"
__author__ = "HCI Team"
