"""Shared types and the event bus. The pipeline lives in core.pipeline."""
from .events import EventBus, Events
from .types import ControlMode, FrameInput, Hand, Landmark, LandmarkIndex, PipelineResult

__all__ = [
    "EventBus",
    "Events",
    "ControlMode",
    "FrameInput",
    "Hand",
    "Landmark",
    "LandmarkIndex",
    "PipelineResult",
]
