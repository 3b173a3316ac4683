"""Viewport control: vectors, momentum, actuator boundary."""
from .actuator import LoggingActuator, MapActuator, ViewportConfig, ViewportDriver
from .fireworks import FireworksTrigger
from .momentum import FlickConfig, FlickIntegrator
from .vectors import DeadZone, VectorCalculator

__all__ = [
    "LoggingActuator",
    "MapActuator",
    "ViewportConfig",
    "ViewportDriver",
    "FireworksTrigger",
    "FlickConfig",
    "FlickIntegrator",
    "DeadZone",
    "VectorCalculator",
]
