"""Configuration, logging and performance monitoring."""
from .config import Config
from .logger import ControlLogger, setup_logging
from .performance_monitor import PerformanceMonitor

__all__ = ["Config", "ControlLogger", "setup_logging", "PerformanceMonitor"]
