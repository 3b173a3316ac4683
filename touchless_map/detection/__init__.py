"""Hand validation and landmark smoothing."""
from .smoothing import EMASmoother, HandSmootherBank, SmoothingConfig
from .tracking import HandTracker

__all__ = ["EMASmoother", "HandSmootherBank", "SmoothingConfig", "HandTracker"]
