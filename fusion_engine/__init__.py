"""Движок слияния местоположения и инерциальных данных."""
from .api import TrackingSession
from .core.fusion_coordinator import FusionCoordinator, TrackingMode, TrackingState
from .processing.environment_classifier import EnvironmentClassifier
from .processing.inertial_estimator import InertialEstimator
from .processing.path_tracker import PathTracker
from .processing.position_filter import PositionFilter

__version__ = "0.1.0"

__all__ = [
    "TrackingSession",
    "FusionCoordinator",
    "TrackingMode",
    "TrackingState",
    "EnvironmentClassifier",
    "InertialEstimator",
    "PathTracker",
    "PositionFilter",
]
