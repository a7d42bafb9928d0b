"""Gesture recognition module."""
from .gesture_classifier import GestureFeatures, classify
from .hysteresis import HysteresisConfig, HysteresisSmoother, SmoothedGesture

__all__ = [
    "GestureFeatures",
    "classify",
    "HysteresisConfig",
    "HysteresisSmoother",
    "SmoothedGesture",
]
