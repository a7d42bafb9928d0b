"""Hand detection module using MediaPipe."""
from .hand_detector import Delegate, HandDetector, HandDetectorConfig, HandLandmarks, Landmark, LandmarkIndex

__all__ = ["Delegate", "HandDetector", "HandDetectorConfig", "HandLandmarks", "Landmark", "LandmarkIndex"]
