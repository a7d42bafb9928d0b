"""
Hand Detection Module - MediaPipe Tasks API
============================================

Wraps the MediaPipe HandLandmarker in VIDEO running mode. Only the most
confident hand is tracked; the execution delegate (GPU or CPU) is fixed
when the landmarker is created.
"""

import numpy as np
import logging
import urllib.request
from dataclasses import dataclass
from typing import Optional, Tuple, NamedTuple
from enum import Enum, IntEnum
from pathlib import Path

import mediapipe as mp
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

logger = logging.getLogger(__name__)

# Model download URL
HAND_LANDMARKER_MODEL_URL = "https://storage.googleapis.com/mediapipe-models/hand_landmarker/hand_landmarker/float16/1/hand_landmarker.task"
DEFAULT_MODEL_PATH = Path.home() / ".cache" / "gesture_tree" / "hand_landmarker.task"


class LandmarkIndex(IntEnum):
    """Hand landmark indices following MediaPipe convention."""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


NUM_LANDMARKS = 21


class Delegate(Enum):
    """Execution back-end for the landmark model."""
    GPU = "gpu"
    CPU = "cpu"

    def to_mediapipe(self):
        if self is Delegate.GPU:
            return python.BaseOptions.Delegate.GPU
        return python.BaseOptions.Delegate.CPU


class Landmark(NamedTuple):
    """A single landmark point with normalized coordinates."""
    x: float  # 0.0 to 1.0, normalized by image width
    y: float  # 0.0 to 1.0, normalized by image height
    z: float = 0.0  # Depth relative to wrist


@dataclass
class HandDetectorConfig:
    """Configuration for hand detector."""
    model_path: str = ""
    model_url: str = HAND_LANDMARKER_MODEL_URL
    delegate: str = "auto"  # auto, gpu or cpu
    num_hands: int = 1
    min_detection_confidence: float = 0.3
    min_presence_confidence: float = 0.3
    min_tracking_confidence: float = 0.3

    @classmethod
    def from_dict(cls, d: dict) -> "HandDetectorConfig":
        """Create config from dictionary."""
        return cls(
            model_path=d.get("model_path", ""),
            model_url=d.get("model_url", HAND_LANDMARKER_MODEL_URL),
            delegate=d.get("delegate", "auto"),
            num_hands=d.get("num_hands", 1),
            min_detection_confidence=d.get("min_detection_confidence", 0.3),
            min_presence_confidence=d.get("min_presence_confidence", 0.3),
            min_tracking_confidence=d.get("min_tracking_confidence", 0.3),
        )


@dataclass(frozen=True)
class HandLandmarks:
    """The 21 keypoints of one detected hand."""
    landmarks: Tuple[Landmark, ...]
    handedness: str = "Right"
    confidence: float = 1.0

    def __post_init__(self):
        if len(self.landmarks) != NUM_LANDMARKS:
            raise ValueError("Expected %d landmarks, got %d" % (NUM_LANDMARKS, len(self.landmarks)))

    def get(self, index: LandmarkIndex) -> Landmark:
        """Get landmark by index."""
        return self.landmarks[index]

    def distance(self, idx1: LandmarkIndex, idx2: LandmarkIndex) -> float:
        """Planar (x, y) Euclidean distance between two landmarks."""
        lm1 = self.get(idx1)
        lm2 = self.get(idx2)
        return float(np.hypot(lm1.x - lm2.x, lm1.y - lm2.y))


def download_model(url: str, save_path: Path) -> bool:
    """Download the hand landmarker model if not present."""
    if save_path.exists():
        logger.debug("Model already exists at %s", save_path)
        return True

    try:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading hand landmarker model to %s...", save_path)
        urllib.request.urlretrieve(url, save_path)
        logger.info("Model download complete")
        return True
    except Exception as e:
        logger.error("Failed to download model: %s", e)
        return False


class HandDetector:
    """
    Hand landmark inferencer using MediaPipe Tasks (HandLandmarker).

    Example:
        >>> detector = HandDetector(HandDetectorConfig(), Delegate.CPU)
        >>> detector.start()
        >>> hand = detector.detect(rgb_image, timestamp_ms)  # RGB format!
        >>> detector.stop()
    """

    def __init__(self, config: Optional[HandDetectorConfig] = None, delegate: Delegate = Delegate.CPU):
        self.config = config or HandDetectorConfig()
        self.delegate = delegate
        self._landmarker: Optional[vision.HandLandmarker] = None
        self._last_timestamp_ms: Optional[int] = None

    def start(self) -> bool:
        """Load the model and create the landmarker.

        Returns:
            False if the model could not be fetched or loaded, or the
            delegate is unsupported on this host.
        """
        if self._landmarker is not None:
            return True

        model_path = Path(self.config.model_path) if self.config.model_path else DEFAULT_MODEL_PATH
        if not model_path.exists():
            if not download_model(self.config.model_url, model_path):
                logger.error("Could not fetch hand landmarker model")
                return False

        try:
            base_options = python.BaseOptions(
                model_asset_path=str(model_path),
                delegate=self.delegate.to_mediapipe(),
            )
            options = vision.HandLandmarkerOptions(
                base_options=base_options,
                running_mode=vision.RunningMode.VIDEO,
                num_hands=self.config.num_hands,
                min_hand_detection_confidence=self.config.min_detection_confidence,
                min_hand_presence_confidence=self.config.min_presence_confidence,
                min_tracking_confidence=self.config.min_tracking_confidence,
            )
            self._landmarker = vision.HandLandmarker.create_from_options(options)
        except Exception as e:
            logger.error("Failed to initialize HandLandmarker (%s delegate): %s", self.delegate.name, e)
            self._landmarker = None
            return False

        self._last_timestamp_ms = None
        logger.info("HandLandmarker initialized: model=%s delegate=%s hands=%d conf=%.2f/%.2f/%.2f",
                    model_path, self.delegate.name, self.config.num_hands,
                    self.config.min_detection_confidence,
                    self.config.min_presence_confidence,
                    self.config.min_tracking_confidence)
        return True

    def stop(self) -> None:
        """Release the landmarker. Safe to call repeatedly."""
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
            logger.info("HandLandmarker stopped")

    def detect(self, image: np.ndarray, timestamp_ms: int) -> Optional[HandLandmarks]:
        """
        Detect the most prominent hand in an RGB image.

        Args:
            image: RGB image as numpy array (H, W, 3)
            timestamp_ms: Monotonic timestamp, strictly greater than the
                previous call's

        Returns:
            HandLandmarks, or None when no hand is found
        """
        if self._landmarker is None:
            raise RuntimeError("HandLandmarker not initialized. Call start() first.")
        if self._last_timestamp_ms is not None and timestamp_ms <= self._last_timestamp_ms:
            raise ValueError("Timestamp %d is not after previous %d" % (timestamp_ms, self._last_timestamp_ms))
        self._last_timestamp_ms = timestamp_ms

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=image)
        result = self._landmarker.detect_for_video(mp_image, timestamp_ms)

        if not result.hand_landmarks:
            return None

        # Pick the most confident hand if the model returned more than one
        best, best_score, best_side = 0, -1.0, "Right"
        for i in range(len(result.hand_landmarks)):
            if result.handedness and len(result.handedness) > i:
                category = result.handedness[i][0]
                if category.score > best_score:
                    best, best_score, best_side = i, category.score, category.category_name

        return HandLandmarks(
            landmarks=tuple(Landmark(x=lm.x, y=lm.y, z=lm.z) for lm in result.hand_landmarks[best]),
            handedness=best_side,
            confidence=max(best_score, 0.0),
        )

    @property
    def is_ready(self) -> bool:
        return self._landmarker is not None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
