"""
Shared fixtures: synthetic hands and fake camera / detector.
"""

import math
import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gesture_tree.capture.camera import Frame
from gesture_tree.detection.hand_detector import HandLandmarks, Landmark, LandmarkIndex

TIP_ANGLES = {
    LandmarkIndex.INDEX_TIP: -0.3,
    LandmarkIndex.MIDDLE_TIP: -0.1,
    LandmarkIndex.RING_TIP: 0.1,
    LandmarkIndex.PINKY_TIP: 0.3,
}


def create_mock_hand(palm=0.2, pinch=0.3, spread=0.3, anchor_x=0.5, wrist_y=0.7) -> HandLandmarks:
    """
    Build a hand with exact feature distances.

    Args:
        palm: wrist <-> landmark 9 distance
        pinch: thumb tip <-> index tip distance
        spread: distance of every fingertip from the wrist
        anchor_x: x of wrist and landmark 9
    """
    wrist = Landmark(anchor_x, wrist_y, 0.0)
    anchor = Landmark(anchor_x, wrist_y - palm, 0.0)
    filler = Landmark(anchor_x, wrist_y - palm / 2, 0.0)

    points = [filler] * 21
    points[LandmarkIndex.WRIST] = wrist
    points[LandmarkIndex.MIDDLE_MCP] = anchor
    for idx, angle in TIP_ANGLES.items():
        points[idx] = Landmark(
            anchor_x + spread * math.sin(angle),
            wrist_y - spread * math.cos(angle),
            0.0,
        )
    index_tip = points[LandmarkIndex.INDEX_TIP]
    points[LandmarkIndex.THUMB_TIP] = Landmark(index_tip.x - pinch, index_tip.y, 0.0)

    return HandLandmarks(landmarks=tuple(points), handedness="Right", confidence=0.9)


def pinching_hand(**kwargs):
    """palm=0.2, pinch=0.1 -> 0.1 < 0.13"""
    return create_mock_hand(palm=0.2, pinch=0.1, spread=0.3, **kwargs)


def open_hand(**kwargs):
    """palm=0.2, spread=0.4 -> 0.4 > 0.36"""
    return create_mock_hand(palm=0.2, pinch=0.3, spread=0.4, **kwargs)


def neutral_hand(**kwargs):
    return create_mock_hand(palm=0.2, pinch=0.3, spread=0.3, **kwargs)


class FakeCamera:
    """Camera stand-in producing a new frame on every read()."""

    def __init__(self, start_ok=True, supports_callbacks=False):
        self.start_ok = start_ok
        self.supports_frame_callbacks = supports_callbacks
        self.start_calls = 0
        self.stop_calls = 0
        self.running = False
        self.ready = True
        self.pending_callback = None
        self._frame_number = 0

    def start(self):
        self.start_calls += 1
        self.running = self.start_ok
        return self.start_ok

    def stop(self):
        self.stop_calls += 1
        self.running = False
        self.pending_callback = None

    def next_frame(self) -> Frame:
        self._frame_number += 1
        return Frame(
            image=np.zeros((4, 4, 3), dtype=np.uint8),
            timestamp_ms=1000 + self._frame_number * 33,
            frame_number=self._frame_number,
        )

    def read(self):
        if not self.running or not self.ready:
            return None
        return self.next_frame()

    def request_frame_callback(self, callback):
        if not self.supports_frame_callbacks or not self.running:
            return False
        self.pending_callback = callback
        return True

    def cancel_frame_callback(self):
        self.pending_callback = None

    def deliver(self):
        """Simulate a decoded frame arriving."""
        callback, self.pending_callback = self.pending_callback, None
        if callback is not None:
            callback(self.next_frame())
        return callback is not None


class FakeDetector:
    """Detector stand-in returning scripted results.

    Each scripted item is a HandLandmarks, None (no hand) or an Exception
    instance to raise. Once the script runs out, ``default`` is returned.
    """

    def __init__(self, script=None, start_ok=True, default=None):
        self.script = list(script or [])
        self.start_ok = start_ok
        self.default = default
        self.start_calls = 0
        self.stop_calls = 0
        self.timestamps = []
        self.on_start = None

    def start(self):
        self.start_calls += 1
        if self.on_start is not None:
            self.on_start()
        return self.start_ok

    def stop(self):
        self.stop_calls += 1

    def detect(self, image, timestamp_ms):
        self.timestamps.append(timestamp_ms)
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fake_camera():
    camera = FakeCamera()
    camera.start()
    return camera


@pytest.fixture
def fake_detector():
    return FakeDetector()
