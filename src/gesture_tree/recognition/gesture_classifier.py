"""
Pinch / Open-Palm Classifier
=============================

Stateless per-frame features computed from hand landmark geometry.
All distances are planar and relative to the palm size, so the result
does not depend on how far the hand is from the camera.
"""

import logging
from dataclasses import dataclass

import numpy as np

from gesture_tree.detection.hand_detector import HandLandmarks, LandmarkIndex

logger = logging.getLogger(__name__)

# Empirically tuned classification boundaries
PINCH_RATIO = 0.65
OPEN_RATIO = 1.8

# Landmark 9 anchors both the palm size and the hand position
PALM_ANCHOR = LandmarkIndex.MIDDLE_MCP

FINGERTIPS = (
    LandmarkIndex.INDEX_TIP,
    LandmarkIndex.MIDDLE_TIP,
    LandmarkIndex.RING_TIP,
    LandmarkIndex.PINKY_TIP,
)


@dataclass(frozen=True)
class GestureFeatures:
    """Instantaneous features of one frame."""
    palm_size: float
    pinch_distance: float
    tip_spread: float
    instant_pinch: bool
    instant_open: bool
    hand_x: float
    hand_y: float
    rotation_offset: float


def classify(hand: HandLandmarks) -> GestureFeatures:
    """Compute pinch / open-palm booleans and the continuous hand signal.

    Example:
        >>> features = classify(hand)
        >>> if features.instant_pinch:
        ...     print("pinching at x=%.2f" % features.hand_x)
    """
    palm_size = hand.distance(LandmarkIndex.WRIST, PALM_ANCHOR)
    pinch_distance = hand.distance(LandmarkIndex.THUMB_TIP, LandmarkIndex.INDEX_TIP)
    tip_spread = float(np.mean([hand.distance(tip, LandmarkIndex.WRIST) for tip in FINGERTIPS]))

    anchor = hand.get(PALM_ANCHOR)
    # Mirror horizontally to match a front-facing camera
    hand_x = 1.0 - anchor.x

    return GestureFeatures(
        palm_size=palm_size,
        pinch_distance=pinch_distance,
        tip_spread=tip_spread,
        instant_pinch=pinch_distance < PINCH_RATIO * palm_size,
        instant_open=tip_spread > OPEN_RATIO * palm_size,
        hand_x=hand_x,
        hand_y=anchor.y,
        rotation_offset=(hand_x - 0.5) * 2,
    )
