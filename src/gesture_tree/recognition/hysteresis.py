"""
Hysteresis Smoother
====================

Consecutive-frame debouncing for the pinch and open-palm signals.
A gesture becomes stable only after it has been seen on
``confirm_frames`` consecutive frames; losing the hand resets everything
at once.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from gesture_tree.core.types import StableGesture
from gesture_tree.recognition.gesture_classifier import GestureFeatures

logger = logging.getLogger(__name__)


@dataclass
class HysteresisConfig:
    """Hysteresis smoother configuration."""
    confirm_frames: int = 2  # ~66 ms at 30 fps

    @classmethod
    def from_dict(cls, config: dict) -> "HysteresisConfig":
        """Create config from dictionary."""
        confirm = int(config.get("confirm_frames", 2))
        if confirm < 1:
            logger.warning("confirm_frames=%d is below 1, using 1", confirm)
            confirm = 1
        return cls(confirm_frames=confirm)


@dataclass(frozen=True)
class SmoothedGesture:
    """Debounced view of one frame."""
    stable_pinch: bool
    stable_open: bool
    decision: Optional[StableGesture]
    rising: bool  # Decision appeared or changed on this frame


class HysteresisSmoother:
    """
    Two independent streak counters with a shared decision.

    Example:
        >>> smoother = HysteresisSmoother()
        >>> smoothed = smoother.update(classify(hand))
        >>> if smoothed.rising:
        ...     print("stable:", smoothed.decision)
    """

    def __init__(self, config: Optional[HysteresisConfig] = None):
        self.config = config or HysteresisConfig()
        self.pinch_streak = 0
        self.open_streak = 0
        self._last_decision: Optional[StableGesture] = None

    def update(self, features: GestureFeatures) -> SmoothedGesture:
        """Feed one frame's instantaneous booleans."""
        self.pinch_streak = self.pinch_streak + 1 if features.instant_pinch else 0
        self.open_streak = self.open_streak + 1 if features.instant_open else 0

        stable_pinch = self.pinch_streak >= self.config.confirm_frames
        stable_open = self.open_streak >= self.config.confirm_frames

        # Pinch wins a tie
        if stable_pinch:
            decision = StableGesture.PINCH
        elif stable_open:
            decision = StableGesture.OPEN
        else:
            decision = None

        rising = decision is not None and decision != self._last_decision
        if decision != self._last_decision:
            logger.debug("Stable gesture: %s -> %s (pinch=%d open=%d)",
                         self._last_decision, decision, self.pinch_streak, self.open_streak)
        self._last_decision = decision

        return SmoothedGesture(
            stable_pinch=stable_pinch,
            stable_open=stable_open,
            decision=decision,
            rising=rising,
        )

    def reset(self) -> None:
        """Hard reset on hand loss."""
        self.pinch_streak = 0
        self.open_streak = 0
        self._last_decision = None
