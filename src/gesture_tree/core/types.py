"""
Shared domain types for the gesture core.

Centralizes enums and data classes used across modules to eliminate
circular imports and ensure type consistency.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


# =============================================================================
# Application Mode
# =============================================================================

class AppMode(Enum):
    """Two-state application mode driven by stable gestures."""
    TREE = "tree"
    EXPLODE = "explode"

    @property
    def opposite(self) -> "AppMode":
        return AppMode.EXPLODE if self is AppMode.TREE else AppMode.TREE


class StableGesture(Enum):
    """Debounced gesture decision produced by the hysteresis smoother."""
    PINCH = "pinch"
    OPEN = "open"


# Stable gesture -> mode it requests
GESTURE_MODE_MAP = {
    StableGesture.PINCH: AppMode.TREE,
    StableGesture.OPEN: AppMode.EXPLODE,
}


# =============================================================================
# Published Gesture State
# =============================================================================

@dataclass(frozen=True)
class HandPosition:
    """Mirrored, normalized hand position in [0, 1]^2."""
    x: float = 0.5
    y: float = 0.5


@dataclass(frozen=True)
class GestureState:
    """Externally visible gesture state.

    Replaced wholesale on every processed frame. Consumers only read it.
    """
    hand_detected: bool = False
    is_pinching: bool = False
    is_open: bool = False
    hand_position: HandPosition = field(default_factory=HandPosition)
    rotation_offset: float = 0.0

    def merge(self, partial: dict) -> "GestureState":
        """Return a new state with the keys of a partial update applied."""
        updates = dict(partial)
        position = updates.get("hand_position")
        if isinstance(position, (tuple, list)):
            updates["hand_position"] = HandPosition(*position)
        elif isinstance(position, dict):
            updates["hand_position"] = HandPosition(**position)
        return replace(self, **updates)

    def to_dict(self) -> dict:
        return {
            "hand_detected": self.hand_detected,
            "is_pinching": self.is_pinching,
            "is_open": self.is_open,
            "hand_position": {"x": self.hand_position.x, "y": self.hand_position.y},
            "rotation_offset": self.rotation_offset,
        }


# Partial update published when no hand is found in a frame
HAND_LOST_UPDATE = {"hand_detected": False}


@dataclass
class PassResult:
    """Outcome of a single pipeline pass (for the host and for tests)."""
    processed: bool = False
    hand_detected: bool = False
    update: Optional[dict] = None
    triggered_mode: Optional[AppMode] = None
    frame_number: int = 0
    timestamp_ms: int = 0
    latency_ms: float = 0.0
    skip_reason: str = ""
