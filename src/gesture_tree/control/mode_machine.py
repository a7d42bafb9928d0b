"""
Application mode state machine.

TREE <-> EXPLODE, written by the pipeline on stable gestures and by the
host's manual toggle. Both writers are equally authoritative; the last
write wins.
"""

import logging
import threading
from typing import Optional

from gesture_tree.core.events import EventBus, Events
from gesture_tree.core.types import AppMode, StableGesture, GESTURE_MODE_MAP

logger = logging.getLogger(__name__)


class ModeStateMachine:
    """Thread-safe holder of the current AppMode."""

    def __init__(self, initial: AppMode = AppMode.TREE, event_bus: Optional[EventBus] = None):
        self._mode = initial
        self._lock = threading.Lock()
        self._bus = event_bus
        self._transitions = 0

    @property
    def mode(self) -> AppMode:
        with self._lock:
            return self._mode

    @property
    def transitions(self) -> int:
        """Number of writes that actually changed the mode."""
        return self._transitions

    def apply(self, decision: Optional[StableGesture]) -> Optional[AppMode]:
        """Apply a stable gesture decision.

        Returns:
            The mode the decision requests, or None when there is no
            stable gesture.
        """
        if decision is None:
            return None
        target = GESTURE_MODE_MAP[decision]
        self.set_mode(target, source="gesture")
        return target

    def toggle(self) -> AppMode:
        """Manual tap/click path: flip to the other mode."""
        with self._lock:
            target = self._mode.opposite
        self.set_mode(target, source="manual")
        return target

    def set_mode(self, mode: AppMode, source: str = "manual") -> None:
        with self._lock:
            previous, self._mode = self._mode, mode
            if previous is mode:
                return
            self._transitions += 1

        logger.info("Mode %s -> %s (%s)", previous.name, mode.name, source)
        if self._bus is not None:
            self._bus.emit(Events.MODE_CHANGED, mode=mode, previous=previous, source=source)
