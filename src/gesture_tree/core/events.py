"""
Lightweight event bus for publishing gesture state to collaborators.

Each session owns its own bus, so two sessions never share listeners.

Usage:
    bus = EventBus()
    bus.subscribe(Events.MODE_TRIGGERED, my_handler)
    bus.emit(Events.MODE_TRIGGERED, mode=AppMode.TREE)
"""

import logging
import threading
from collections import defaultdict
from typing import Callable

logger = logging.getLogger(__name__)


class EventBus:
    """Thread-safe publish/subscribe; listeners run in subscription order."""

    def __init__(self):
        self._listeners = defaultdict(list)  # event_name -> [callback]
        self._lock = threading.Lock()
        self._enabled = True

    def subscribe(self, event_name: str, callback: Callable):
        """Register a listener. It receives the **kwargs passed to emit()."""
        with self._lock:
            self._listeners[event_name].append(callback)
        logger.debug("Subscribed to '%s': %s",
                     event_name, getattr(callback, "__name__", repr(callback)))

    def emit(self, event_name: str, **kwargs):
        """Emit an event to all registered listeners.

        Listener exceptions are logged and never propagate to the emitter.
        """
        if not self._enabled:
            return

        with self._lock:
            listeners = list(self._listeners.get(event_name, []))

        for callback in listeners:
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error("Event handler error [%s -> %s]: %s",
                             event_name, getattr(callback, "__name__", repr(callback)), e)

    def disable(self):
        """Drop all further emissions (used on teardown)."""
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled


class Events:
    """Event names published by the gesture core."""

    # Pipeline output
    GESTURE_STATE_CHANGED = "gesture_state_changed"
    MODE_TRIGGERED = "mode_triggered"

    # Mode machine (any writer, including the manual toggle)
    MODE_CHANGED = "mode_changed"

    # Lifecycle
    PIPELINE_ERROR = "pipeline_error"
    SESSION_STARTED = "session_started"
    SESSION_STOPPED = "session_stopped"
