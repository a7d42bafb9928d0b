"""
Frame pump scheduling strategies.

Two interchangeable ways to drive pipeline passes, chosen once at startup:

    FrameCallbackStrategy - one pass per decoded camera frame, re-armed
                            after each pass completes
    FixedCadenceStrategy  - a timer thread at the display refresh rate,
                            for cameras without per-frame notifications
"""

import time
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from gesture_tree.capture.camera import Frame
from gesture_tree.core.pipeline import GesturePipeline

logger = logging.getLogger(__name__)


@dataclass
class SchedulerConfig:
    """Frame pump configuration."""
    strategy: str = "auto"  # auto, frame_callback, fixed_cadence
    refresh_hz: float = 60.0
    failure_warn_every: int = 30

    @classmethod
    def from_dict(cls, config: dict) -> "SchedulerConfig":
        """Create config from dictionary."""
        return cls(
            strategy=config.get("strategy", "auto"),
            refresh_hz=float(config.get("refresh_hz", 60.0)),
            failure_warn_every=int(config.get("failure_warn_every", 30)),
        )


class SchedulingStrategy(ABC):
    """Drives pipeline passes until stopped."""

    name = "base"

    def __init__(self, pipeline: GesturePipeline):
        self._pipeline = pipeline
        self._active = False

    @abstractmethod
    def start(self) -> None:
        """Begin driving passes."""

    @abstractmethod
    def stop(self) -> None:
        """Cancel any pending pass. Safe to call repeatedly."""

    @property
    def is_active(self) -> bool:
        return self._active


class FrameCallbackStrategy(SchedulingStrategy):
    """One pass per new decoded frame, invoked from the capture thread."""

    name = "frame_callback"

    def __init__(self, pipeline: GesturePipeline, camera):
        super().__init__(pipeline)
        self._camera = camera

    def start(self) -> None:
        if self._active:
            return
        self._active = True
        self._arm()
        logger.info("Frame pump started (per-decoded-frame)")

    def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        self._camera.cancel_frame_callback()
        logger.info("Frame pump stopped (per-decoded-frame)")

    def _arm(self) -> None:
        if self._active and self._pipeline.alive:
            if not self._camera.request_frame_callback(self._on_frame):
                logger.debug("Camera refused frame callback; pump idle")

    def _on_frame(self, frame: Frame) -> None:
        if not self._active or not self._pipeline.alive:
            return
        try:
            self._pipeline.run_pass(frame)
        finally:
            self._arm()


class FixedCadenceStrategy(SchedulingStrategy):
    """Timer-driven passes; may run more or fewer times than camera frames."""

    name = "fixed_cadence"

    def __init__(self, pipeline: GesturePipeline, refresh_hz: float = 60.0):
        super().__init__(pipeline)
        if refresh_hz <= 0:
            raise ValueError("refresh_hz must be positive, got %r" % refresh_hz)
        self._interval = 1.0 / refresh_hz
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._active:
            return
        self._active = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="frame-pump", daemon=True)
        self._thread.start()
        logger.info("Frame pump started (fixed cadence %.0f Hz)", 1.0 / self._interval)

    def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)
        self._thread = None
        logger.info("Frame pump stopped (fixed cadence)")

    def _loop(self) -> None:
        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            if self._pipeline.alive:
                self._pipeline.run_pass()

            next_tick += self._interval
            delay = next_tick - time.monotonic()
            if delay < 0:
                # Fell behind, don't try to catch up with a burst of passes
                next_tick = time.monotonic()
                delay = 0
            self._stop_event.wait(delay)


def select_strategy(camera, pipeline: GesturePipeline,
                    config: Optional[SchedulerConfig] = None) -> SchedulingStrategy:
    """Pick the scheduling strategy once, based on camera capability."""
    config = config or SchedulerConfig()
    choice = config.strategy

    if choice == "auto":
        choice = "frame_callback" if camera.supports_frame_callbacks else "fixed_cadence"
    elif choice == "frame_callback" and not camera.supports_frame_callbacks:
        logger.warning("Camera cannot notify per frame, falling back to fixed cadence")
        choice = "fixed_cadence"
    elif choice not in ("frame_callback", "fixed_cadence"):
        logger.warning("Unknown scheduler strategy %r, using fixed cadence", choice)
        choice = "fixed_cadence"

    if choice == "frame_callback":
        return FrameCallbackStrategy(pipeline, camera)
    return FixedCadenceStrategy(pipeline, config.refresh_hz)
