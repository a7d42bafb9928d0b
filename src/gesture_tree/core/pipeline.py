"""
Core pipeline pass for the gesture recognition system.

One pass: read frame -> infer landmarks -> classify -> smooth -> publish.
Passes are serialized by a single lock, which also guards the debounce
counters and the published GestureState.

Architecture:
    Camera -> HandDetector -> classify() -> HysteresisSmoother
    -> GestureState publication + ModeStateMachine
"""

import time
import logging
import threading
from typing import Optional

from gesture_tree.capture.camera import Frame
from gesture_tree.control.mode_machine import ModeStateMachine
from gesture_tree.core.events import EventBus, Events
from gesture_tree.core.types import GestureState, PassResult, HAND_LOST_UPDATE
from gesture_tree.recognition.gesture_classifier import classify
from gesture_tree.recognition.hysteresis import HysteresisSmoother
from gesture_tree.utils.logger import log_timing

logger = logging.getLogger(__name__)


class GesturePipeline:
    """Owns the per-session recognition state and runs single passes.

    The pipeline is the only writer of the published GestureState. It only
    does work while the shared ``alive`` flag is set.
    """

    def __init__(
        self,
        camera,
        detector,
        mode_machine: ModeStateMachine,
        event_bus: EventBus,
        alive: threading.Event,
        smoother: Optional[HysteresisSmoother] = None,
        failure_warn_every: int = 30,
    ):
        self._camera = camera
        self._detector = detector
        self._mode_machine = mode_machine
        self._bus = event_bus
        self._alive = alive
        self._smoother = smoother or HysteresisSmoother()
        self._failure_warn_every = max(1, failure_warn_every)

        self._pass_lock = threading.Lock()
        self._state = GestureState()
        self._last_timestamp_ms: Optional[int] = None

        # Stats
        self._pass_count = 0
        self._consecutive_failures = 0
        self._total_failures = 0
        self._last_latency_ms = 0.0

    def run_pass(self, frame: Optional[Frame] = None) -> PassResult:
        """Execute one full pipeline pass.

        Args:
            frame: Frame delivered by a frame callback. When omitted the
                latest frame is read from the camera.

        Returns:
            PassResult describing what was (or was not) published
        """
        if not self._alive.is_set():
            return PassResult(skip_reason="inactive")

        with self._pass_lock:
            if not self._alive.is_set():
                return PassResult(skip_reason="inactive")

            if frame is None:
                frame = self._camera.read()
            if frame is None:
                return PassResult(skip_reason="not_ready")
            if self._last_timestamp_ms is not None and frame.timestamp_ms <= self._last_timestamp_ms:
                return PassResult(skip_reason="stale_frame", frame_number=frame.frame_number)
            self._last_timestamp_ms = frame.timestamp_ms

            start = time.perf_counter()
            try:
                hand = self._infer(frame)
            except Exception as e:
                self._record_failure(e)
                return PassResult(skip_reason="inference_error", frame_number=frame.frame_number,
                                  timestamp_ms=frame.timestamp_ms)
            self._consecutive_failures = 0

            # Deactivated while inference was in flight: drop the result
            if not self._alive.is_set():
                return PassResult(skip_reason="discarded", frame_number=frame.frame_number,
                                  timestamp_ms=frame.timestamp_ms)

            result = PassResult(processed=True, frame_number=frame.frame_number,
                                timestamp_ms=frame.timestamp_ms)

            if hand is None:
                self._smoother.reset()
                result.update = dict(HAND_LOST_UPDATE)
            else:
                features = classify(hand)
                smoothed = self._smoother.update(features)
                result.hand_detected = True
                result.update = {
                    "hand_detected": True,
                    "is_pinching": smoothed.stable_pinch,
                    "is_open": smoothed.stable_open,
                    "hand_position": {"x": features.hand_x, "y": features.hand_y},
                    "rotation_offset": features.rotation_offset,
                }
                if smoothed.rising:
                    result.triggered_mode = self._mode_machine.apply(smoothed.decision)

            self._state = self._state.merge(result.update)
            self._pass_count += 1
            self._last_latency_ms = (time.perf_counter() - start) * 1000
            result.latency_ms = self._last_latency_ms

            self._bus.emit(Events.GESTURE_STATE_CHANGED, update=result.update, state=self._state)
            if result.triggered_mode is not None:
                self._bus.emit(Events.MODE_TRIGGERED, mode=result.triggered_mode)

            return result

    @log_timing
    def _infer(self, frame: Frame):
        return self._detector.detect(frame.rgb, frame.timestamp_ms)

    def _record_failure(self, error: Exception) -> None:
        """Per-frame inference errors are recovered locally; the pump keeps going."""
        self._consecutive_failures += 1
        self._total_failures += 1
        logger.debug("Inference pass failed: %s", error)
        if self._consecutive_failures % self._failure_warn_every == 0:
            logger.warning("Inference failed on %d consecutive frames (last error: %s)",
                           self._consecutive_failures, error)

    @property
    def state(self) -> GestureState:
        """Most recently published gesture state."""
        return self._state

    @property
    def smoother(self) -> HysteresisSmoother:
        return self._smoother

    @property
    def alive(self) -> bool:
        return self._alive.is_set()

    @property
    def pass_count(self) -> int:
        return self._pass_count

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def total_failures(self) -> int:
        return self._total_failures

    @property
    def last_latency_ms(self) -> float:
        return self._last_latency_ms
