"""
Gesture session lifecycle.

Brackets the whole pipeline's existence:

    activate():   probe platform -> pick delegate -> load model
                  -> open camera -> start frame pump
    deactivate(): stop pump -> stop camera -> release model

A single liveness flag is checked after every blocking step, so
deactivating mid-activation aborts the remaining steps and releases
whatever was already acquired. Teardown is idempotent.
"""

import logging
import threading
from typing import Callable, Optional

from gesture_tree.capture.camera import Camera, CameraConfig
from gesture_tree.control.mode_machine import ModeStateMachine
from gesture_tree.core.events import EventBus, Events
from gesture_tree.core.pipeline import GesturePipeline
from gesture_tree.core.scheduler import SchedulerConfig, SchedulingStrategy, select_strategy
from gesture_tree.core.types import AppMode, GestureState
from gesture_tree.detection.hand_detector import Delegate, HandDetector, HandDetectorConfig
from gesture_tree.recognition.hysteresis import HysteresisConfig, HysteresisSmoother
from gesture_tree.utils.config import Config
from gesture_tree.utils.platform import select_delegate

logger = logging.getLogger(__name__)


class SessionPhase:
    IDLE = "idle"
    ACTIVATING = "activating"
    RUNNING = "running"
    FAILED = "failed"
    STOPPED = "stopped"


class GestureSession:
    """Owns camera, landmark model, pipeline and frame pump for one mount.

    Example:
        >>> session = GestureSession(Config.load(),
        ...                          on_state_change=print,
        ...                          on_mode_trigger=print)
        >>> session.activate()
        >>> ...
        >>> session.deactivate()
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        on_state_change: Optional[Callable[[dict], None]] = None,
        on_mode_trigger: Optional[Callable[[AppMode], None]] = None,
        on_error: Optional[Callable[[str, str], None]] = None,
        camera=None,
        detector=None,
        mode_machine: Optional[ModeStateMachine] = None,
    ):
        self._config = config or Config()
        self._bus = EventBus()
        self._mode_machine = mode_machine or ModeStateMachine(event_bus=self._bus)

        self._camera = camera
        self._detector = detector
        self._pipeline: Optional[GesturePipeline] = None
        self._strategy: Optional[SchedulingStrategy] = None
        self._delegate: Optional[Delegate] = None

        self._alive = threading.Event()
        self._lifecycle_lock = threading.Lock()
        self._release_lock = threading.Lock()
        self._phase = SessionPhase.IDLE
        self._error: Optional[str] = None

        if on_state_change is not None:
            self._bus.subscribe(Events.GESTURE_STATE_CHANGED,
                                lambda update, state: on_state_change(update))
        if on_mode_trigger is not None:
            self._bus.subscribe(Events.MODE_TRIGGERED, lambda mode: on_mode_trigger(mode))
        if on_error is not None:
            self._bus.subscribe(Events.PIPELINE_ERROR, lambda stage, message: on_error(stage, message))

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def activate(self) -> bool:
        """Run the activation steps in order.

        Returns:
            True if the frame pump is running. False if a step failed or
            the session was deactivated before activation finished.
        """
        with self._lifecycle_lock:
            if self._phase != SessionPhase.IDLE:
                logger.warning("Session cannot activate from phase '%s'", self._phase)
                return False
            self._phase = SessionPhase.ACTIVATING
            self._alive.set()

        # 1. Platform probe and delegate selection
        detector_config = HandDetectorConfig.from_dict(self._config.mediapipe)
        self._delegate = select_delegate(detector_config.delegate)
        if not self._still_alive():
            return False

        # 2. Model load
        if self._detector is None:
            self._detector = HandDetector(detector_config, self._delegate)
        if not self._detector.start():
            if not self._still_alive():
                return False
            return self._fail("model", "Hand landmark model failed to load")
        if not self._still_alive():
            return False

        # 3. Camera
        if self._camera is None:
            self._camera = Camera(CameraConfig.from_dict(self._config.camera))
        if not self._camera.start():
            if not self._still_alive():
                return False
            return self._fail("camera", "Camera unavailable or access denied")
        if not self._still_alive():
            return False

        # 4. Frame pump
        scheduler_config = SchedulerConfig.from_dict(self._config.scheduler)
        self._pipeline = GesturePipeline(
            camera=self._camera,
            detector=self._detector,
            mode_machine=self._mode_machine,
            event_bus=self._bus,
            alive=self._alive,
            smoother=HysteresisSmoother(HysteresisConfig.from_dict(self._config.recognition)),
            failure_warn_every=scheduler_config.failure_warn_every,
        )
        strategy = select_strategy(self._camera, self._pipeline, scheduler_config)

        with self._lifecycle_lock:
            if not self._alive.is_set():
                aborted = True
            else:
                aborted = False
                self._strategy = strategy
                self._strategy.start()
                self._phase = SessionPhase.RUNNING

        if aborted:
            logger.info("Session deactivated during activation")
            self._release()
            return False

        logger.info("Gesture session running (delegate=%s, pump=%s)",
                    self._delegate.name, strategy.name)
        self._bus.emit(Events.SESSION_STARTED, delegate=self._delegate, strategy=strategy.name)
        return True

    def activate_async(self) -> threading.Thread:
        """Run activate() on a background thread and return it."""
        thread = threading.Thread(target=self.activate, name="gesture-activate", daemon=True)
        thread.start()
        return thread

    def _still_alive(self) -> bool:
        """Liveness check between activation steps; releases on abort."""
        if self._alive.is_set():
            return True
        logger.info("Session deactivated during activation")
        self._release()
        return False

    def _fail(self, stage: str, message: str) -> bool:
        with self._lifecycle_lock:
            if self._phase == SessionPhase.ACTIVATING:
                self._phase = SessionPhase.FAILED
            self._error = message
        logger.error("Gesture pipeline unavailable: %s", message)
        self._alive.clear()
        self._release()
        self._bus.emit(Events.PIPELINE_ERROR, stage=stage, message=message)
        return False

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def deactivate(self) -> None:
        """Stop the pump, the camera and the model. Idempotent."""
        self._alive.clear()
        with self._lifecycle_lock:
            if self._phase == SessionPhase.STOPPED:
                return
            was_running = self._phase == SessionPhase.RUNNING
            self._phase = SessionPhase.STOPPED

        self._release()
        if was_running:
            self._bus.emit(Events.SESSION_STOPPED)
        self._bus.disable()
        logger.info("Gesture session stopped")

    def _release(self) -> None:
        with self._release_lock:
            if self._strategy is not None:
                self._strategy.stop()
            if self._camera is not None:
                self._camera.stop()
            if self._detector is not None:
                self._detector.stop()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def toggle_mode(self) -> AppMode:
        """Manual tap/click toggle of the application mode."""
        return self._mode_machine.toggle()

    @property
    def gesture_state(self) -> GestureState:
        if self._pipeline is None:
            return GestureState()
        return self._pipeline.state

    @property
    def mode(self) -> AppMode:
        return self._mode_machine.mode

    @property
    def mode_machine(self) -> ModeStateMachine:
        return self._mode_machine

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def pipeline(self) -> Optional[GesturePipeline]:
        return self._pipeline

    @property
    def delegate(self) -> Optional[Delegate]:
        return self._delegate

    @property
    def strategy_name(self) -> Optional[str]:
        return self._strategy.name if self._strategy is not None else None

    @property
    def phase(self) -> str:
        return self._phase

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_running(self) -> bool:
        return self._phase == SessionPhase.RUNNING and self._alive.is_set()

    def __enter__(self):
        self.activate()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.deactivate()
        return False
