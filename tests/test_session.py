"""
Tests for Session Lifecycle
============================
"""

import threading
import time
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from conftest import FakeCamera, FakeDetector, pinching_hand

from gesture_tree.core.session import GestureSession, SessionPhase
from gesture_tree.core.types import AppMode, GestureState
from gesture_tree.detection.hand_detector import Delegate
from gesture_tree.utils.config import Config


class Callbacks:
    def __init__(self):
        self.updates = []
        self.modes = []
        self.errors = []

    def session(self, **kwargs):
        config = kwargs.pop("config", Config({"scheduler": {"strategy": "frame_callback"}}))
        return GestureSession(
            config,
            on_state_change=self.updates.append,
            on_mode_trigger=self.modes.append,
            on_error=lambda stage, message: self.errors.append(stage),
            **kwargs,
        )


@pytest.fixture
def callbacks():
    return Callbacks()


@pytest.fixture(autouse=True)
def desktop_platform():
    with patch("gesture_tree.core.session.select_delegate", return_value=Delegate.GPU) as probe:
        yield probe


class TestActivation:
    """Activation order and failure handling."""

    def test_activate_runs_pipeline(self, callbacks):
        camera = FakeCamera(supports_callbacks=True)
        detector = FakeDetector(default=pinching_hand())
        session = callbacks.session(camera=camera, detector=detector)

        assert session.activate()
        assert session.is_running
        assert session.strategy_name == "frame_callback"
        assert session.delegate == Delegate.GPU

        camera.deliver()
        camera.deliver()

        assert callbacks.modes == [AppMode.TREE]
        assert callbacks.updates[-1]["is_pinching"] is True
        assert session.gesture_state.is_pinching
        session.deactivate()

    def test_delegate_probe_runs_once(self, callbacks, desktop_platform):
        session = callbacks.session(camera=FakeCamera(supports_callbacks=True), detector=FakeDetector())
        session.activate()
        session.deactivate()

        desktop_platform.assert_called_once_with("auto")

    def test_model_failure(self, callbacks):
        """Model load failure: reported, camera never opened."""
        camera = FakeCamera()
        session = callbacks.session(camera=camera, detector=FakeDetector(start_ok=False))

        assert not session.activate()
        assert callbacks.errors == ["model"]
        assert camera.start_calls == 0
        assert session.phase == SessionPhase.FAILED
        assert session.gesture_state == GestureState()

    def test_camera_failure(self, callbacks):
        """Device failure: reported, inference never begins, model released."""
        detector = FakeDetector()
        session = callbacks.session(camera=FakeCamera(start_ok=False), detector=detector)

        assert not session.activate()
        assert callbacks.errors == ["camera"]
        assert detector.timestamps == []
        assert detector.stop_calls >= 1
        assert session.error

    def test_failure_keeps_mode(self, callbacks):
        session = callbacks.session(camera=FakeCamera(start_ok=False), detector=FakeDetector())
        session.toggle_mode()
        session.activate()

        assert session.mode == AppMode.EXPLODE

    def test_single_activation(self, callbacks):
        session = callbacks.session(camera=FakeCamera(supports_callbacks=True), detector=FakeDetector())

        assert session.activate()
        assert not session.activate()
        session.deactivate()


class TestTeardown:
    """Deactivation at every point of the lifecycle."""

    def test_deactivate_releases_everything(self, callbacks):
        camera = FakeCamera(supports_callbacks=True)
        detector = FakeDetector()
        session = callbacks.session(camera=camera, detector=detector)
        session.activate()

        session.deactivate()

        assert camera.stop_calls >= 1
        assert detector.stop_calls >= 1
        assert camera.pending_callback is None
        assert session.phase == SessionPhase.STOPPED

    def test_deactivate_is_idempotent(self, callbacks):
        session = callbacks.session(camera=FakeCamera(supports_callbacks=True), detector=FakeDetector())
        session.activate()

        session.deactivate()
        session.deactivate()

        assert not session.is_running

    def test_deactivate_before_activate(self, callbacks):
        camera = FakeCamera()
        detector = FakeDetector()
        session = callbacks.session(camera=camera, detector=detector)

        session.deactivate()

        assert not session.activate()
        assert camera.start_calls == 0
        assert detector.start_calls == 0

    def test_deactivate_during_model_load(self, callbacks):
        """Teardown while the model loads: no camera, no publications."""
        loading = threading.Event()
        release = threading.Event()
        camera = FakeCamera(supports_callbacks=True)
        detector = FakeDetector(default=pinching_hand())

        def slow_load():
            loading.set()
            release.wait(2.0)

        detector.on_start = slow_load
        session = callbacks.session(camera=camera, detector=detector)

        thread = session.activate_async()
        assert loading.wait(2.0)
        session.deactivate()
        release.set()
        thread.join(2.0)

        assert not thread.is_alive()
        assert camera.start_calls == 0
        assert detector.stop_calls >= 1
        assert not camera.deliver()
        assert callbacks.updates == []
        assert callbacks.errors == []

    def test_deactivate_while_camera_opens(self, callbacks):
        """Teardown while the device is warming up: start is cancelled, no error."""
        cap = MagicMock()
        cap.isOpened.return_value = True
        cap.get.return_value = 30.0
        detector = FakeDetector(default=pinching_hand())
        session = callbacks.session(
            config=Config({"camera": {"warmup_frames": 5}}),
            detector=detector,
        )
        reads = []

        def read():
            reads.append(1)
            if len(reads) == 2:
                session.deactivate()
            return True, np.zeros((480, 640, 3), dtype=np.uint8)

        cap.read.side_effect = read

        with patch("gesture_tree.capture.camera.cv2.VideoCapture", return_value=cap):
            assert session.activate() is False

        assert session.phase == SessionPhase.STOPPED
        assert cap.release.call_count == 1
        assert len(reads) == 2
        assert detector.stop_calls >= 1
        assert callbacks.errors == []
        assert callbacks.updates == []

    def test_no_publications_after_teardown(self, callbacks):
        camera = FakeCamera(supports_callbacks=True)
        session = callbacks.session(camera=camera, detector=FakeDetector(default=pinching_hand()))
        session.activate()
        camera.deliver()
        published = len(callbacks.updates)

        session.deactivate()
        camera.running = True
        camera.deliver()
        session.pipeline.run_pass(camera.next_frame())

        assert len(callbacks.updates) == published

    def test_context_manager(self, callbacks):
        camera = FakeCamera(supports_callbacks=True)
        with callbacks.session(camera=camera, detector=FakeDetector()) as session:
            assert session.is_running
        assert not session.is_running
        assert camera.stop_calls >= 1


class TestFixedCadenceSession:
    def test_fixed_cadence_session(self, callbacks):
        config = Config({"scheduler": {"strategy": "auto", "refresh_hz": 200}})
        camera = FakeCamera(supports_callbacks=False)
        session = callbacks.session(config=config, camera=camera,
                                    detector=FakeDetector(default=pinching_hand()))

        assert session.activate()
        assert session.strategy_name == "fixed_cadence"
        for _ in range(200):
            if callbacks.modes:
                break
            time.sleep(0.01)
        session.deactivate()

        assert callbacks.modes == [AppMode.TREE]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
