"""
Tests for Camera Module
========================
"""

import time

import pytest
import numpy as np
from unittest.mock import patch, MagicMock

from gesture_tree.capture.camera import Camera, CameraConfig, Frame


class TestCameraConfig:
    """Test suite for CameraConfig."""

    def test_default_values(self):
        """Defaults target 640x480 @ 30fps."""
        config = CameraConfig()

        assert config.device_id == 0
        assert config.width == 640
        assert config.height == 480
        assert config.fps == 30
        assert config.buffer_size == 1
        assert config.flip_horizontal is False

    def test_from_dict(self):
        config = CameraConfig.from_dict({"device_id": 1, "width": 1280, "height": 720, "fps": 60})

        assert config.device_id == 1
        assert config.width == 1280
        assert config.height == 720
        assert config.fps == 60

    def test_from_dict_partial(self):
        config = CameraConfig.from_dict({"device_id": 2})

        assert config.device_id == 2
        assert config.width == 640  # Default
        assert config.threaded is True


class TestFrame:
    """Test suite for Frame class."""

    def test_frame_creation(self):
        image = np.zeros((480, 640, 3), dtype=np.uint8)
        frame = Frame(image=image, timestamp_ms=1234, frame_number=42)

        assert frame.frame_number == 42
        assert frame.timestamp_ms == 1234
        assert frame.image.shape == (480, 640, 3)

    def test_rgb_conversion(self):
        """BGR blue becomes RGB blue in the last channel."""
        image = np.zeros((1, 1, 3), dtype=np.uint8)
        image[0, 0] = [255, 0, 0]

        rgb = Frame(image=image, timestamp_ms=0, frame_number=0).rgb

        assert rgb[0, 0, 0] == 0
        assert rgb[0, 0, 2] == 255


class TestCamera:
    """Test suite for Camera class."""

    @pytest.fixture
    def mock_cap(self):
        mock_cap = MagicMock()
        mock_cap.isOpened.return_value = True
        mock_cap.read.return_value = (True, np.zeros((480, 640, 3), dtype=np.uint8))
        mock_cap.get.return_value = 30.0
        return mock_cap

    @pytest.fixture
    def mock_cv2(self, mock_cap):
        """Mock OpenCV VideoCapture."""
        with patch("gesture_tree.capture.camera.cv2.VideoCapture", return_value=mock_cap) as mock:
            yield mock

    def test_camera_init(self):
        camera = Camera(CameraConfig(device_id=0))

        assert camera.config.device_id == 0
        assert not camera.is_running
        assert camera.read() is None

    def test_start_success(self, mock_cv2):
        camera = Camera(CameraConfig(warmup_frames=0, threaded=False))

        assert camera.start() is True
        assert camera.is_running

        camera.stop()

    def test_start_failure(self, mock_cv2, mock_cap):
        """No device: start reports failure and holds nothing."""
        mock_cap.isOpened.return_value = False
        camera = Camera(CameraConfig(warmup_frames=0, threaded=False))

        assert camera.start() is False
        assert not camera.is_running
        assert camera.read() is None

    def test_unreadable_device(self, mock_cv2, mock_cap):
        mock_cap.read.return_value = (False, None)
        camera = Camera(CameraConfig(warmup_frames=0, threaded=False))

        assert camera.start() is False
        assert mock_cap.release.called

    def test_sync_read_timestamps_increase(self, mock_cv2):
        camera = Camera(CameraConfig(warmup_frames=0, threaded=False))
        camera.start()

        frames = [camera.read() for _ in range(5)]
        stamps = [f.timestamp_ms for f in frames]

        assert [f.frame_number for f in frames] == [1, 2, 3, 4, 5]
        assert all(b > a for a, b in zip(stamps, stamps[1:]))
        camera.stop()

    def test_sync_mode_has_no_frame_callbacks(self, mock_cv2):
        camera = Camera(CameraConfig(warmup_frames=0, threaded=False))
        camera.start()

        assert not camera.supports_frame_callbacks
        assert camera.request_frame_callback(lambda frame: None) is False
        camera.stop()

    def test_threaded_frame_callback(self, mock_cv2):
        """The callback fires once with a decoded frame."""
        camera = Camera(CameraConfig(warmup_frames=0, threaded=True))
        camera.start()
        received = []

        assert camera.request_frame_callback(received.append)
        deadline = time.monotonic() + 2.0
        while not received and time.monotonic() < deadline:
            time.sleep(0.005)
        time.sleep(0.02)
        camera.stop()

        assert len(received) == 1
        assert isinstance(received[0], Frame)

    def test_stop_is_idempotent(self, mock_cv2, mock_cap):
        camera = Camera(CameraConfig(warmup_frames=0, threaded=False))
        camera.start()

        camera.stop()
        camera.stop()

        assert mock_cap.release.call_count == 1
        assert not camera.is_running

    def test_stop_during_warmup(self, mock_cv2, mock_cap):
        """A stop() arriving while start() reads warmup frames cancels the start."""
        camera = Camera(CameraConfig(warmup_frames=5, threaded=True))
        reads = []

        def read():
            reads.append(1)
            if len(reads) == 2:
                camera.stop()
            return True, np.zeros((480, 640, 3), dtype=np.uint8)

        mock_cap.read.side_effect = read

        assert camera.start() is False
        assert not camera.is_running
        assert camera.read() is None
        assert len(reads) == 2
        assert mock_cap.release.call_count == 1

    def test_stop_while_opening(self, mock_cv2, mock_cap):
        camera = Camera(CameraConfig(warmup_frames=0, threaded=False))

        def open_device(*args):
            camera.stop()
            return mock_cap

        mock_cv2.side_effect = open_device

        assert camera.start() is False
        assert mock_cap.release.called
        assert not mock_cap.read.called

    def test_restart_after_stop(self, mock_cv2):
        camera = Camera(CameraConfig(warmup_frames=0, threaded=False))
        camera.start()
        camera.stop()

        assert camera.start() is True
        assert camera.read() is not None
        camera.stop()

    def test_context_manager(self, mock_cv2):
        config = CameraConfig(warmup_frames=0, threaded=False)

        with Camera(config) as camera:
            assert camera.is_running

        assert not camera.is_running


class TestCameraIntegration:
    """Integration tests requiring real camera (marked as slow)."""

    @pytest.mark.skip(reason="Requires physical camera")
    def test_real_camera_capture(self):
        camera = Camera(CameraConfig(warmup_frames=5))

        try:
            if camera.start():
                time.sleep(0.5)
                frame = camera.read()

                assert frame is not None
                assert frame.image.shape[0] > 0
        finally:
            camera.stop()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
