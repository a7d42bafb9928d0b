"""
Camera Capture Module
======================

Low-latency camera capture for the gesture pipeline.
Supports threaded capture with per-frame notifications, which the
frame-callback scheduling strategy relies on.
"""

import cv2
import time
import threading
import logging
from dataclasses import dataclass
from typing import Optional, Callable
import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class CameraConfig:
    """Camera configuration settings."""
    device_id: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30
    buffer_size: int = 1  # Minimal buffering for low latency
    threaded: bool = True
    flip_horizontal: bool = False  # Classifier mirrors x itself
    warmup_frames: int = 5

    @classmethod
    def from_dict(cls, config: dict) -> "CameraConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(
            device_id=config.get("device_id", 0),
            width=config.get("width", 640),
            height=config.get("height", 480),
            fps=config.get("fps", 30),
            buffer_size=config.get("buffer_size", 1),
            warmup_frames=config.get("warmup_frames", 5),
            flip_horizontal=config.get("flip_horizontal", False),
            threaded=config.get("threaded", True),
        )


@dataclass
class Frame:
    """Container for captured frame with metadata."""
    image: np.ndarray
    timestamp_ms: int  # Monotonic clock
    frame_number: int

    @property
    def rgb(self) -> np.ndarray:
        """Convert BGR to RGB."""
        return cv2.cvtColor(self.image, cv2.COLOR_BGR2RGB)


def monotonic_ms() -> int:
    """Monotonic timestamp in integer milliseconds."""
    return int(time.monotonic() * 1000)


class Camera:
    """
    Camera capture with optional threading.

    Features:
    - Minimal buffering for low latency
    - Threaded capture for non-blocking reads
    - Monotonic frame timestamps for the landmark model
    - One-shot "next decoded frame" callbacks (threaded mode only)

    Example:
        >>> camera = Camera(CameraConfig())
        >>> camera.start()
        >>> frame = camera.read()
        >>> if frame:
        ...     process(frame.rgb, frame.timestamp_ms)
        >>> camera.stop()
    """

    def __init__(self, config: Optional[CameraConfig] = None):
        self.config = config or CameraConfig()
        self._cap: Optional[cv2.VideoCapture] = None
        self._frame_number = 0
        self._last_timestamp_ms = 0
        self._running = False

        # start()/stop() coordination; stop may arrive while start blocks
        self._state_lock = threading.Lock()
        self._stop_requested = False

        # Threading components
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._latest_frame: Optional[Frame] = None
        self._frame_callback: Optional[Callable[[Frame], None]] = None

    def start(self) -> bool:
        """
        Open the capture device.

        Opening and warmup run without holding the state lock, so a
        concurrent stop() is honored between blocking OpenCV calls.

        Returns:
            True if camera started successfully. False when no device is
            available, access was denied, or stop() was called meanwhile.
        """
        with self._state_lock:
            if self._running:
                return True
            self._stop_requested = False

        logger.info("Starting camera (device=%d, %dx%d@%dfps)",
                    self.config.device_id, self.config.width, self.config.height, self.config.fps)

        cap = self._open_device()
        if cap is None:
            if not self._stop_requested:
                logger.error("Failed to open camera device %d", self.config.device_id)
            return False

        actual_width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        actual_fps = cap.get(cv2.CAP_PROP_FPS)
        logger.info("Camera initialized: %dx%d@%.0ffps", actual_width, actual_height, actual_fps)

        # Let auto-exposure settle
        for _ in range(self.config.warmup_frames):
            if self._stop_requested:
                break
            cap.read()

        with self._state_lock:
            if self._stop_requested:
                cap.release()
                logger.info("Camera start cancelled")
                return False

            self._cap = cap
            self._running = True
            self._frame_number = 0

            if self.config.threaded:
                self._thread = threading.Thread(target=self._capture_loop, daemon=True)
                self._thread.start()
                logger.info("Started threaded capture")

        return True

    def _open_device(self) -> Optional[cv2.VideoCapture]:
        """Try V4L2 first, then whatever OpenCV picks. None if nothing reads."""
        for backend in [cv2.CAP_V4L2, cv2.CAP_ANY]:
            cap = cv2.VideoCapture(self.config.device_id, backend)
            if self._stop_requested:
                cap.release()
                return None

            if not cap.isOpened():
                logger.debug("Backend %s failed, trying next...", backend)
                cap.release()
                continue

            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
            cap.set(cv2.CAP_PROP_FPS, self.config.fps)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, self.config.buffer_size)

            # Verify we can actually read frames
            test_ret, test_frame = cap.read()
            if self._stop_requested:
                cap.release()
                return None
            if test_ret and test_frame is not None:
                return cap

            logger.debug("Can't read frames with backend %s, trying next...", backend)
            cap.release()

        return None

    def stop(self) -> None:
        """Stop capture and release the device. Safe to call repeatedly,
        and from another thread while start() is still opening the device."""
        with self._state_lock:
            self._stop_requested = True
            was_running = self._running
            self._running = False
            thread, self._thread = self._thread, None
            cap, self._cap = self._cap, None

        with self._lock:
            self._frame_callback = None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

        if cap is not None:
            cap.release()

        with self._lock:
            self._latest_frame = None

        if was_running:
            logger.info("Camera stopped")

    def read(self) -> Optional[Frame]:
        """
        Read the latest frame.

        In threaded mode, returns the most recent captured frame.
        In synchronous mode, captures a new frame.

        Returns:
            Frame, or None if no decoded frame is available yet
        """
        if not self._running:
            return None

        if self.config.threaded:
            with self._lock:
                return self._latest_frame
        return self._capture_frame()

    def request_frame_callback(self, callback: Callable[[Frame], None]) -> bool:
        """Invoke ``callback`` once, on the capture thread, with the next decoded frame.

        Returns:
            False if per-frame notifications are unavailable.
        """
        if not self.supports_frame_callbacks or not self._running:
            return False
        with self._lock:
            self._frame_callback = callback
        return True

    def cancel_frame_callback(self) -> None:
        """Drop a pending frame callback, if any."""
        with self._lock:
            self._frame_callback = None

    def _capture_frame(self) -> Optional[Frame]:
        """Capture a single frame from the camera."""
        cap = self._cap
        if cap is None:
            return None

        ret, image = cap.read()

        if not ret or image is None:
            logger.debug("Failed to capture frame")
            return None

        if self.config.flip_horizontal:
            image = cv2.flip(image, 1)

        # Landmarker needs strictly increasing timestamps
        timestamp_ms = max(monotonic_ms(), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms
        self._frame_number += 1

        return Frame(
            image=image,
            timestamp_ms=timestamp_ms,
            frame_number=self._frame_number,
        )

    def _capture_loop(self) -> None:
        """Background thread for continuous frame capture."""
        while self._running:
            frame = self._capture_frame()
            if frame is None:
                time.sleep(0.001)
                continue

            with self._lock:
                self._latest_frame = frame
                callback, self._frame_callback = self._frame_callback, None

            if callback is not None:
                try:
                    callback(frame)
                except Exception as e:
                    logger.error("Frame callback failed: %s", e)

    @property
    def supports_frame_callbacks(self) -> bool:
        """Per-decoded-frame notifications need the capture thread."""
        return self.config.threaded

    @property
    def is_running(self) -> bool:
        """Check if camera is currently running."""
        return self._running

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
