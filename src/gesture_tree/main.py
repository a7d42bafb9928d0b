"""
Gesture Tree - Host Application
================================

Runs a gesture session and acts as its consumer: keeps a merged view of
the published gesture state, follows mode triggers, and optionally shows
a small OpenCV status window.

Keyboard Controls (preview window):
  t         - Toggle TREE / EXPLODE manually
  q/ESC     - Quit
"""

import argparse
import logging
import signal
import threading
import time

import cv2
import numpy as np

from gesture_tree.core.session import GestureSession
from gesture_tree.core.types import AppMode, GestureState
from gesture_tree.utils.config import Config, DEFAULT_CONFIG_PATH
from gesture_tree.utils.logger import setup_logging

logger = logging.getLogger(__name__)

WINDOW_NAME = "Gesture Tree"
MODE_COLORS = {
    AppMode.TREE: (60, 180, 60),
    AppMode.EXPLODE: (40, 120, 255),
}


class GestureTreeApp:
    """Host side of the gesture core: state view, mode, preview."""

    def __init__(self, config: Config, preview: bool = True):
        self._preview = preview
        self._state = GestureState()
        self._state_lock = threading.Lock()
        self._stop = threading.Event()
        self._session = GestureSession(
            config,
            on_state_change=self._on_state_change,
            on_mode_trigger=self._on_mode_trigger,
            on_error=self._on_error,
        )

    def _on_state_change(self, update: dict) -> None:
        with self._state_lock:
            self._state = self._state.merge(update)

    def _on_mode_trigger(self, mode: AppMode) -> None:
        logger.info("Gesture requested %s", mode.name)

    def _on_error(self, stage: str, message: str) -> None:
        logger.error("Gesture control disabled (%s): %s. Use 't' to toggle manually.", stage, message)

    @property
    def state(self) -> GestureState:
        with self._state_lock:
            return self._state

    def run(self) -> None:
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        # The rest of the app keeps working even if gesture control fails
        self._session.activate_async()
        try:
            if self._preview:
                self._preview_loop()
            else:
                while not self._stop.wait(0.5):
                    pass
        finally:
            self._session.deactivate()
            if self._preview:
                cv2.destroyAllWindows()

    def _preview_loop(self) -> None:
        while not self._stop.is_set():
            cv2.imshow(WINDOW_NAME, self.render())
            key = cv2.waitKey(16) & 0xFF
            if key in (ord("q"), 27):
                self._stop.set()
            elif key == ord("t"):
                self._session.toggle_mode()

    def render(self, width: int = 480, height: int = 320) -> np.ndarray:
        """Draw a status panel for the current mode and hand state."""
        canvas = np.zeros((height, width, 3), dtype=np.uint8)
        state = self.state
        mode = self._session.mode

        cv2.putText(canvas, "Mode: %s" % mode.name, (16, 36),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.9, MODE_COLORS[mode], 2)

        if not state.hand_detected:
            cv2.putText(canvas, "No hand", (16, 72), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (160, 160, 160), 1)
            return canvas

        label = "PINCH" if state.is_pinching else "OPEN" if state.is_open else "-"
        cv2.putText(canvas, "Gesture: %s  rot=%+.2f" % (label, state.rotation_offset), (16, 72),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1)

        center = (int(state.hand_position.x * width), int(state.hand_position.y * height))
        cv2.circle(canvas, center, 10, MODE_COLORS[mode], -1)
        return canvas

    def _signal_handler(self, signum, frame) -> None:
        logger.info("Received signal %d, shutting down...", signum)
        self._stop.set()


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Gesture-driven TREE / EXPLODE controller")
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH,
                        help="Path to configuration file")
    parser.add_argument("--delegate", choices=["auto", "gpu", "cpu"],
                        help="Override the model execution delegate")
    parser.add_argument("--strategy", choices=["auto", "frame_callback", "fixed_cadence"],
                        help="Override the frame pump strategy")
    parser.add_argument("--no-preview", action="store_true",
                        help="Run without the status window")
    parser.add_argument("--debug", "-d", action="store_true",
                        help="Enable debug logging")
    args = parser.parse_args(argv)

    config = Config.load(args.config)
    if args.delegate:
        config.override("mediapipe.delegate", args.delegate)
    if args.strategy:
        config.override("scheduler.strategy", args.strategy)

    setup_logging(
        level="DEBUG" if args.debug else config.get("logging.level", "INFO"),
        log_file=config.get("logging.file"),
    )

    start = time.monotonic()
    GestureTreeApp(config, preview=not args.no_preview).run()
    logger.info("Ran for %.1fs", time.monotonic() - start)


if __name__ == "__main__":
    main()
