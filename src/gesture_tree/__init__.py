"""
Gesture Tree - Hand Gesture Core
=================================

Real-time hand gesture recognition driving the TREE / EXPLODE mode of the
interactive tree installation.

Modules:
    - capture: Camera frame acquisition
    - detection: MediaPipe hand landmark detection
    - recognition: Pinch / open-palm classification and hysteresis
    - control: Application mode state machine
    - core: Pipeline pass, scheduling strategies, session lifecycle
    - utils: Configuration, logging, platform probing
"""

__version__ = "1.0.0"
