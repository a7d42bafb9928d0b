"""
Platform capability probe.

Decides once, at startup, which execution delegate the landmark model
runs on. Mobile-class hosts are forced onto the CPU delegate.
"""

import os
import sys
import logging
import platform as _platform

from gesture_tree.detection.hand_detector import Delegate

logger = logging.getLogger(__name__)

_MOBILE_PLATFORMS = ("android", "ios")
_ARM_MACHINES = ("arm", "aarch64")


def is_mobile_platform() -> bool:
    """True for phones, tablets and ARM boards without a desktop GPU stack."""
    if sys.platform in _MOBILE_PLATFORMS or "ANDROID_ROOT" in os.environ:
        return True

    machine = _platform.machine().lower()
    if machine.startswith(_ARM_MACHINES) and sys.platform.startswith("linux"):
        # Jetson boards expose the Tegra release file and do have a usable GPU
        return not os.path.exists("/etc/nv_tegra_release")

    return False


def select_delegate(preference: str = "auto") -> Delegate:
    """Resolve a delegate preference ('auto', 'gpu', 'cpu') to a Delegate."""
    preference = (preference or "auto").lower()
    if preference == "gpu":
        return Delegate.GPU
    if preference == "cpu":
        return Delegate.CPU
    if preference != "auto":
        logger.warning("Unknown delegate preference %r, probing platform", preference)

    mobile = is_mobile_platform()
    delegate = Delegate.CPU if mobile else Delegate.GPU
    logger.info("Platform %s/%s is %s-class, using %s delegate",
                sys.platform, _platform.machine(),
                "mobile" if mobile else "desktop", delegate.name)
    return delegate
