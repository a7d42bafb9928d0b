"""
Configuration manager.
Loads a YAML config, merges it over built-in defaults and provides
dot-path access. Invalid values produce warnings, never failures.
"""

import os
import copy
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
DEFAULT_CONFIG_PATH = os.path.join(_BASE_DIR, "config", "config.yaml")

DEFAULTS = {
    "camera": {
        "device_id": 0,
        "width": 640,
        "height": 480,
        "fps": 30,
        "buffer_size": 1,
        "threaded": True,
        "flip_horizontal": False,
        "warmup_frames": 5,
    },
    "mediapipe": {
        "model_path": "",
        "delegate": "auto",
        "num_hands": 1,
        "min_detection_confidence": 0.3,
        "min_presence_confidence": 0.3,
        "min_tracking_confidence": 0.3,
    },
    "recognition": {
        "confirm_frames": 2,
    },
    "scheduler": {
        "strategy": "auto",
        "refresh_hz": 60.0,
        "failure_warn_every": 30,
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}

# Schema: sections and their expected types
_CONFIG_SCHEMA = {
    "camera": {
        "device_id": int,
        "width": int,
        "height": int,
        "fps": int,
        "threaded": bool,
    },
    "mediapipe": {
        "delegate": str,
        "num_hands": int,
        "min_detection_confidence": float,
        "min_presence_confidence": float,
        "min_tracking_confidence": float,
    },
    "recognition": {
        "confirm_frames": int,
    },
    "scheduler": {
        "strategy": str,
        "refresh_hz": float,
        "failure_warn_every": int,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """YAML-backed configuration with defaults."""

    def __init__(self, data: dict = None):
        self._data = _deep_merge(copy.deepcopy(DEFAULTS), data or {})

    @classmethod
    def load(cls, config_path: str = None) -> "Config":
        """Load configuration from a YAML file, falling back to defaults."""
        config_path = config_path or DEFAULT_CONFIG_PATH
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)
            data = {}

        if not isinstance(data, dict):
            logger.warning("Config root should be a mapping, got %s; using defaults", type(data).__name__)
            data = {}

        config = cls(data)
        config.validate()
        return config

    def validate(self) -> list:
        """Validate config fields against the schema. Returns warnings."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
                continue
            for field_name, expected_type in fields.items():
                if field_name not in section:
                    continue
                value = section[field_name]
                # Allow int where float is expected
                if expected_type is float and isinstance(value, (int, float)) and not isinstance(value, bool):
                    continue
                if expected_type is int and isinstance(value, bool):
                    warnings.append(f"{section_name}.{field_name}: expected int, got bool ({value!r})")
                    continue
                if not isinstance(value, expected_type):
                    warnings.append(
                        f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                        f"got {type(value).__name__} ({value!r})"
                    )

        if warnings:
            for w in warnings:
                logger.warning("Config validation: %s", w)
        else:
            logger.debug("Config validation passed")
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'camera.width'."""
        value = self._data
        for key in key_path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        value = self._data.get(section, {})
        return value if isinstance(value, dict) else {}

    def override(self, key_path: str, value) -> None:
        """Set a nested value, e.g. from a command line flag."""
        keys = key_path.split(".")
        target = self._data
        for key in keys[:-1]:
            if not isinstance(target.get(key), dict):
                target[key] = {}
            target = target[key]
        target[keys[-1]] = value

    @property
    def camera(self) -> dict:
        return self.get_section("camera")

    @property
    def mediapipe(self) -> dict:
        return self.get_section("mediapipe")

    @property
    def recognition(self) -> dict:
        return self.get_section("recognition")

    @property
    def scheduler(self) -> dict:
        return self.get_section("scheduler")

    @property
    def logging(self) -> dict:
        return self.get_section("logging")
