"""Configuration, logging and platform helpers."""
from .config import Config
from .logger import setup_logging, log_timing

__all__ = ["Config", "setup_logging", "log_timing"]
