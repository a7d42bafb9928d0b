"""
Logging setup and timing helpers.
"""

import os
import logging
import logging.handlers
import time
from functools import wraps


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure console (and optional rotating file) logging."""
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-32s | %(message)s"
    date_format = "%H:%M:%S"

    level_value = getattr(logging, str(level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level_value)
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(level_value)
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    # MediaPipe / absl are chatty at INFO
    logging.getLogger("absl").setLevel(logging.WARNING)

    return root_logger


def log_timing(func):
    """Decorator to log function execution time at DEBUG."""
    logger = logging.getLogger(func.__module__)

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            if logger.isEnabledFor(logging.DEBUG):
                elapsed = (time.perf_counter() - start) * 1000
                logger.debug("%s took %.2fms", func.__name__, elapsed)

    return wrapper
