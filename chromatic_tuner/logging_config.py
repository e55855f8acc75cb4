"""Centralized logging configuration for the chromatic tuner.

This module provides a consistent way to configure logging across the package.
"""

import logging
import sys
from typing import Optional

from .logger import PACKAGE_LOGGER, get_logger

# Log levels for different modules
MODULE_LOG_LEVELS = {
    # Core modules
    "chromatic_tuner": logging.INFO,
    "chromatic_tuner.tuner": logging.INFO,
    "chromatic_tuner.note_utils": logging.INFO,
    # Detection pipeline, noisy at DEBUG since it logs every frame
    "chromatic_tuner.detection": logging.INFO,
    "chromatic_tuner.core": logging.INFO,
    "chromatic_tuner.services": logging.INFO,
    "chromatic_tuner.cli": logging.INFO,
    "chromatic_tuner.logger": logging.WARNING,  # Logger module itself should be quiet
    # Libraries/third-party
    "sounddevice": logging.WARNING,
    # Root logger
    "": logging.ERROR,
}

# Shared console handler
_console_handler: Optional[logging.Handler] = None


def setup_logging(level: Optional[str] = None) -> None:
    """Set up logging configuration for the application.

    Args:
        level: If provided, override all 'chromatic_tuner' log levels with this level (e.g., "DEBUG").
    """
    global _console_handler

    # Create a single, shared console handler if it doesn't exist
    if _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        _console_handler.setFormatter(formatter)

    # Determine log levels
    log_levels = MODULE_LOG_LEVELS.copy()
    if level:
        numeric_level = logging.getLevelName(level.upper())
        if isinstance(numeric_level, int):
            for module_name in log_levels:
                if module_name.startswith(PACKAGE_LOGGER):
                    log_levels[module_name] = numeric_level
        else:
            logging.getLogger(__name__).error(f"Invalid log level: {level}")

    # Apply module-specific levels. Only the top-level package logger and the
    # root get the handler; sub-package loggers propagate up to it.
    for module_name, module_level in log_levels.items():
        logger = logging.getLogger(module_name)
        logger.setLevel(module_level)

        if module_name in ("", PACKAGE_LOGGER, "sounddevice"):
            for handler in logger.handlers[:]:
                logger.removeHandler(handler)
            logger.addHandler(_console_handler)
            logger.propagate = False

    get_logger(PACKAGE_LOGGER).info("Logging configuration complete")
