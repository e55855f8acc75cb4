"""Cached logger lookup scoped to the chromatic_tuner package."""
import logging
from typing import Dict

PACKAGE_LOGGER = "chromatic_tuner"

_logger_cache: Dict[str, logging.Logger] = {}


def qualified_name(name: str) -> str:
    """Place a logger name under the package namespace.

    Modules run as scripts report themselves as '__main__', and short names
    like 'cli' are used by ad-hoc callers; both end up under
    'chromatic_tuner' so MODULE_LOG_LEVELS and the shared handler apply.
    """
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
        return name
    if name in ("", "__main__"):
        return PACKAGE_LOGGER
    return f"{PACKAGE_LOGGER}.{name}"


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module, e.g. get_logger(__name__)."""
    name = qualified_name(name)
    if name not in _logger_cache:
        _logger_cache[name] = logging.getLogger(name)
    return _logger_cache[name]
