"""JSON-backed settings for the tuner, detector and audio input."""

import copy
import json
import math
import os
from pathlib import Path
from typing import Any, Dict, Optional

from ..logger import get_logger
from ..note_utils import clamp_reference_pitch

logger = get_logger(__name__)

ESTIMATORS = ("autocorrelation", "mcleod")

# Keys that must be finite and > 0, or finite and >= 0
_POSITIVE_KEYS = {
    "tuner": ("tick_rate_hz",),
    "audio_input": ("sample_rate", "frame_size", "blocksize", "channels"),
}
_NON_NEGATIVE_KEYS = {
    "detector": ("noise_floor", "edge_threshold"),
}

DEFAULT_CONFIGS: Dict[str, Dict[str, Any]] = {
    "tuner": {
        "reference_pitch": 440.0,
        "hold_frames": 10,
        "estimator": "autocorrelation",
        "tick_rate_hz": 60.0,
    },
    "detector": {
        "noise_floor": 0.01,
        "edge_threshold": 0.2,
        "min_frequency": 40.0,
        "max_frequency": 1200.0,
        "clarity_threshold": 0.9,
    },
    "audio_input": {
        "sample_rate": 48000,
        "frame_size": 8192,
        "blocksize": 1024,
        "channels": 1,
        "device_id": None,
    },
}


def _coerce(section: str, key: str, value: Any, default: Any) -> Any:
    """Convert a stored value to the type of its default, or fall back to the default."""
    if default is None:
        return value
    try:
        if value is None:
            raise TypeError("missing value")
        if isinstance(default, bool):
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except (TypeError, ValueError, OverflowError):
        logger.warning(f"Ignoring invalid {section}.{key}={value!r}, using {default!r}")
        return default
    return value


class ConfigManager:
    """Loads, validates and persists the tuner's configuration sections.

    Each section lives in its own file, e.g. ~/.config/chromatic_tuner/tuner.json.
    Keys missing from a file are filled from DEFAULT_CONFIGS; values of the wrong
    type are replaced by their defaults.
    """

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize the configuration manager.

        Args:
            config_dir: Directory holding the section files, None for ~/.config/chromatic_tuner
        """
        if config_dir is None:
            config_dir = os.path.join(os.path.expanduser("~"), ".config", "chromatic_tuner")

        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.default_configs = copy.deepcopy(DEFAULT_CONFIGS)
        self.configs: Dict[str, Dict[str, Any]] = {
            name: self.load_config(name, defaults) for name, defaults in self.default_configs.items()
        }

    def _path(self, name: str) -> Path:
        return self.config_dir / f"{name}.json"

    def _validate(self, name: str, config: Dict[str, Any]) -> Dict[str, Any]:
        defaults = self.default_configs[name]
        for key, default in defaults.items():
            config[key] = _coerce(name, key, config.get(key, default), default)

        def fall_back(*keys: str) -> None:
            logger.warning(
                f"Ignoring out-of-range {name} settings "
                + ", ".join(f"{k}={config[k]!r}" for k in keys)
            )
            for k in keys:
                config[k] = defaults[k]

        for key in _POSITIVE_KEYS.get(name, ()):
            if not (math.isfinite(config[key]) and config[key] > 0):
                fall_back(key)
        for key in _NON_NEGATIVE_KEYS.get(name, ()):
            if not (math.isfinite(config[key]) and config[key] >= 0):
                fall_back(key)

        if name == "detector":
            if not 0 < config["min_frequency"] < config["max_frequency"] < math.inf:
                fall_back("min_frequency", "max_frequency")
            if not 0.0 <= config["clarity_threshold"] <= 1.0:
                fall_back("clarity_threshold")

        if name == "tuner":
            config["reference_pitch"] = clamp_reference_pitch(config["reference_pitch"])
            config["hold_frames"] = max(0, config["hold_frames"])
            if config["estimator"] not in ESTIMATORS:
                logger.warning(
                    f"Unknown estimator {config['estimator']!r}, using {defaults['estimator']!r}"
                )
                config["estimator"] = defaults["estimator"]
        return config

    def load_config(self, name: str, default_config: Dict[str, Any]) -> Dict[str, Any]:
        """Read a section from disk, writing the defaults if the file does not exist.

        An unreadable or malformed file yields the defaults and is left untouched.
        """
        config_file = self._path(name)
        if not config_file.exists():
            config = default_config.copy()
            self.save_config(name, config)
            return config

        try:
            with open(config_file, "r") as f:
                stored = json.load(f)
            if not isinstance(stored, dict):
                raise ValueError("top-level JSON value must be an object")
        except (OSError, ValueError) as e:
            logger.error(f"Error loading configuration from {config_file}: {e}")
            return default_config.copy()

        logger.info(f"Loaded configuration from {config_file}")
        return self._validate(name, stored)

    def save_config(self, name: str, config: Dict[str, Any]) -> bool:
        """Write a section to disk. Returns False if the file could not be written."""
        config_file = self._path(name)
        try:
            with open(config_file, "w") as f:
                json.dump(config, f, indent=2)
        except OSError as e:
            logger.error(f"Error saving configuration to {config_file}: {e}")
            return False
        logger.info(f"Saved configuration to {config_file}")
        return True

    def get_config(self, name: str) -> Dict[str, Any]:
        """Get a copy of a configuration section.

        Raises:
            ValueError: If the configuration name is unknown
        """
        if name not in self.configs:
            raise ValueError(f"Unknown configuration: {name}")
        return self.configs[name].copy()

    def update_config(self, name: str, updates: Dict[str, Any]) -> bool:
        """Merge updates into a section, validate it and save it.

        Returns:
            False for an unknown section or a failed write
        """
        if name not in self.configs:
            logger.error(f"Unknown configuration: {name}")
            return False

        merged = dict(self.configs[name], **updates)
        self.configs[name] = self._validate(name, merged)
        return self.save_config(name, self.configs[name])

    def reset_config(self, name: str) -> bool:
        """Restore a section's defaults and save it."""
        if name not in self.default_configs:
            logger.error(f"Unknown configuration: {name}")
            return False

        self.configs[name] = self.default_configs[name].copy()
        return self.save_config(name, self.configs[name])
