"""Energy gate applied to frames before pitch estimation."""

import numpy as np

from ..logger import get_logger
from ..note_types import AudioFrame

logger = get_logger(__name__)

# RMS below this on normalized samples is treated as silence or noise
DEFAULT_NOISE_FLOOR = 0.01


def rms(samples: np.ndarray) -> float:
    """Root-mean-square amplitude of a block of samples (0.0 for an empty block)."""
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


class FrameGate:
    """Rejects frames whose RMS amplitude is below a fixed noise floor."""

    def __init__(self, noise_floor: float = DEFAULT_NOISE_FLOOR) -> None:
        if noise_floor < 0:
            raise ValueError("noise_floor must not be negative")
        self._noise_floor = noise_floor

    @property
    def noise_floor(self) -> float:
        return self._noise_floor

    def accept(self, frame: AudioFrame) -> bool:
        """Return True if the frame carries enough energy to analyze."""
        level = rms(frame.samples)
        if level < self._noise_floor:
            logger.debug(f"Signal too weak: RMS {level:.4f} < {self._noise_floor}")
            return False
        return True
