"""Defines the core interfaces for the chromatic tuner."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional, Callable

import numpy as np

from ..note_types import AudioFrame, PitchEstimate


class IPitchEstimator(ABC):
    """Interface for single-frame fundamental frequency estimators."""

    @abstractmethod
    def estimate(self, frame: AudioFrame) -> Optional[PitchEstimate]:
        """Estimate the fundamental of a frame, or None if no reliable period was found."""
        pass


class IAudioProvider(ABC):
    """Interface for audio sources feeding the tuner."""

    @abstractmethod
    def start(self, on_data: Callable[[np.ndarray, float], None]) -> None:
        """Start delivering mono float32 sample blocks and their timestamps.

        Raises:
            CaptureError: If the source could not be opened
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering audio."""
        pass

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """The sample rate of the audio stream."""
        pass

    @property
    @abstractmethod
    def channels(self) -> int:
        """The number of channels of the underlying stream."""
        pass
