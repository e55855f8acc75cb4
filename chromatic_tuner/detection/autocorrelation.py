"""Time-domain fundamental frequency estimators."""

from __future__ import annotations

from typing import ClassVar, List, Optional, Tuple

import numpy as np

from ..core.interfaces import IPitchEstimator
from ..logger import get_logger
from ..note_types import AudioFrame, PitchEstimate
from .frame_gate import DEFAULT_NOISE_FLOOR, FrameGate

logger = get_logger(__name__)


def parabolic_peak(y0: float, y1: float, y2: float) -> Tuple[float, float]:
    """Fit a parabola through three equally spaced points around a peak.

    Returns:
        (offset, value): vertex offset relative to the middle point and the
        interpolated value there. A flat triple yields (0.0, y1).
    """
    a = (y0 + y2 - 2 * y1) / 2
    b = (y2 - y0) / 2
    if a == 0:
        return 0.0, y1
    offset = -b / (2 * a)
    return offset, y1 - b * b / (4 * a)


class _RangeGatedEstimator(IPitchEstimator):
    """Shared frame gating and frequency range checks."""

    MIN_FREQUENCY: ClassVar[float] = 40.0  # Hz - below low E on a 5-string bass
    MAX_FREQUENCY: ClassVar[float] = 1200.0  # Hz - above the top of a guitar neck

    def __init__(
        self,
        noise_floor: float = DEFAULT_NOISE_FLOOR,
        min_frequency: Optional[float] = None,
        max_frequency: Optional[float] = None,
    ) -> None:
        self._gate = FrameGate(noise_floor)
        self._min_frequency = self.MIN_FREQUENCY if min_frequency is None else min_frequency
        self._max_frequency = self.MAX_FREQUENCY if max_frequency is None else max_frequency
        if not 0 < self._min_frequency < self._max_frequency:
            raise ValueError("Require 0 < min_frequency < max_frequency")

    @property
    def gate(self) -> FrameGate:
        return self._gate

    @property
    def min_frequency(self) -> float:
        return self._min_frequency

    @property
    def max_frequency(self) -> float:
        return self._max_frequency

    def _in_range(self, frequency: float) -> bool:
        return self._min_frequency <= frequency <= self._max_frequency


class AutocorrelationEstimator(_RangeGatedEstimator):
    """Unnormalized autocorrelation with a dip-then-peak search.

    The zero-lag peak is always the maximum, so the search first walks down
    its slope and then takes the largest autocorrelation value beyond it.
    The lag is refined with parabolic interpolation before converting to Hz.
    """

    DEFAULT_EDGE_THRESHOLD: ClassVar[float] = 0.2

    def __init__(
        self,
        noise_floor: float = DEFAULT_NOISE_FLOOR,
        edge_threshold: float = DEFAULT_EDGE_THRESHOLD,
        min_frequency: Optional[float] = None,
        max_frequency: Optional[float] = None,
    ) -> None:
        """Initialize the estimator.

        Args:
            noise_floor: Minimum frame RMS to analyze
            edge_threshold: Leading/trailing samples quieter than this are trimmed
            min_frequency: Lowest accepted fundamental in Hz
            max_frequency: Highest accepted fundamental in Hz
        """
        super().__init__(noise_floor, min_frequency, max_frequency)
        self._edge_threshold = edge_threshold

    @property
    def edge_threshold(self) -> float:
        return self._edge_threshold

    def _trim(self, samples: np.ndarray) -> np.ndarray:
        loud = np.flatnonzero(np.abs(samples) >= self._edge_threshold)
        if loud.size == 0:
            return samples[:0]
        return samples[loud[0] : loud[-1] + 1]

    def estimate(self, frame: AudioFrame) -> Optional[PitchEstimate]:
        if not self._gate.accept(frame):
            return None

        x = self._trim(frame.samples)
        size = x.size
        if size < 2:
            logger.debug(f"Only {size} samples above edge threshold")
            return None

        # R[i] = sum_j x[j] * x[j + i] for i in 0..size-1
        corr = np.correlate(x, x, mode="full")[size - 1 :]

        dip = 0
        while dip < size - 1 and corr[dip] > corr[dip + 1]:
            dip += 1

        peak = dip + int(np.argmax(corr[dip:]))
        if peak <= 0 or peak >= size - 1:
            logger.debug(f"Autocorrelation peak at boundary lag {peak}")
            return None

        offset, _ = parabolic_peak(corr[peak - 1], corr[peak], corr[peak + 1])
        lag = peak + offset
        if lag <= 0:
            return None

        frequency = frame.sample_rate / lag
        if not self._in_range(frequency):
            logger.debug(f"Estimated {frequency:.1f}Hz outside accepted range")
            return None

        confidence = float(corr[peak] / corr[0]) if corr[0] > 0 else None
        logger.debug(f"Autocorrelation pitch {frequency:.2f}Hz (lag {lag:.2f})")
        return PitchEstimate(frequency=float(frequency), confidence=confidence)


class McLeodEstimator(_RangeGatedEstimator):
    """McLeod Pitch Method: normalized square difference with clarity gating."""

    DEFAULT_CLARITY_THRESHOLD: ClassVar[float] = 0.9
    KEY_MAXIMUM_CUTOFF: ClassVar[float] = 0.9  # fraction of the highest key maximum

    def __init__(
        self,
        noise_floor: float = DEFAULT_NOISE_FLOOR,
        clarity_threshold: float = DEFAULT_CLARITY_THRESHOLD,
        min_frequency: Optional[float] = None,
        max_frequency: Optional[float] = None,
    ) -> None:
        super().__init__(noise_floor, min_frequency, max_frequency)
        if not 0.0 <= clarity_threshold <= 1.0:
            raise ValueError("clarity_threshold must be between 0.0 and 1.0")
        self._clarity_threshold = clarity_threshold

    @property
    def clarity_threshold(self) -> float:
        return self._clarity_threshold

    @staticmethod
    def nsdf(x: np.ndarray) -> np.ndarray:
        """Normalized square difference function, values in [-1, 1]."""
        size = x.size
        corr = np.correlate(x, x, mode="full")[size - 1 :]
        energy = np.concatenate(([0.0], np.cumsum(np.square(x))))
        lags = np.arange(size)
        # m(tau) = sum of x[j]^2 + x[j+tau]^2 over the overlapping region
        m = energy[size - lags] + (energy[size] - energy[lags])
        out = np.zeros(size)
        np.divide(2 * corr, m, out=out, where=m > 0)
        return out

    @staticmethod
    def _key_maxima(nsdf: np.ndarray) -> List[int]:
        positive = nsdf > 0
        if positive.all():
            return []
        # Skip the lobe around zero lag
        first_negative = int(np.argmax(~positive))
        starts = np.flatnonzero(~positive[:-1] & positive[1:]) + 1
        ends = np.flatnonzero(positive[:-1] & ~positive[1:]) + 1

        maxima = []
        for start in starts[starts > first_negative]:
            later = ends[ends > start]
            end = int(later[0]) if later.size else nsdf.size
            maxima.append(int(start) + int(np.argmax(nsdf[start:end])))
        return maxima

    def estimate(self, frame: AudioFrame) -> Optional[PitchEstimate]:
        if not self._gate.accept(frame):
            return None

        x = frame.samples
        if x.size < 3:
            return None

        nsdf = self.nsdf(x)
        # Only lags that can correspond to an accepted frequency
        max_lag = min(nsdf.size - 2, int(np.ceil(frame.sample_rate / self._min_frequency)) + 1)
        maxima = [m for m in self._key_maxima(nsdf) if 0 < m <= max_lag]
        if not maxima:
            logger.debug("No key maxima in NSDF")
            return None

        cutoff = self.KEY_MAXIMUM_CUTOFF * max(nsdf[m] for m in maxima)
        peak = next(m for m in maxima if nsdf[m] >= cutoff)

        offset, value = parabolic_peak(nsdf[peak - 1], nsdf[peak], nsdf[peak + 1])
        clarity = float(min(value, 1.0))
        if clarity < self._clarity_threshold:
            logger.debug(f"Clarity {clarity:.2f} below {self._clarity_threshold}")
            return None

        lag = peak + offset
        if lag <= 0:
            return None
        frequency = frame.sample_rate / lag
        if not self._in_range(frequency):
            logger.debug(f"Estimated {frequency:.1f}Hz outside accepted range")
            return None

        logger.debug(f"MPM pitch {frequency:.2f}Hz (clarity {clarity:.2f})")
        return PitchEstimate(frequency=float(frequency), confidence=clarity)
