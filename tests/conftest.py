import numpy as np
import pytest

from chromatic_tuner.note_types import AudioFrame


def make_sine(frequency, sample_rate=48000, size=4096, amplitude=0.5, phase=0.0):
    t = np.arange(size) / sample_rate
    return amplitude * np.sin(2 * np.pi * frequency * t + phase)


@pytest.fixture
def sine_frame():
    """Factory for AudioFrames holding a pure sine."""

    def _make(frequency, sample_rate=48000, size=4096, amplitude=0.5, phase=0.0):
        return AudioFrame(make_sine(frequency, sample_rate, size, amplitude, phase), sample_rate)

    return _make


@pytest.fixture
def silent_frame():
    return AudioFrame(np.zeros(4096), 48000)
