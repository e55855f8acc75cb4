import numpy as np
import pytest

from chromatic_tuner.detection.frame_gate import DEFAULT_NOISE_FLOOR, FrameGate, rms
from chromatic_tuner.note_types import AudioFrame


def test_rms_of_constant_and_empty():
    assert rms(np.full(100, 0.5)) == pytest.approx(0.5)
    assert rms(np.zeros(0)) == 0.0


def test_rms_of_sine(sine_frame):
    frame = sine_frame(440.0, amplitude=1.0, size=48000)
    assert rms(frame.samples) == pytest.approx(1 / np.sqrt(2), rel=1e-3)


def test_silence_rejected(silent_frame):
    assert FrameGate().accept(silent_frame) is False


def test_quiet_signal_rejected(sine_frame):
    # RMS of 0.01 amplitude sine is ~0.007, below the default floor
    assert FrameGate().accept(sine_frame(440.0, amplitude=0.01)) is False


def test_audible_signal_accepted(sine_frame):
    assert FrameGate().accept(sine_frame(440.0, amplitude=0.1)) is True


def test_empty_frame_rejected():
    assert FrameGate().accept(AudioFrame(np.zeros(0), 48000)) is False


def test_custom_noise_floor(sine_frame):
    frame = sine_frame(440.0, amplitude=0.1)
    assert FrameGate(noise_floor=0.2).accept(frame) is False
    assert FrameGate(noise_floor=0.0).accept(frame) is True
    assert FrameGate().noise_floor == DEFAULT_NOISE_FLOOR


def test_negative_noise_floor_rejected():
    with pytest.raises(ValueError):
        FrameGate(noise_floor=-1.0)


def test_audio_frame_is_read_only():
    source = np.ones(16, dtype=np.float32)
    frame = AudioFrame(source, 8000)
    source[0] = 5.0
    assert frame.samples[0] == 1.0
    with pytest.raises(ValueError):
        frame.samples[0] = 2.0
    assert len(frame) == 16
    assert frame.duration == pytest.approx(16 / 8000)


def test_audio_frame_requires_positive_rate():
    with pytest.raises(ValueError):
        AudioFrame(np.zeros(4), 0)
