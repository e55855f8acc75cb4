"""Real-time monophonic tuner: pitch estimation, note mapping and display smoothing."""

from .note_types import (
    AudioFrame,
    ErrorKind,
    NoteInfo,
    PitchEstimate,
    TunerReading,
    TunerState,
)
from .note_utils import clamp_reference_pitch, map_to_note, note_to_frequency
from .tuner import Tuner, TunerPipeline, TunerSession

__version__ = "0.1.0"

__all__ = [
    "AudioFrame",
    "ErrorKind",
    "NoteInfo",
    "PitchEstimate",
    "TunerReading",
    "TunerState",
    "clamp_reference_pitch",
    "map_to_note",
    "note_to_frequency",
    "Tuner",
    "TunerPipeline",
    "TunerSession",
]
