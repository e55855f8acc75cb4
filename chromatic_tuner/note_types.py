"""Type definitions for the chromatic tuner."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

# Chromatic pitch classes, index 0 is C
NOTE_NAMES: Tuple[str, ...] = (
    "C",
    "C#",
    "D",
    "D#",
    "E",
    "F",
    "F#",
    "G",
    "G#",
    "A",
    "A#",
    "B",
)

A4_MIDI = 69
SEMITONES_PER_OCTAVE = 12


class TunerState(Enum):
    """Discrete display state of the tuner."""

    IDLE = "idle"
    LISTENING = "listening"
    ACTIVE = "active"
    ERROR = "error"


class ErrorKind(Enum):
    """Capture-layer failures surfaced to the display."""

    PERMISSION_DENIED = "permission-denied"
    DEVICE_NOT_FOUND = "not-found"
    UNSUPPORTED = "not-supported"
    UNKNOWN = "unknown"


@dataclass(frozen=True, eq=False)
class AudioFrame:
    """A fixed block of normalized mono samples and the rate it was captured at."""

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError("Sample rate must be positive")
        samples = np.array(self.samples, dtype=np.float64).reshape(-1)
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)

    def __len__(self) -> int:
        return int(self.samples.size)

    @property
    def duration(self) -> float:
        """Length of the frame in seconds."""
        return len(self) / self.sample_rate


@dataclass(frozen=True)
class PitchEstimate:
    """Fundamental frequency found in a single frame."""

    frequency: float  # Hz
    confidence: Optional[float] = None  # 0-1, backend specific


@dataclass(frozen=True)
class NoteInfo:
    """Nearest equal-tempered note to a measured frequency."""

    note_name: str  # One of NOTE_NAMES
    octave: int  # Scientific pitch notation, A4 is octave 4
    reference_frequency: float  # Exact frequency of the nearest note in Hz
    cents_deviation: int  # Signed, -50..50

    @property
    def midi_number(self) -> int:
        return (self.octave + 1) * SEMITONES_PER_OCTAVE + NOTE_NAMES.index(self.note_name)

    def __str__(self):
        return f"{self.note_name}{self.octave}"


@dataclass(frozen=True)
class TunerReading:
    """The externally observable output of one tick."""

    state: TunerState
    note: Optional[NoteInfo] = None  # Only present while ACTIVE
    frequency: Optional[float] = None  # Measured Hz behind `note`
    error: Optional[ErrorKind] = None  # Only present while in ERROR

    @property
    def is_active(self) -> bool:
        return self.state is TunerState.ACTIVE
