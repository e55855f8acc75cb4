"""Utility functions for working with musical notes and frequencies."""

import math
from typing import Dict, Optional

from .logger import get_logger
from .note_types import A4_MIDI, NOTE_NAMES, SEMITONES_PER_OCTAVE, NoteInfo

logger = get_logger(__name__)

CENTS_PER_SEMITONE = 100

# Frequencies outside this band are never mapped to a note
MIN_NOTE_FREQUENCY = 20.0
MAX_NOTE_FREQUENCY = 5000.0

# Reference pitch for A4
DEFAULT_REFERENCE_PITCH = 440.0
MIN_REFERENCE_PITCH = 432.0
MAX_REFERENCE_PITCH = 446.0

SHARP_TO_FLAT: Dict[str, str] = {
    "C#": "Db",
    "D#": "Eb",
    "F#": "Gb",
    "G#": "Ab",
    "A#": "Bb",
}

FLAT_TO_SHARP: Dict[str, str] = {v: k for k, v in SHARP_TO_FLAT.items()}


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def clamp_reference_pitch(hz: float) -> float:
    """Clamp a requested A4 reference pitch into the supported range.

    NaN falls back to the default reference rather than propagating.
    """
    if math.isnan(hz):
        logger.warning(f"Ignoring NaN reference pitch, using {DEFAULT_REFERENCE_PITCH}Hz")
        return DEFAULT_REFERENCE_PITCH
    return max(MIN_REFERENCE_PITCH, min(MAX_REFERENCE_PITCH, float(hz)))


def map_to_note(
    frequency: float, reference_pitch: float = DEFAULT_REFERENCE_PITCH
) -> Optional[NoteInfo]:
    """Convert a frequency to the nearest note with its cents deviation.

    Args:
        frequency: Measured frequency in Hz
        reference_pitch: Frequency of A4 in Hz

    Returns:
        NoteInfo for the nearest equal-tempered note, or None if the frequency
        is non-finite or outside 20-5000 Hz

    Note:
        Both the semitone index and the cents value use round_half_away, so a
        frequency exactly half way between two notes maps to the upper note
        at -50 cents.
    """
    if not math.isfinite(frequency):
        logger.debug(f"Rejecting non-finite frequency: {frequency}")
        return None
    if frequency < MIN_NOTE_FREQUENCY or frequency > MAX_NOTE_FREQUENCY:
        logger.debug(f"Frequency out of range: {frequency:.2f}Hz")
        return None
    if not math.isfinite(reference_pitch) or reference_pitch <= 0:
        logger.warning(f"Invalid reference pitch: {reference_pitch}")
        return None

    # Semitones from the reference A4
    semitones = SEMITONES_PER_OCTAVE * math.log2(frequency / reference_pitch)
    offset = round_half_away(semitones)

    nearest_frequency = reference_pitch * 2.0 ** (offset / SEMITONES_PER_OCTAVE)
    cents = round_half_away(
        CENTS_PER_SEMITONE * SEMITONES_PER_OCTAVE * math.log2(frequency / nearest_frequency)
    )

    midi_number = A4_MIDI + offset
    note_index = ((midi_number % SEMITONES_PER_OCTAVE) + SEMITONES_PER_OCTAVE) % SEMITONES_PER_OCTAVE
    octave = midi_number // SEMITONES_PER_OCTAVE - 1

    return NoteInfo(
        note_name=NOTE_NAMES[note_index],
        octave=octave,
        reference_frequency=nearest_frequency,
        cents_deviation=cents,
    )


def note_to_frequency(
    note_name: str, octave: int, reference_pitch: float = DEFAULT_REFERENCE_PITCH
) -> float:
    """Calculate the exact frequency of a note.

    Args:
        note_name: Pitch class, sharp or flat spelling (e.g. 'A', 'F#', 'Bb')
        octave: Octave in scientific pitch notation
        reference_pitch: Frequency of A4 in Hz

    Returns:
        Frequency in Hz

    Raises:
        ValueError: If the note name is not a known pitch class
    """
    name = FLAT_TO_SHARP.get(note_name, note_name)
    if name not in NOTE_NAMES:
        raise ValueError(f"Unknown note name: {note_name!r}")

    midi_number = (octave + 1) * SEMITONES_PER_OCTAVE + NOTE_NAMES.index(name)
    return reference_pitch * 2.0 ** ((midi_number - A4_MIDI) / SEMITONES_PER_OCTAVE)


def format_note(note: NoteInfo, use_flats: bool = False) -> str:
    """Format a note in scientific pitch notation.

    Args:
        note: The note to format
        use_flats: If True, use flat notes (e.g., 'Bb') instead of sharps (e.g., 'A#')

    Returns:
        Note name with octave (e.g., 'A4', 'C#4', 'Bb3')
    """
    name = note.note_name
    if use_flats and name in SHARP_TO_FLAT:
        name = SHARP_TO_FLAT[name]
    return f"{name}{note.octave}"


def format_cents(cents: int) -> str:
    """Signed cents string, e.g. '+3', '-12', '0'."""
    return f"{cents:+d}" if cents else "0"
