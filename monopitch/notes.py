"""
Equal-tempered note mapping.

Frequencies are measured in half steps above C0 (``A4 * 2**-4.75``), so the
rounded half-step count modulo 12 indexes directly into ``NOTE_NAMES``.
"""

import math
from typing import NamedTuple

from .constants import A4_REFERENCE, C0_OFFSET_OCTAVES, NOTE_NAMES, OCTAVE


class NoteInfo(NamedTuple):
    """Nearest equal-tempered note for a frequency."""
    name: str
    octave: int
    cents: float  # deviation from the nearest note, -50..+50
    half_steps: float  # fractional half steps above C0


def c0_frequency(reference: float = A4_REFERENCE) -> float:
    """Frequency of C0 for a given A4 reference."""
    return reference * 2.0 ** C0_OFFSET_OCTAVES


def half_steps_above_c0(frequency: float, reference: float = A4_REFERENCE) -> float:
    if frequency <= 0:
        raise ValueError(f"Frequency must be positive, got {frequency}")
    return OCTAVE * math.log2(frequency / c0_frequency(reference))


def note_index(frequency: float, reference: float = A4_REFERENCE) -> int:
    """Pitch class index (0 = C ... 11 = B) of the nearest note."""
    # Python's % already wraps negatives into [0, 12)
    return round(half_steps_above_c0(frequency, reference)) % OCTAVE


def frequency_to_note(frequency: float, reference: float = A4_REFERENCE) -> NoteInfo:
    """
    Map a frequency to its nearest equal-tempered note.

    Args:
        frequency: Frequency in Hz (must be positive)
        reference: Frequency of A4 in Hz

    Returns:
        NoteInfo with pitch class name, octave and cents deviation
    """
    half_steps = half_steps_above_c0(frequency, reference)
    nearest = round(half_steps)
    return NoteInfo(
        name=NOTE_NAMES[nearest % OCTAVE],
        octave=nearest // OCTAVE,
        cents=100.0 * (half_steps - nearest),
        half_steps=half_steps,
    )


def note_frequency(name: str, octave: int = 4, reference: float = A4_REFERENCE) -> float:
    """Equal-tempered frequency of ``name`` in ``octave`` (e.g. "A", 4 -> 440 Hz)."""
    try:
        index = NOTE_NAMES.index(name)
    except ValueError:
        raise ValueError(f"Unknown note name: {name!r}") from None
    return c0_frequency(reference) * 2.0 ** ((octave * OCTAVE + index) / OCTAVE)


def boundary_frequency(lower: str, octave: int = 4, reference: float = A4_REFERENCE) -> float:
    """Frequency halfway (in pitch) between ``lower`` and the next semitone up."""
    return note_frequency(lower, octave, reference) * 2.0 ** (0.5 / OCTAVE)
