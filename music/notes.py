"""Static note table: note name → frequency, computer key → note name."""
from typing import NamedTuple, Optional

NOTE_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']

LOWEST_MIDI_NOTE = 36   # C2
HIGHEST_MIDI_NOTE = 96  # C7


class Note(NamedTuple):
    """An immutable pitch. Identity is the name."""
    name: str
    frequency: float


def midi_to_name(midi_note: int) -> str:
    return f"{NOTE_NAMES[midi_note % 12]}{(midi_note // 12) - 1}"


def midi_to_frequency(midi_note: int) -> float:
    return round(440.0 * (2.0 ** ((midi_note - 69) / 12.0)), 2)


NOTES = tuple(
    Note(midi_to_name(n), midi_to_frequency(n))
    for n in range(LOWEST_MIDI_NOTE, HIGHEST_MIDI_NOTE + 1)
)

_NOTES_BY_NAME = {note.name: note for note in NOTES}

# Two rows laid out like a piano: bottom row C3..C4, top row C4..C5.
KEYS = {
    # Lower octave
    'z': 'C3', 's': 'C#3', 'x': 'D3', 'd': 'D#3', 'c': 'E3', 'v': 'F3',
    'g': 'F#3', 'b': 'G3', 'h': 'G#3', 'n': 'A3', 'j': 'A#3', 'm': 'B3',
    ',': 'C4', 'comma': 'C4',
    # Upper octave
    'q': 'C4', '2': 'C#4', 'w': 'D4', '3': 'D#4', 'e': 'E4', 'r': 'F4',
    '5': 'F#4', 't': 'G4', '6': 'G#4', 'y': 'A4', '7': 'A#4', 'u': 'B4',
    'i': 'C5',
}


def note_by_name(name: str) -> Optional[Note]:
    return _NOTES_BY_NAME.get(name)


def note_for_key(key: str) -> Optional[Note]:
    """Resolve a keyboard key identifier to a Note, or None if unmapped."""
    name = KEYS.get(key)
    if name is None:
        return None
    return _NOTES_BY_NAME.get(name)


def note_for_midi(midi_note: int) -> Optional[Note]:
    """Resolve a MIDI note number to a Note; outside the table → None."""
    return _NOTES_BY_NAME.get(midi_to_name(midi_note)) if 0 <= midi_note <= 127 else None
