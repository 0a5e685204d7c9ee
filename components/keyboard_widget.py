"""Text keyboard showing held notes and the arpeggiator's current note."""
from typing import Optional, Set

from textual.widgets import Static

from music.notes import NOTE_NAMES


class KeyboardWidget(Static):
    """Two octaves from C3, one column per semitone.

    ○ marks a held note, ● the note the arpeggiator will play next.
    """

    START_OCTAVE = 3
    NUM_OCTAVES = 2
    BLACK_KEYS = {1, 3, 6, 8, 10}  # C#, D#, F#, G#, A#

    DEFAULT_CSS = """
    KeyboardWidget {
        height: auto;
        min-height: 4;
        content-align: center middle;
    }
    """

    def __init__(self, **kwargs):
        super().__init__(self.build_display(set(), None), **kwargs)

    @classmethod
    def build_display(cls, held: Set[str], arp_note: Optional[str]) -> str:
        black_row = ""
        white_row = ""
        mark_row = ""
        for octave in range(cls.START_OCTAVE, cls.START_OCTAVE + cls.NUM_OCTAVES):
            for i, name in enumerate(NOTE_NAMES):
                full_name = f"{name}{octave}"
                if full_name == arp_note:
                    mark = "●"
                elif full_name in held:
                    mark = "○"
                else:
                    mark = " "
                if i in cls.BLACK_KEYS:
                    black_row += "▓" + mark
                    white_row += "  "
                else:
                    black_row += "  "
                    white_row += name + " "
                mark_row += (" " + mark) if i not in cls.BLACK_KEYS else "  "
        return "\n".join([black_row, white_row, mark_row])

    def update_notes(self, held: Set[str], arp_note: Optional[str] = None):
        self.update(self.build_display(held, arp_note))
