"""Held-note tracking with latch and arpeggiator hand-off."""
from typing import Callable, List, Optional

from music.notes import Note
from music.voice_manager import VoiceManager


class KeyTracker:
    """State machine over (held notes in press order, latch, arp).

    With arp on, presses only queue notes; the arp clock sounds them.
    ``on_change`` fires after every mutation of the held set so the owner
    can re-arm the arp clock.
    """

    def __init__(self, voices: VoiceManager, on_change: Optional[Callable[[], None]] = None):
        self.voices = voices
        self.on_change = on_change
        self.held: List[Note] = []
        self.latch = False
        self.arp = False

    def is_held(self, note: Note) -> bool:
        return any(n.name == note.name for n in self.held)

    def press(self, note: Note):
        if self.is_held(note):
            if self.latch:
                # Pressing a latched note again toggles it off.
                self.release(note, force=True)
            return
        self.held.append(note)
        if not self.arp:
            self.voices.create_voice(note)
        self._changed()

    def release(self, note: Note, force: bool = False):
        if self.latch and not force:
            return
        self.voices.destroy_voice(note)
        if self.is_held(note):
            self.held = [n for n in self.held if n.name != note.name]
            self._changed()

    def release_all(self):
        """Force-release everything regardless of latch (panic)."""
        for note in list(self.held):
            self.voices.destroy_voice(note)
        self.held = []
        self._changed()

    def set_latch(self, enabled: bool):
        was_enabled = self.latch
        self.latch = enabled
        if was_enabled and not enabled:
            self.release_all()

    def set_arp(self, enabled: bool):
        if enabled == self.arp:
            return
        self.arp = enabled
        if enabled:
            # The clock re-triggers them one at a time.
            for note in self.held:
                self.voices.destroy_voice(note)
        elif self.latch:
            # Nothing else would sound latched notes once the clock stops.
            for note in self.held:
                self.voices.create_voice(note)

    def _changed(self):
        if self.on_change:
            self.on_change()
