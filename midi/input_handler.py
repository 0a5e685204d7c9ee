"""MIDI input: poll a port and forward notes straight to the voice contract."""
from threading import Lock
from typing import Callable, Optional, Set

import mido

from music.notes import Note, note_for_midi


class MIDIInputHandler:
    """Reads note messages and turns them into Note values.

    MIDI bypasses the key tracker: callbacks are expected to be the engine's
    ``note_on`` / ``note_off`` (create / destroy a voice directly).
    """

    def __init__(self):
        self.port: Optional[mido.ports.BaseInput] = None
        self.active_notes: Set[int] = set()
        self.notes_lock = Lock()
        self._note_on_callback: Optional[Callable[[Note], None]] = None
        self._note_off_callback: Optional[Callable[[Note], None]] = None

    def open_device(self, device_name: str) -> bool:
        """Open a MIDI input port by name. Returns False on failure."""
        try:
            self.close_device()
            self.port = mido.open_input(device_name)
            return True
        except Exception as e:
            print(f"Error opening MIDI device: {e}")
            return False

    def close_device(self):
        if self.port:
            try:
                self.port.close()
            except Exception as e:
                print(f"Error closing MIDI device: {e}")
            finally:
                self.port = None

        with self.notes_lock:
            self.active_notes.clear()

    def set_callbacks(self, note_on: Callable[[Note], None], note_off: Callable[[Note], None]):
        self._note_on_callback = note_on
        self._note_off_callback = note_off

    def poll_messages(self):
        """Drain pending messages without blocking. Call this on an interval."""
        if not self.port:
            return

        try:
            for msg in self.port.iter_pending():
                self.handle_message(msg)
        except Exception as e:
            print(f"Error polling MIDI messages: {e}")

    def handle_message(self, msg):
        # note_on with velocity 0 is a note-off by convention.
        if msg.type == 'note_on' and msg.velocity > 0:
            self._handle_note_on(msg.note)
        elif msg.type == 'note_off' or (msg.type == 'note_on' and msg.velocity == 0):
            self._handle_note_off(msg.note)

    def _handle_note_on(self, midi_note: int):
        note = note_for_midi(midi_note)
        if note is None:
            return
        with self.notes_lock:
            self.active_notes.add(midi_note)
        if self._note_on_callback:
            self._note_on_callback(note)

    def _handle_note_off(self, midi_note: int):
        note = note_for_midi(midi_note)
        with self.notes_lock:
            self.active_notes.discard(midi_note)
        if note is not None and self._note_off_callback:
            self._note_off_callback(note)

    def get_active_notes(self) -> Set[int]:
        with self.notes_lock:
            return self.active_notes.copy()

    def is_device_open(self) -> bool:
        return self.port is not None
