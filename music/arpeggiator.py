"""Arpeggiator clock: round-robin over the held notes at the control tempo."""
from typing import Callable, Optional

from music.clock import PeriodicTask
from music.key_tracker import KeyTracker
from music.notes import Note
from music.parameters import ParameterStore
from music.voice_manager import VoiceManager

# Every arp note starts releasing this long after it is triggered.
ARP_NOTE_SECONDS = 1.0


class ArpClock:
    """Runs iff arp is enabled and at least one note is held.

    ``refresh()`` must be called after anything that can change that
    condition (arp toggle, held set changes, tempo edits). Arming always
    restarts from the first held note.
    """

    def __init__(self, call_later, parameters: ParameterStore,
                 keys: KeyTracker, voices: VoiceManager):
        self.parameters = parameters
        self.keys = keys
        self.voices = voices
        self.enabled = False
        self.cursor: Optional[int] = None
        self._task = PeriodicTask(call_later)
        self.on_step: Optional[Callable[[int, Note], None]] = None

    @property
    def running(self) -> bool:
        return self._task.active

    def period(self) -> float:
        """Seconds per beat at the tempo in effect right now."""
        return 60.0 / self.parameters.control.tempo_bpm

    def set_enabled(self, enabled: bool):
        if enabled == self.enabled:
            return
        self.enabled = enabled
        if enabled:
            self.cursor = 0
        else:
            self._task.cancel()
            self.cursor = None
        self.refresh()

    def refresh(self):
        should_run = self.enabled and bool(self.keys.held)
        if should_run and not self._task.active:
            self.cursor = 0
            self._task.start(self.period, self._tick)
        elif not should_run and self._task.active:
            self._task.cancel()

    def stop(self):
        self._task.cancel()

    def _tick(self):
        held = self.keys.held
        if not held:
            self._task.cancel()
            return
        index = self.cursor if self.cursor is not None and self.cursor < len(held) else 0
        note = held[index]
        self.voices.create_voice(note)
        self.voices.destroy_voice(note, delay=ARP_NOTE_SECONDS)
        self.cursor = (index + 1) % len(held)
        if self.on_step:
            self.on_step(index, note)
