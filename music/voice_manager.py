"""Per-note signal chains: two oscillators into a VCA into the shared filter."""
import math
from typing import Dict, List, Optional

from music.audio_graph import AudioContext
from music.envelope import apply_schedule, attack_decay_schedule, release_schedule
from music.notes import Note
from music.parameters import LFOTarget, ParameterStore
from music.signal_graph import SignalGraph

# Fade used when a voice is thrown away to make room for a retrigger.
FORCE_STOP_SECONDS = 0.005


class Voice:
    """One sounding note. Owned by VoiceManager, never shared."""

    def __init__(self, note: Note, oscillator1, oscillator2, vca):
        self.note = note
        self.oscillator1 = oscillator1
        self.oscillator2 = oscillator2
        self.vca = vca
        self.release_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def is_releasing(self, now: float) -> bool:
        return self.release_time is not None and self.release_time <= now

    def is_finished(self, now: float) -> bool:
        return self.end_time is not None and self.end_time <= now

    def disconnect(self):
        self.oscillator1.disconnect()
        self.oscillator2.disconnect()
        self.vca.disconnect()

    def __repr__(self):
        return f"Voice({self.note.name!r}, release_time={self.release_time!r})"


class VoiceManager:
    """Keeps at most one Voice per note name."""

    def __init__(self, context: AudioContext, graph: SignalGraph, parameters: ParameterStore):
        self.context = context
        self.graph = graph
        self.parameters = parameters
        self.voices: Dict[str, Voice] = {}
        # Force-stopped voices fading out; disconnected once silent.
        self._retired: List[Voice] = []

    def get(self, note_name: str) -> Optional[Voice]:
        return self.voices.get(note_name)

    def sounding_notes(self) -> List[str]:
        """Names of voices not yet in their release phase."""
        now = self.context.current_time
        return [name for name, v in self.voices.items() if not v.is_releasing(now)]

    def create_voice(self, note: Optional[Note], osc1=None, osc2=None, envelope=None, lfo=None) -> Optional[Voice]:
        """Build and start a chain for ``note``.

        Parameter records default to the store's current ones; nothing is
        captured beyond this call.
        """
        if note is None or not _valid_frequency(note.frequency):
            return None
        self.reap()
        if note.name in self.voices:
            self._force_stop(self.voices.pop(note.name))

        osc1 = osc1 or self.parameters.oscillator1
        osc2 = osc2 or self.parameters.oscillator2
        envelope = envelope or self.parameters.envelope
        lfo = lfo or self.parameters.lfo
        ctx = self.context
        now = ctx.current_time

        oscillator1 = self._build_oscillator(note, osc1, now)
        if lfo.target is LFOTarget.OSCILLATOR1:
            self.graph.modulate(lfo.target, oscillator1.detune)
        oscillator2 = self._build_oscillator(note, osc2, now)
        if lfo.target is LFOTarget.OSCILLATOR2:
            self.graph.modulate(lfo.target, oscillator2.detune)

        vca = ctx.create_gain()
        apply_schedule(vca.gain, attack_decay_schedule(
            envelope.attack, envelope.decay, envelope.sustain, now))

        oscillator1.connect(vca)
        oscillator2.connect(vca)
        vca.connect(self.graph.voice_input)

        voice = Voice(note, oscillator1, oscillator2, vca)
        self.voices[note.name] = voice
        return voice

    def destroy_voice(self, note: Note, delay: float = 0.0):
        """Start the release ramp ``delay`` seconds from now.

        The release time is read from the store at call time, so edits made
        while the note was held apply. No-op if the note has no voice or is
        already releasing.
        """
        voice = self.voices.get(note.name)
        now = self.context.current_time
        if voice is None or voice.is_releasing(now):
            return
        start = now + max(0.0, delay)
        release = self.parameters.envelope.release
        voice.vca.gain.cancel_and_hold_at_time(start)
        apply_schedule(voice.vca.gain, release_schedule(release, start))
        voice.release_time = start
        voice.end_time = start + release
        voice.oscillator1.stop(voice.end_time)
        voice.oscillator2.stop(voice.end_time)

    def stop_all(self):
        for voice in list(self.voices.values()):
            self.destroy_voice(voice.note)

    def reap(self):
        """Disconnect chains whose release has run out."""
        now = self.context.current_time
        for name in [n for n, v in self.voices.items() if v.is_finished(now)]:
            self._teardown(self.voices.pop(name))
        still_fading = []
        for voice in self._retired:
            if voice.is_finished(now):
                self._teardown(voice)
            else:
                still_fading.append(voice)
        self._retired = still_fading

    def _teardown(self, voice: Voice):
        # The LFO edge into a detune param belongs to the shared depth gain.
        lfo_gain = self.graph.lfo_gain
        lfo_gain.disconnect(voice.oscillator1.detune)
        lfo_gain.disconnect(voice.oscillator2.detune)
        voice.disconnect()

    def _build_oscillator(self, note: Note, params, now: float):
        osc = self.context.create_oscillator()
        osc.type = params.wave_shape
        osc.detune.set_value_at_time(params.detune_cents, now)
        osc.frequency.set_value_at_time(note.frequency * params.octave_multiplier, now)
        osc.start(now)
        return osc

    def _force_stop(self, voice: Voice):
        now = self.context.current_time
        voice.vca.gain.cancel_and_hold_at_time(now)
        voice.vca.gain.linear_ramp_to_value_at_time(0.0, now + FORCE_STOP_SECONDS)
        voice.release_time = now
        voice.end_time = now + FORCE_STOP_SECONDS
        voice.oscillator1.stop(voice.end_time)
        voice.oscillator2.stop(voice.end_time)
        self._retired.append(voice)


def _valid_frequency(frequency) -> bool:
    try:
        return math.isfinite(frequency) and frequency > 0
    except TypeError:
        return False
