"""Polyphonic subtractive synth engine: wiring, input routing and audio output."""
from dataclasses import replace
from typing import List, Optional

import numpy as np

from music.arpeggiator import ArpClock
from music.audio_graph import AudioContext
from music.clock import ThreadingScheduler
from music.key_tracker import KeyTracker
from music.notes import Note, note_for_key
from music.parameters import (
    Amp, Control, Delay, Envelope, Filter, LFO, Oscillator, ParameterStore,
)
from music.signal_graph import SignalGraph
from music.voice_manager import VoiceManager

# Check for PyAudio availability
try:
    import pyaudio
    AUDIO_AVAILABLE = True
except ImportError:
    AUDIO_AVAILABLE = False
    pyaudio = None

PANIC_KEY = "escape"


class SynthEngine:
    """Owns the audio context and every engine component.

    All public methods take the context lock, so UI events, MIDI polling,
    clock ticks and the audio callback never interleave mid-operation.
    """

    def __init__(self, sample_rate: int = 48000, buffer_size: int = 256,
                 scheduler=None, start_audio: bool = True):
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.audio = None
        self.stream = None
        self.running = False

        self.context = AudioContext(sample_rate)
        self.parameters = ParameterStore()
        self.graph = SignalGraph(self.context, self.parameters)
        self.graph.initialize()
        self.voices = VoiceManager(self.context, self.graph, self.parameters)
        self.keys = KeyTracker(self.voices, on_change=self._on_held_change)
        # Clock ticks must serialise with the audio thread like everything else.
        self.scheduler = scheduler or ThreadingScheduler()
        self.scheduler.lock = self.context.lock
        self.arp = ArpClock(self.scheduler.call_later, self.parameters, self.keys, self.voices)

        if start_audio and AUDIO_AVAILABLE and pyaudio is not None:
            try:
                self.audio = pyaudio.PyAudio()
                default_output = self.audio.get_default_output_device_info()
                self.stream = self.audio.open(
                    format=pyaudio.paInt16, channels=2, rate=self.sample_rate,
                    output=True, output_device_index=default_output['index'],
                    frames_per_buffer=self.buffer_size, stream_callback=self._audio_callback, start=False
                )
                self.stream.start_stream()
                self.running = True
            except Exception as e:
                print(f"Audio initialization failed: {e}")
                self.running = False

    # ── Audio thread ─────────────────────────────────────────────

    def _audio_callback(self, in_data, frame_count, time_info, status):
        try:
            mono = self.context.render(frame_count)
            out = np.empty(frame_count * 2, dtype=np.int16)
            scaled = np.clip(mono * 32767, -32767, 32767)
            out[0::2] = scaled
            out[1::2] = scaled
            return (out.tobytes(), pyaudio.paContinue)
        except Exception as e:
            print(f"Audio callback error: {e}")
            return (np.zeros(frame_count * 2, dtype=np.int16).tobytes(), pyaudio.paContinue)

    # ── Parameter setters (one per category, full replacement) ──

    def set_oscillator1(self, osc: Oscillator):
        with self.context.lock:
            self.parameters.replace("oscillator1", osc)

    def set_oscillator2(self, osc: Oscillator):
        with self.context.lock:
            self.parameters.replace("oscillator2", osc)

    def set_lfo(self, lfo: LFO):
        with self.context.lock:
            _, new = self.parameters.replace("lfo", lfo)
            self.graph.set_lfo_routing(new.target, new.depth, new.wave_shape, new.frequency_hz)

    def set_amp(self, amp: Amp):
        with self.context.lock:
            _, new = self.parameters.replace("amp", amp)
            self.graph.set_main_level(new.level)

    def set_filter(self, flt: Filter):
        with self.context.lock:
            _, new = self.parameters.replace("filter", flt)
            self.graph.set_filter(new.frequency_hz, new.q)

    def set_envelope(self, envelope: Envelope):
        # Read live by the voice manager; nothing to push.
        with self.context.lock:
            self.parameters.replace("envelope", envelope)

    def set_delay(self, delay: Delay):
        with self.context.lock:
            _, new = self.parameters.replace("delay", delay)
            self.graph.set_delay(new.time_seconds, new.feedback)

    def set_control(self, control: Control):
        with self.context.lock:
            old, new = self.parameters.replace("control", control)
            if new.latch != old.latch:
                self.keys.set_latch(new.latch)
            if new.arp != old.arp:
                self.keys.set_arp(new.arp)
                self.arp.set_enabled(new.arp)
            if new.tempo_bpm != old.tempo_bpm:
                # Takes effect on the next tick; refresh only re-checks arming.
                self.arp.refresh()

    def update(self, category: str, **changes):
        """Edit a few fields of one category through the matching setter."""
        setter = getattr(self, _SETTERS[category])
        with self.context.lock:
            current = self.parameters.get(category)
            setter(replace(current, **changes))

    # ── Keyboard / touch input ───────────────────────────────────

    def key_down(self, key: str):
        if key == PANIC_KEY:
            self.panic()
            return
        note = note_for_key(key)
        if note is None:
            return
        with self.context.lock:
            self.voices.reap()
            self.keys.press(note)

    def key_up(self, key: str):
        note = note_for_key(key)
        if note is None:
            return
        with self.context.lock:
            self.voices.reap()
            self.keys.release(note)

    def key_repeat(self, key: str) -> bool:
        """A press arriving while the key still counts as down.

        Terminals cannot tell auto-repeat from a fresh press, so under latch
        a held note toggles off like any re-press. Returns True when it did;
        otherwise the key just stays down.
        """
        note = note_for_key(key)
        if note is None:
            return False
        with self.context.lock:
            if not (self.keys.latch and self.keys.is_held(note)):
                return False
            self.voices.reap()
            self.keys.press(note)
            return True

    # Touch input behaves exactly like the keyboard.
    touch_start = key_down
    touch_end = key_up

    def panic(self):
        with self.context.lock:
            self.keys.release_all()

    # ── MIDI contract (bypasses the key tracker) ─────────────────

    def note_on(self, note: Note):
        with self.context.lock:
            self.voices.create_voice(note)

    def note_off(self, note: Note):
        with self.context.lock:
            self.voices.destroy_voice(note)
            self.voices.reap()

    # ── Queries ──────────────────────────────────────────────────

    def held_notes(self) -> List[Note]:
        with self.context.lock:
            return list(self.keys.held)

    def sounding_notes(self) -> List[str]:
        with self.context.lock:
            self.voices.reap()
            return self.voices.sounding_notes()

    def arp_cursor(self) -> Optional[int]:
        return self.arp.cursor

    def is_available(self) -> bool:
        return AUDIO_AVAILABLE and self.running

    def close(self):
        with self.context.lock:
            self.arp.stop()
            self.voices.stop_all()
        self.running = False
        if self.stream:
            self.stream.stop_stream()
            self.stream.close()
        if self.audio:
            self.audio.terminate()

    def _on_held_change(self):
        self.arp.refresh()


_SETTERS = {
    "oscillator1": "set_oscillator1",
    "oscillator2": "set_oscillator2",
    "lfo": "set_lfo",
    "amp": "set_amp",
    "filter": "set_filter",
    "envelope": "set_envelope",
    "delay": "set_delay",
    "control": "set_control",
}
