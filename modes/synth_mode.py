"""Synth mode: play from the computer keyboard, tweak the patch, watch state."""
from typing import TYPE_CHECKING, Dict

from textual import events
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Static

from components.keyboard_widget import KeyboardWidget
from music.audio_graph import WAVE_SHAPES
from music.notes import KEYS
from music.parameters import LFOTarget
from music.synth_engine import PANIC_KEY, SynthEngine

if TYPE_CHECKING:
    from config_manager import ConfigManager
    from midi.input_handler import MIDIInputHandler

OCTAVE_STEPS = [0.25, 0.5, 1.0, 2.0, 4.0]
TIME_STEPS = [0.0, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0]
DELAY_STEPS = [0.0, 0.125, 0.25, 0.375, 0.5, 0.75]
LEVEL_STEPS = [0.0, 0.2, 0.4, 0.6, 0.8, 0.95]
LFO_TARGETS = list(LFOTarget)


def _next_in(options: list, current):
    """Cycle to the option after ``current`` (first option if not found)."""
    try:
        return options[(options.index(current) + 1) % len(options)]
    except ValueError:
        return options[0]


class SynthMode(Vertical):
    """Main (and only) play surface."""

    DEFAULT_CSS = """
    SynthMode {
        align: center middle;
        padding: 1;
    }
    #synth-params {
        width: auto;
        height: auto;
        margin-bottom: 1;
    }
    #synth-status {
        width: 100%;
        text-align: center;
        color: $text-muted;
        margin-top: 1;
    }
    """

    BINDINGS = [
        Binding("ctrl+l", "toggle_latch", "Latch", show=True),
        Binding("ctrl+r", "toggle_arp", "Arp", show=True),
        Binding("up", "tempo(5)", "Tempo +", show=False),
        Binding("down", "tempo(-5)", "Tempo -", show=False),
        Binding("right", "cutoff(1.12)", "Cutoff +", show=False),
        Binding("left", "cutoff(0.89)", "Cutoff -", show=False),
        Binding("pageup", "resonance(1)", "Q +", show=False),
        Binding("pagedown", "resonance(-1)", "Q -", show=False),
        Binding("f1", "cycle_wave('oscillator1')", "Osc1 wave", show=False),
        Binding("f2", "cycle_wave('oscillator2')", "Osc2 wave", show=False),
        Binding("f3", "cycle_octave('oscillator1')", "Osc1 octave", show=False),
        Binding("f4", "cycle_octave('oscillator2')", "Osc2 octave", show=False),
        Binding("f5", "cycle_lfo_target", "LFO target", show=False),
        Binding("f6", "cycle_wave('lfo')", "LFO wave", show=False),
        Binding("f7", "lfo_depth(-25)", "LFO depth -", show=False),
        Binding("f8", "lfo_depth(25)", "LFO depth +", show=False),
        Binding("f9", "cycle_step('delay', 'time_seconds')", "Delay time", show=False),
        Binding("f10", "cycle_step('delay', 'feedback')", "Feedback", show=False),
        Binding("f11", "cycle_step('envelope', 'attack')", "Attack", show=False),
        Binding("f12", "cycle_step('envelope', 'release')", "Release", show=False),
        Binding("ctrl+d", "cycle_step('envelope', 'decay')", "Decay", show=False),
        Binding("ctrl+s", "cycle_step('envelope', 'sustain')", "Sustain", show=False),
        Binding("left_square_bracket", "amp(-0.05)", "Vol -", show=False),
        Binding("right_square_bracket", "amp(0.05)", "Vol +", show=False),
        Binding("M", "midi_settings", "MIDI", show=True),
    ]

    can_focus = True

    def __init__(self, midi_handler: 'MIDIInputHandler', synth_engine: SynthEngine,
                 config_manager: 'ConfigManager'):
        super().__init__()
        self.midi_handler = midi_handler
        self.synth_engine = synth_engine
        self.config_manager = config_manager
        # Terminals never report key-up; each held key gets a release timer
        # that key repeat keeps pushing back.
        self._key_timers: Dict[str, object] = {}
        self.params_display = None
        self.keyboard = None
        self.status_display = None

    def compose(self):
        self.params_display = Static(self._params_text(), id="synth-params")
        self.keyboard = KeyboardWidget(id="synth-keyboard")
        self.status_display = Static(self._status_text(), id="synth-status")
        yield self.params_display
        yield self.keyboard
        yield self.status_display

    def on_mount(self):
        self.focus()
        self.midi_handler.set_callbacks(
            note_on=self.synth_engine.note_on,
            note_off=self.synth_engine.note_off,
        )
        self.set_interval(0.01, self._poll_midi)
        self.set_interval(0.1, self._refresh_displays)

    def on_unmount(self):
        self.synth_engine.panic()

    # ── Input ────────────────────────────────────────────────────

    def _poll_midi(self):
        if self.midi_handler.is_device_open():
            self.midi_handler.poll_messages()

    def on_key(self, event: events.Key) -> None:
        key = event.key
        if key == PANIC_KEY:
            event.prevent_default()
            event.stop()
            self._cancel_key_timers()
            self.synth_engine.key_down(key)
            return
        if key not in KEYS:
            return
        event.stop()
        timer = self._key_timers.get(key)
        if timer is not None:
            if self.synth_engine.key_repeat(key):
                timer.stop()
                self._key_timers.pop(key, None)
            else:
                timer.reset()
            return
        self.synth_engine.key_down(key)
        hold = self.config_manager.get_key_hold_seconds()
        self._key_timers[key] = self.set_timer(hold, lambda: self._key_released(key))

    def _key_released(self, key: str):
        self._key_timers.pop(key, None)
        self.synth_engine.key_up(key)

    def _cancel_key_timers(self):
        for timer in self._key_timers.values():
            timer.stop()
        self._key_timers.clear()

    # ── Control actions ──────────────────────────────────────────

    def action_toggle_latch(self):
        control = self.synth_engine.parameters.control
        self.synth_engine.update("control", latch=not control.latch)
        self._refresh_displays()

    def action_toggle_arp(self):
        control = self.synth_engine.parameters.control
        self.synth_engine.update("control", arp=not control.arp)
        self._refresh_displays()

    def action_tempo(self, step: float):
        control = self.synth_engine.parameters.control
        self.synth_engine.update("control", tempo_bpm=control.tempo_bpm + step)
        self._refresh_displays()

    def action_cutoff(self, factor: float):
        flt = self.synth_engine.parameters.filter
        self.synth_engine.update("filter", frequency_hz=flt.frequency_hz * factor)
        self._refresh_displays()

    def action_resonance(self, step: float):
        flt = self.synth_engine.parameters.filter
        self.synth_engine.update("filter", q=flt.q + step)
        self._refresh_displays()

    def action_cycle_wave(self, category: str):
        record = self.synth_engine.parameters.get(category)
        self.synth_engine.update(category, wave_shape=_next_in(list(WAVE_SHAPES), record.wave_shape))
        self._refresh_displays()

    def action_cycle_octave(self, category: str):
        record = self.synth_engine.parameters.get(category)
        self.synth_engine.update(category, octave_multiplier=_next_in(OCTAVE_STEPS, record.octave_multiplier))
        self._refresh_displays()

    def action_cycle_lfo_target(self):
        lfo = self.synth_engine.parameters.lfo
        self.synth_engine.update("lfo", target=_next_in(LFO_TARGETS, lfo.target))
        self._refresh_displays()

    def action_lfo_depth(self, step: float):
        lfo = self.synth_engine.parameters.lfo
        self.synth_engine.update("lfo", depth=lfo.depth + step)
        self._refresh_displays()

    def action_cycle_step(self, category: str, field: str):
        steps = {
            "time_seconds": DELAY_STEPS,
            "feedback": LEVEL_STEPS,
            "sustain": LEVEL_STEPS,
        }.get(field, TIME_STEPS)
        record = self.synth_engine.parameters.get(category)
        self.synth_engine.update(category, **{field: _next_in(steps, getattr(record, field))})
        self._refresh_displays()

    def action_amp(self, step: float):
        amp = self.synth_engine.parameters.amp
        self.synth_engine.update("amp", level=round(amp.level + step, 2))
        self._refresh_displays()

    def action_midi_settings(self):
        self.app.action_midi_settings()

    # ── Display ──────────────────────────────────────────────────

    def _params_text(self) -> str:
        p = self.synth_engine.parameters
        o1, o2, lfo, env = p.oscillator1, p.oscillator2, p.lfo, p.envelope
        lines = [
            f"OSC1  {o1.wave_shape:<8} x{o1.octave_multiplier:<5g} {o1.detune_cents:+.0f}c"
            f"    OSC2  {o2.wave_shape:<8} x{o2.octave_multiplier:<5g} {o2.detune_cents:+.0f}c",
            f"AMP   {p.amp.level:.2f}"
            f"        FILTER {p.filter.frequency_hz:7.0f} Hz  Q {p.filter.q:+.0f}",
            f"ENV   A {env.attack:.2f}  D {env.decay:.2f}  S {env.sustain:.2f}  R {env.release:.2f}",
            f"DELAY {p.delay.time_seconds:.3f}s  fb {p.delay.feedback:.2f}"
            f"    LFO {lfo.wave_shape} {lfo.frequency_hz:g} Hz  depth {lfo.depth:g} → {lfo.target.value}",
            f"CTRL  {p.control.tempo_bpm:.0f} bpm"
            f"  latch {'ON' if p.control.latch else 'off'}"
            f"  arp {'ON' if p.control.arp else 'off'}",
        ]
        return "\n".join(lines)

    def _status_text(self) -> str:
        audio = "audio ok" if self.synth_engine.is_available() else "no audio output"
        midi = "MIDI open" if self.midi_handler.is_device_open() else "no MIDI"
        held = ", ".join(n.name for n in self.synth_engine.held_notes()) or "—"
        return f"{audio} • {midi} • held: {held}"

    def _refresh_displays(self):
        if self.params_display is None:
            return
        self.params_display.update(self._params_text())
        held = self.synth_engine.held_notes()
        cursor = self.synth_engine.arp_cursor()
        arp_note = held[cursor].name if cursor is not None and cursor < len(held) else None
        self.keyboard.update_notes({n.name for n in held}, arp_note)
        self.status_display.update(self._status_text())
