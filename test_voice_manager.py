#!/usr/bin/env python3
"""ABOUTME: Tests for the shared signal graph and per-note voice chains.
ABOUTME: Builds a real audio context at a low sample rate and renders it to advance time."""

import math
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from music.audio_graph import AudioContext, AutomationEvent
from music.envelope import PEAK_LEVEL
from music.notes import Note, note_by_name
from music.parameters import Envelope, LFOTarget, Oscillator, ParameterStore
from music.signal_graph import SignalGraph
from music.voice_manager import FORCE_STOP_SECONDS, VoiceManager

SAMPLE_RATE = 8000


def build(**overrides):
    ctx = AudioContext(SAMPLE_RATE)
    store = ParameterStore(**overrides)
    graph = SignalGraph(ctx, store)
    graph.initialize()
    return ctx, store, graph, VoiceManager(ctx, graph, store)


# ── Signal graph ─────────────────────────────────────────────────

def test_initialize_wires_shared_nodes():
    ctx, store, graph, _ = build()
    assert graph.main_gain.connections == (ctx.destination,)
    assert graph.filter.connections == (graph.delay, graph.main_gain)
    assert graph.delay.connections == (graph.feedback, graph.main_gain)
    assert graph.feedback.connections == (graph.delay,)
    assert graph.lfo.connections == (graph.lfo_gain,)
    assert graph.lfo_gain.connections == (graph.filter.frequency,)
    assert graph.lfo.start_time == 0.0
    assert graph.filter.type == "lowpass"
    assert graph.filter.frequency.value == store.filter.frequency_hz
    assert graph.main_gain.gain.value == store.amp.level


def test_lfo_routing_keeps_a_single_edge():
    _, _, graph, _ = build()
    for target in (LFOTarget.OSCILLATOR1, LFOTarget.FILTER, LFOTarget.OSCILLATOR2,
                   LFOTarget.FILTER, LFOTarget.FILTER):
        graph.set_lfo_routing(target, 100.0, "sine", 2.0)
    assert graph.lfo_gain.connections == (graph.filter.frequency,)
    assert graph.filter.frequency.inputs == (graph.lfo_gain,)
    assert graph.lfo.type == "sine"
    assert graph.lfo_gain.gain.value == 100.0
    assert graph.lfo.frequency.value == 2.0


def test_setters_skip_unchanged_values():
    _, store, graph, _ = build()
    before = graph.filter.frequency.events, graph.filter.Q.events
    graph.set_filter(store.filter.frequency_hz, store.filter.q)
    assert (graph.filter.frequency.events, graph.filter.Q.events) == before

    graph.set_filter(800.0, store.filter.q)
    assert graph.filter.frequency.value == 800.0
    assert graph.filter.Q.events == before[1]


def test_delay_and_main_level():
    _, _, graph, _ = build()
    graph.set_delay(0.25, 0.5)
    graph.set_main_level(0.7)
    assert graph.delay.delay_time.value == 0.25
    assert graph.feedback.gain.value == 0.5
    assert math.isclose(graph.main_gain.gain.value, 0.7)


# ── Voices ───────────────────────────────────────────────────────

def test_invalid_notes_create_nothing():
    _, _, _, vm = build()
    assert vm.create_voice(None) is None
    assert vm.create_voice(Note("X", 0.0)) is None
    assert vm.create_voice(Note("X", -5.0)) is None
    assert vm.create_voice(Note("X", float("nan"))) is None
    assert vm.create_voice(Note("X", "loud")) is None
    assert vm.voices == {}


def test_voice_chain_reads_current_parameters():
    _, _, graph, vm = build(oscillator1=Oscillator("triangle", 25.0, 2.0))
    voice = vm.create_voice(note_by_name("A4"))
    assert voice.oscillator1.type == "triangle"
    assert voice.oscillator1.frequency.value == 880.0
    assert voice.oscillator1.detune.value == 25.0
    assert voice.oscillator2.type == "square"
    assert voice.oscillator2.frequency.value == 440.0
    assert voice.oscillator1.connections == (voice.vca,)
    assert voice.vca.connections == (graph.filter,)
    assert vm.sounding_notes() == ["A4"]


def test_envelope_endpoints_on_vca():
    _, _, _, vm = build(envelope=Envelope(attack=0.1, decay=0.5, sustain=0.2, release=0.0))
    voice = vm.create_voice(note_by_name("C4"))
    events = voice.vca.gain.events
    assert events[0] == AutomationEvent("set", 0.0, 0.0)
    assert events[1].value == PEAK_LEVEL and math.isclose(events[1].time, 0.1)
    assert events[2].value == 0.2 and math.isclose(events[2].time, 0.6)
    assert len(events) == 3


def test_sustain_holds_after_decay():
    ctx, _, _, vm = build(envelope=Envelope(attack=0.01, decay=0.02, sustain=0.2))
    voice = vm.create_voice(note_by_name("C4"))
    ctx.render(800)
    assert voice.vca.gain.value == 0.2


def test_release_uses_value_at_note_off():
    _, store, _, vm = build(envelope=Envelope(release=0.5))
    note = note_by_name("C4")
    voice = vm.create_voice(note)
    store.update("envelope", release=2.0)
    vm.destroy_voice(note)
    assert voice.end_time == 2.0
    assert voice.vca.gain.events[-1] == AutomationEvent("linear", 0.0, 2.0)
    assert voice.oscillator1.stop_time == 2.0
    assert vm.sounding_notes() == []


def test_destroy_is_idempotent_and_tolerates_missing_notes():
    _, store, _, vm = build(envelope=Envelope(release=1.0))
    vm.destroy_voice(note_by_name("D4"))
    note = note_by_name("C4")
    voice = vm.create_voice(note)
    vm.destroy_voice(note)
    events = voice.vca.gain.events
    store.update("envelope", release=5.0)
    vm.destroy_voice(note)
    assert voice.vca.gain.events == events
    assert voice.end_time == 1.0


def test_delayed_release_keeps_note_sounding():
    _, _, _, vm = build()
    note = note_by_name("C4")
    voice = vm.create_voice(note)
    vm.destroy_voice(note, delay=1.0)
    assert voice.release_time == 1.0
    assert vm.sounding_notes() == ["C4"]


def test_retrigger_keeps_one_voice_per_note():
    ctx, _, graph, vm = build()
    note = note_by_name("E4")
    first = vm.create_voice(note)
    second = vm.create_voice(note)
    assert vm.voices == {"E4": second}
    assert first.end_time == FORCE_STOP_SECONDS
    assert set(graph.filter.inputs) == {first.vca, second.vca}

    ctx.render(80)
    vm.reap()
    assert first.vca.connections == ()
    assert graph.filter.inputs == (second.vca,)


def test_finished_voices_are_reaped():
    ctx, _, graph, vm = build()
    note = note_by_name("C4")
    vm.create_voice(note)
    vm.destroy_voice(note)
    ctx.render(128)
    vm.reap()
    assert vm.voices == {}
    assert graph.filter.inputs == ()


def test_lfo_follows_oscillator_target_on_new_voices():
    _, store, graph, vm = build()
    store.update("lfo", target=LFOTarget.OSCILLATOR1, depth=50.0)
    lfo = store.lfo
    graph.set_lfo_routing(lfo.target, lfo.depth, lfo.wave_shape, lfo.frequency_hz)
    assert graph.lfo_gain.connections == ()

    a = vm.create_voice(note_by_name("C4"))
    b = vm.create_voice(note_by_name("E4"))
    assert graph.lfo_gain.connections == (a.oscillator1.detune, b.oscillator1.detune)

    graph.set_lfo_routing(LFOTarget.FILTER, lfo.depth, lfo.wave_shape, lfo.frequency_hz)
    assert graph.lfo_gain.connections == (graph.filter.frequency,)


def test_stop_all_releases_every_voice():
    _, _, _, vm = build()
    for name in ("C4", "E4", "G4"):
        vm.create_voice(note_by_name(name))
    vm.stop_all()
    assert vm.sounding_notes() == []


def test_rendering_voices_produces_sound():
    ctx, _, _, vm = build()
    vm.create_voice(note_by_name("A3"))
    out = ctx.render(1024)
    assert abs(out).max() > 0.0
    assert abs(out).max() < 1.0


def test_reaped_voices_drop_their_lfo_edges():
    ctx, store, graph, vm = build()
    store.update("lfo", target=LFOTarget.OSCILLATOR1, depth=50.0)
    lfo = store.lfo
    graph.set_lfo_routing(lfo.target, lfo.depth, lfo.wave_shape, lfo.frequency_hz)

    note = note_by_name("C4")
    vm.create_voice(note)
    vm.create_voice(note)  # retrigger retires the first chain
    vm.create_voice(note_by_name("E4"))
    assert len(graph.lfo_gain.connections) == 3

    vm.stop_all()
    ctx.render(128)
    vm.reap()
    assert vm.voices == {}
    assert graph.lfo_gain.connections == ()


def main():
    tests = [(name, fn) for name, fn in sorted(globals().items()) if name.startswith("test_")]
    failed = 0
    for name, fn in tests:
        try:
            fn()
            print(f"✓ {name}")
        except Exception as e:
            failed += 1
            print(f"✗ {name}: {e!r}")
    print(f"\n{len(tests) - failed}/{len(tests)} passed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
