#!/usr/bin/env python3
"""ABOUTME: Tests for the envelope timing model and the note table.
ABOUTME: Pure functions only; no audio nodes are rendered here."""

import math
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from music.audio_graph import AudioContext, AudioParam, AutomationEvent
from music.envelope import (
    PEAK_LEVEL, GainPoint, apply_schedule, attack_decay_schedule, release_schedule,
)
from music.notes import KEYS, NOTES, Note, note_by_name, note_for_key, note_for_midi


def test_attack_decay_points():
    points = attack_decay_schedule(0.1, 0.5, 0.2, 0.0)
    assert points[0] == GainPoint(0.0, 0.0, False)
    assert points[1].ramp and points[1].value == PEAK_LEVEL
    assert math.isclose(points[1].time, 0.1)
    assert points[2].ramp and points[2].value == 0.2
    assert math.isclose(points[2].time, 0.6)


def test_attack_decay_is_offset_by_note_on_time():
    points = attack_decay_schedule(1.0, 2.0, 0.5, 10.0)
    assert [p.time for p in points] == [10.0, 11.0, 13.0]


def test_zero_attack_and_decay_collapse_to_note_on():
    points = attack_decay_schedule(0.0, 0.0, 0.3, 4.0)
    assert [p.time for p in points] == [4.0, 4.0, 4.0]
    assert points[-1].value == 0.3


def test_release_ramps_to_silence():
    assert release_schedule(2.0, 5.0) == [GainPoint(7.0, 0.0, True)]
    assert release_schedule(0.0, 5.0) == [GainPoint(5.0, 0.0, True)]


def test_apply_schedule_writes_automation():
    ctx = AudioContext(1000)
    param = AudioParam(ctx, 1.0)
    apply_schedule(param, attack_decay_schedule(1.0, 1.0, 0.05, 0.0))
    assert param.events == (
        AutomationEvent("set", 0.0, 0.0),
        AutomationEvent("linear", PEAK_LEVEL, 1.0),
        AutomationEvent("linear", 0.05, 2.0),
    )
    assert math.isclose(param.value_at(0.5), PEAK_LEVEL / 2)
    assert param.value_at(10.0) == 0.05


def test_note_table_range():
    assert NOTES[0] == Note("C2", 65.41)
    assert NOTES[-1] == Note("C7", 2093.0)
    assert note_by_name("A4") == Note("A4", 440.0)
    assert note_by_name("H4") is None


def test_keyboard_map():
    assert note_for_key("z").name == "C3"
    assert note_for_key("y") == Note("A4", 440.0)
    assert note_for_key(",") == note_for_key("comma") == note_for_key("q")
    assert note_for_key("i").name == "C5"
    assert note_for_key("p") is None
    assert len({KEYS[k] for k in KEYS}) == 25


def test_midi_lookup():
    assert note_for_midi(60).name == "C4"
    assert note_for_midi(69).frequency == 440.0
    assert note_for_midi(10) is None
    assert note_for_midi(200) is None


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
