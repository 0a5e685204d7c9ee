#!/usr/bin/env python3
"""ABOUTME: Tests for held-note tracking, latch and the arp hand-off.
ABOUTME: Uses a recording stand-in for the voice manager so the call sequence is visible."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from music.key_tracker import KeyTracker
from music.notes import note_by_name

C4, E4, G4 = note_by_name("C4"), note_by_name("E4"), note_by_name("G4")


class RecordingVoices:
    def __init__(self):
        self.calls = []
        self.sounding = set()

    def create_voice(self, note):
        self.calls.append(("create", note.name))
        self.sounding.add(note.name)

    def destroy_voice(self, note, delay=0.0):
        self.calls.append(("destroy", note.name))
        self.sounding.discard(note.name)


def build():
    voices = RecordingVoices()
    changes = []
    keys = KeyTracker(voices, on_change=lambda: changes.append(list(keys.held)))
    return keys, voices, changes


def test_press_and_release():
    keys, voices, changes = build()
    keys.press(C4)
    keys.press(E4)
    assert keys.held == [C4, E4]
    assert voices.sounding == {"C4", "E4"}
    keys.release(C4)
    assert keys.held == [E4]
    assert voices.calls == [("create", "C4"), ("create", "E4"), ("destroy", "C4")]
    assert len(changes) == 3


def test_repeat_press_without_latch_is_ignored():
    keys, voices, _ = build()
    keys.press(C4)
    keys.press(C4)
    assert keys.held == [C4]
    assert voices.calls == [("create", "C4")]


def test_release_of_unheld_note_still_stops_voice():
    keys, voices, changes = build()
    keys.release(G4)
    assert voices.calls == [("destroy", "G4")]
    assert changes == []


def test_latch_ignores_release_and_toggles_on_repress():
    keys, voices, _ = build()
    keys.set_latch(True)
    keys.press(C4)
    keys.press(E4)
    keys.release(C4)
    assert keys.held == [C4, E4]
    assert voices.sounding == {"C4", "E4"}

    keys.press(C4)
    assert keys.held == [E4]
    assert voices.sounding == {"E4"}


def test_latch_off_releases_everything():
    keys, voices, _ = build()
    keys.set_latch(True)
    for note in (C4, E4, G4):
        keys.press(note)
    keys.set_latch(False)
    assert keys.held == []
    assert voices.sounding == set()


def test_latch_on_keeps_current_notes():
    keys, voices, _ = build()
    keys.press(C4)
    keys.set_latch(True)
    assert keys.held == [C4]
    assert voices.sounding == {"C4"}


def test_release_all_ignores_latch():
    keys, voices, changes = build()
    keys.set_latch(True)
    keys.press(C4)
    keys.press(E4)
    keys.release_all()
    assert keys.held == []
    assert voices.sounding == set()
    assert changes[-1] == []


def test_arp_on_silences_held_notes_and_queues_new_ones():
    keys, voices, _ = build()
    keys.press(C4)
    keys.set_arp(True)
    assert voices.sounding == set()
    keys.press(E4)
    assert keys.held == [C4, E4]
    assert ("create", "E4") not in voices.calls


def test_arp_off_with_latch_resounds_held_notes():
    keys, voices, _ = build()
    keys.set_latch(True)
    keys.set_arp(True)
    keys.press(C4)
    keys.press(G4)
    assert voices.sounding == set()
    keys.set_arp(False)
    assert voices.sounding == {"C4", "G4"}


def test_arp_off_without_latch_leaves_voices_alone():
    keys, voices, _ = build()
    keys.set_arp(True)
    keys.press(C4)
    keys.set_arp(False)
    assert voices.sounding == set()
    assert keys.held == [C4]


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
