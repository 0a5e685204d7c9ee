"""Parameter records and the single live store the engine reads from.

Each category is a frozen record that is replaced wholesale on every edit.
Records are normalised on the way in (clamped ranges, unknown enum values
fall back to the previous value, and so do numeric fields that are not
numbers), so an edit with bad values never raises. Passing a record of the
wrong type for a category is a programming error and raises TypeError.
"""
import math
from dataclasses import dataclass, replace
from enum import Enum

from music.audio_graph import WAVE_SHAPES


class LFOTarget(Enum):
    """Where the LFO depth gain is routed."""
    FILTER = "filter"
    OSCILLATOR1 = "osc1"
    OSCILLATOR2 = "osc2"


def _clamp(value, lo, hi, fallback):
    """Clamp to [lo, hi]; anything that is not a number keeps ``fallback``."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if math.isnan(number):
        return fallback
    return max(lo, min(hi, number))


@dataclass(frozen=True)
class Oscillator:
    wave_shape: str = "sawtooth"
    detune_cents: float = 0.0
    octave_multiplier: float = 1.0

    def normalized(self, previous: 'Oscillator') -> 'Oscillator':
        return Oscillator(
            wave_shape=self.wave_shape if self.wave_shape in WAVE_SHAPES else previous.wave_shape,
            detune_cents=_clamp(self.detune_cents, -1200.0, 1200.0, previous.detune_cents),
            octave_multiplier=_clamp(self.octave_multiplier, 0.125, 8.0, previous.octave_multiplier),
        )


@dataclass(frozen=True)
class LFO:
    frequency_hz: float = 1.0
    depth: float = 0.0
    target: LFOTarget = LFOTarget.FILTER
    wave_shape: str = "triangle"

    def normalized(self, previous: 'LFO') -> 'LFO':
        try:
            target = LFOTarget(self.target)
        except ValueError:
            target = previous.target
        return LFO(
            frequency_hz=_clamp(self.frequency_hz, 0.01, 50.0, previous.frequency_hz),
            depth=_clamp(self.depth, 0.0, 10000.0, previous.depth),
            target=target,
            wave_shape=self.wave_shape if self.wave_shape in WAVE_SHAPES else previous.wave_shape,
        )


@dataclass(frozen=True)
class Amp:
    level: float = 0.2

    def normalized(self, previous: 'Amp') -> 'Amp':
        return Amp(level=_clamp(self.level, 0.0, 1.0, previous.level))


@dataclass(frozen=True)
class Filter:
    frequency_hz: float = 1500.0
    q: float = 0.0

    def normalized(self, previous: 'Filter') -> 'Filter':
        return Filter(
            frequency_hz=_clamp(self.frequency_hz, 10.0, 20000.0, previous.frequency_hz),
            q=_clamp(self.q, -30.0, 30.0, previous.q),
        )


@dataclass(frozen=True)
class Envelope:
    attack: float = 0.0
    decay: float = 0.5
    sustain: float = 0.2
    release: float = 0.0

    def normalized(self, previous: 'Envelope') -> 'Envelope':
        return Envelope(
            attack=_clamp(self.attack, 0.0, 10.0, previous.attack),
            decay=_clamp(self.decay, 0.0, 10.0, previous.decay),
            sustain=_clamp(self.sustain, 0.0, 1.0, previous.sustain),
            release=_clamp(self.release, 0.0, 10.0, previous.release),
        )


@dataclass(frozen=True)
class Delay:
    time_seconds: float = 0.0
    feedback: float = 0.0

    def normalized(self, previous: 'Delay') -> 'Delay':
        return Delay(
            time_seconds=_clamp(self.time_seconds, 0.0, 1.0, previous.time_seconds),
            # Above unity the feedback loop would run away.
            feedback=_clamp(self.feedback, 0.0, 0.95, previous.feedback),
        )


@dataclass(frozen=True)
class Control:
    tempo_bpm: float = 90.0
    latch: bool = False
    arp: bool = False

    def normalized(self, previous: 'Control') -> 'Control':
        return Control(
            tempo_bpm=_clamp(self.tempo_bpm, 30.0, 300.0, previous.tempo_bpm),
            latch=bool(self.latch),
            arp=bool(self.arp),
        )


DEFAULTS = {
    "oscillator1": Oscillator(wave_shape="sawtooth"),
    "oscillator2": Oscillator(wave_shape="square"),
    "lfo": LFO(),
    "amp": Amp(),
    "filter": Filter(),
    "envelope": Envelope(),
    "delay": Delay(),
    "control": Control(),
}

CATEGORIES = tuple(DEFAULTS.keys())


class ParameterStore:
    """Exactly one current record per category.

    Components hold a reference to the store and read attributes at the
    moment of use; nothing caches a record past the call that read it.
    """

    def __init__(self, **overrides):
        for category in CATEGORIES:
            record = overrides.get(category, DEFAULTS[category])
            setattr(self, category, record.normalized(DEFAULTS[category]))

    def get(self, category: str):
        return getattr(self, category)

    def replace(self, category: str, record) -> tuple:
        """Install ``record`` for ``category``. Returns (old, new) for diffing."""
        if category not in CATEGORIES:
            raise KeyError(category)
        old = getattr(self, category)
        if not isinstance(record, type(old)):
            raise TypeError(f"{category} expects {type(old).__name__}, got {type(record).__name__}")
        new = record.normalized(old)
        setattr(self, category, new)
        return old, new

    def update(self, category: str, **changes) -> tuple:
        """Convenience for UI code: copy the current record with some fields changed."""
        return self.replace(category, replace(getattr(self, category), **changes))
