"""Envelope timing model: ADSR values in, VCA gain automation points out.

Pure functions. The voice manager applies the returned points to a VCA's
gain parameter; nothing here touches audio nodes.
"""
from typing import List, NamedTuple

# The attack always ramps to this level; there is no user-facing peak control.
PEAK_LEVEL = 0.1


class GainPoint(NamedTuple):
    """One automation step. ``ramp`` False = jump to value, True = linear ramp ending at time."""
    time: float
    value: float
    ramp: bool


def attack_decay_schedule(attack: float, decay: float, sustain: float,
                          note_on_time: float) -> List[GainPoint]:
    """Hold 0 until note-on, ramp to PEAK_LEVEL, then ramp to the sustain level.

    The sustain level is then held until a release schedule replaces it.
    """
    attack_end = note_on_time + attack
    return [
        GainPoint(note_on_time, 0.0, False),
        GainPoint(attack_end, PEAK_LEVEL, True),
        GainPoint(attack_end + decay, sustain, True),
    ]


def release_schedule(release: float, note_off_time: float) -> List[GainPoint]:
    """Ramp from whatever level is current at note-off down to silence."""
    return [GainPoint(note_off_time + release, 0.0, True)]


def apply_schedule(param, points: List[GainPoint]):
    for point in points:
        if point.ramp:
            param.linear_ramp_to_value_at_time(point.value, point.time)
        else:
            param.set_value_at_time(point.value, point.time)
