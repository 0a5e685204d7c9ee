"""Pull-based audio node graph with scheduled parameter automation.

The synth engine never generates samples itself: it creates nodes, wires them
together and schedules ramps on their parameters. This module renders the
resulting graph block by block with numpy so the PyAudio callback has
something to play.

Rendering happens in render quanta of 128 frames. Parameter automation is
evaluated at the quantum boundaries and interpolated linearly in between,
which is plenty for envelope and LFO work (it is not sample accurate).
Feedback loops are allowed only through a DelayNode, whose delay is clamped
to at least one render quantum.
"""
import bisect
import math
import threading
from typing import List, NamedTuple, Optional, Union

import numpy as np

RENDER_QUANTUM = 128
WAVE_SHAPES = ("sine", "square", "sawtooth", "triangle")


class AutomationEvent(NamedTuple):
    kind: str      # "set" | "linear"
    value: float
    time: float


class _Block(NamedTuple):
    index: int
    time: float
    frames: int


class AudioParam:
    """A schedulable value with optional audio-rate modulation inputs."""

    def __init__(self, context: 'AudioContext', value: float,
                 min_value: float = -math.inf, max_value: float = math.inf):
        self.context = context
        self.default_value = float(value)
        self.min_value = min_value
        self.max_value = max_value
        self._events: List[AutomationEvent] = []
        self._inputs: list = []

    # ── Inspection ───────────────────────────────────────────────

    @property
    def events(self) -> tuple:
        """The pending automation timeline, oldest first."""
        return tuple(self._events)

    @property
    def inputs(self) -> tuple:
        return tuple(self._inputs)

    @property
    def value(self) -> float:
        return self.value_at(self.context.current_time)

    @value.setter
    def value(self, new_value: float):
        self.set_value_at_time(new_value, self.context.current_time)

    def value_at(self, t: float) -> float:
        """Automation value at time ``t`` (modulation inputs excluded)."""
        prev: Optional[AutomationEvent] = None
        result = None
        for ev in self._events:
            if ev.time <= t:
                prev = ev
                continue
            if ev.kind == "linear" and prev is not None:
                span = ev.time - prev.time
                frac = (t - prev.time) / span if span > 0 else 1.0
                result = prev.value + (ev.value - prev.value) * frac
            break
        if result is None:
            result = prev.value if prev is not None else self.default_value
        return min(max(result, self.min_value), self.max_value)

    # ── Scheduling ───────────────────────────────────────────────

    def set_value_at_time(self, value: float, when: float):
        self._insert(AutomationEvent("set", float(value), float(when)))

    def linear_ramp_to_value_at_time(self, value: float, end_time: float):
        if not self._events:
            # A ramp needs a starting point; anchor it at the current value.
            now = self.context.current_time
            self._events.append(AutomationEvent("set", self.value_at(now), now))
        self._insert(AutomationEvent("linear", float(value), float(end_time)))

    def cancel_scheduled_values(self, when: float):
        self._events = [ev for ev in self._events if ev.time < when]

    def cancel_and_hold_at_time(self, when: float):
        """Drop everything after ``when`` and hold the value reached there.

        A ramp that was in progress at ``when`` is truncated rather than
        replaced by a step, so the curve up to ``when`` is unchanged.
        """
        held = self.value_at(when)
        following = [ev for ev in self._events if ev.time > when]
        self._events = [ev for ev in self._events if ev.time <= when]
        kind = "linear" if following and following[0].kind == "linear" else "set"
        self._events.append(AutomationEvent(kind, held, float(when)))

    def _insert(self, event: AutomationEvent):
        times = [ev.time for ev in self._events]
        self._events.insert(bisect.bisect_right(times, event.time), event)
        self._prune()

    def _prune(self):
        # Only the last event at or before "now" matters as a ramp anchor.
        now = self.context.current_time
        last_past = -1
        for i, ev in enumerate(self._events):
            if ev.time <= now:
                last_past = i
            else:
                break
        if last_past > 0:
            del self._events[:last_past]

    # ── Rendering ────────────────────────────────────────────────

    def values(self, block: _Block) -> np.ndarray:
        sr = self.context.sample_rate
        start = self.value_at(block.time)
        end = self.value_at(block.time + block.frames / sr)
        if start == end:
            out = np.full(block.frames, start, dtype=np.float32)
        else:
            out = np.linspace(start, end, block.frames, endpoint=False, dtype=np.float32)
        for source in self._inputs:
            out = out + source.render(block)
        return out


class AudioNode:
    """Base node: fan-in summing, fan-out connections, per-block memo."""

    def __init__(self, context: 'AudioContext'):
        self.context = context
        self._inputs: list = []
        self._outputs: list = []
        self._cache_index = -1
        self._cache: Optional[np.ndarray] = None

    @property
    def connections(self) -> tuple:
        """Outgoing edges (nodes or params), in connection order."""
        return tuple(self._outputs)

    @property
    def inputs(self) -> tuple:
        return tuple(self._inputs)

    def connect(self, target: Union['AudioNode', AudioParam]):
        if any(t is target for t in self._outputs):
            return target
        self._outputs.append(target)
        target._inputs.append(self)
        return target

    def disconnect(self, target: Union['AudioNode', AudioParam, None] = None):
        """Remove one outgoing edge, or all of them when no target is given."""
        targets = list(self._outputs) if target is None else [target]
        for t in targets:
            if any(o is t for o in self._outputs):
                self._outputs = [o for o in self._outputs if o is not t]
                t._inputs = [i for i in t._inputs if i is not self]

    def render(self, block: _Block) -> np.ndarray:
        if self._cache_index == block.index:
            return self._cache
        self._cache_index = block.index
        self._cache = np.zeros(block.frames, dtype=np.float32)
        self._cache = self._process(block)
        return self._cache

    def _mix_inputs(self, block: _Block) -> np.ndarray:
        out = np.zeros(block.frames, dtype=np.float32)
        for source in self._inputs:
            out += source.render(block)
        return out

    def _process(self, block: _Block) -> np.ndarray:
        return self._mix_inputs(block)


class AudioDestinationNode(AudioNode):
    """Terminal node; whatever reaches it is what the stream plays."""


class GainNode(AudioNode):
    def __init__(self, context: 'AudioContext'):
        super().__init__(context)
        self.gain = AudioParam(context, 1.0)

    def _process(self, block: _Block) -> np.ndarray:
        return self._mix_inputs(block) * self.gain.values(block)


class OscillatorNode(AudioNode):
    """Free-running periodic source. Silent before start() and after stop()."""

    def __init__(self, context: 'AudioContext'):
        super().__init__(context)
        self.type = "sine"
        self.frequency = AudioParam(context, 440.0)
        self.detune = AudioParam(context, 0.0)
        self.start_time: Optional[float] = None
        self.stop_time: Optional[float] = None
        self._phase = 0.0

    def start(self, when: Optional[float] = None):
        if self.start_time is None:
            self.start_time = self.context.current_time if when is None else when

    def stop(self, when: Optional[float] = None):
        self.stop_time = self.context.current_time if when is None else when

    def _process(self, block: _Block) -> np.ndarray:
        sr = self.context.sample_rate
        block_end = block.time + block.frames / sr
        if (self.start_time is None or block_end <= self.start_time
                or (self.stop_time is not None and block.time >= self.stop_time)):
            return np.zeros(block.frames, dtype=np.float32)

        freq = self.frequency.values(block) * np.power(2.0, self.detune.values(block) / 1200.0)
        phase_inc = 2 * np.pi * freq / sr
        phases = self._phase + np.cumsum(phase_inc) - phase_inc
        self._phase = float((self._phase + phase_inc.sum()) % (2 * np.pi))
        samples = _waveform(self.type, phases)

        times = block.time + np.arange(block.frames) / sr
        gate = times >= self.start_time
        if self.stop_time is not None:
            gate &= times < self.stop_time
        return (samples * gate).astype(np.float32)


def _waveform(shape: str, phases: np.ndarray) -> np.ndarray:
    t_norm = (phases / (2 * np.pi)) % 1.0
    if shape == "sine":
        return np.sin(phases)
    elif shape == "triangle":
        return 4.0 * np.abs(t_norm - 0.5) - 1.0
    elif shape == "square":
        return np.where(np.sin(phases) >= 0, 1.0, -1.0)
    return 2.0 * t_norm - 1.0


class BiquadFilterNode(AudioNode):
    """RBJ cookbook biquad. Q is in dB, as for resonant web-audio filters."""

    def __init__(self, context: 'AudioContext'):
        super().__init__(context)
        self.type = "lowpass"
        self.frequency = AudioParam(context, 350.0, 10.0, context.sample_rate / 2.0)
        self.Q = AudioParam(context, 1.0)
        self._state = (0.0, 0.0, 0.0, 0.0)  # x1, x2, y1, y2

    def _coefficients(self, cutoff: float, q_db: float) -> tuple:
        sr = self.context.sample_rate
        fc = min(max(cutoff, 10.0), sr * 0.49)
        w0 = 2 * math.pi * fc / sr
        cos_w0 = math.cos(w0)
        alpha = math.sin(w0) / (2.0 * (10.0 ** (q_db / 20.0)))
        if self.type == "highpass":
            b0 = (1 + cos_w0) / 2.0
            b1 = -(1 + cos_w0)
        else:
            b0 = (1 - cos_w0) / 2.0
            b1 = 1 - cos_w0
        b2 = b0
        a0 = 1 + alpha
        a1 = -2 * cos_w0
        a2 = 1 - alpha
        return b0 / a0, b1 / a0, b2 / a0, a1 / a0, a2 / a0

    def _process(self, block: _Block) -> np.ndarray:
        x = self._mix_inputs(block)
        if not x.any() and max(abs(s) for s in self._state) < 1e-9:
            self._state = (0.0, 0.0, 0.0, 0.0)
            return x
        cutoff = float(np.mean(self.frequency.values(block)))
        q_db = float(np.mean(self.Q.values(block)))
        b0, b1, b2, a1, a2 = self._coefficients(cutoff, q_db)

        x1, x2, y1, y2 = self._state
        y = np.empty_like(x)
        for i in range(len(x)):
            xi = float(x[i])
            yi = b0 * xi + b1 * x1 + b2 * x2 - a1 * y1 - a2 * y2
            x2, x1 = x1, xi
            y2, y1 = y1, yi
            y[i] = yi
        self._state = (x1, x2, y1, y2)
        return y


class DelayNode(AudioNode):
    """Ring-buffer delay line; the only node allowed inside a cycle."""

    def __init__(self, context: 'AudioContext', max_delay_time: float = 1.0):
        super().__init__(context)
        self.max_delay_time = max_delay_time
        self.delay_time = AudioParam(context, 0.0, 0.0, max_delay_time)
        self._buffer = np.zeros(int(max_delay_time * context.sample_rate) + 2 * RENDER_QUANTUM,
                                dtype=np.float32)
        self._write = 0

    def render(self, block: _Block) -> np.ndarray:
        if self._cache_index == block.index:
            return self._cache
        size = len(self._buffer)
        delay = int(round(self.delay_time.value_at(block.time) * self.context.sample_rate))
        # Reading at least one quantum back keeps reads clear of this block's writes.
        delay = max(RENDER_QUANTUM, min(delay, size - block.frames))
        read_idx = (self._write - delay + np.arange(block.frames)) % size
        self._cache_index = block.index
        self._cache = self._buffer[read_idx].copy()

        x = self._mix_inputs(block)
        write_idx = (self._write + np.arange(block.frames)) % size
        self._buffer[write_idx] = x
        self._write = (self._write + block.frames) % size
        return self._cache


class AudioContext:
    """Owns the clock and the destination; renders the graph on demand."""

    def __init__(self, sample_rate: int = 48000):
        self.sample_rate = sample_rate
        # Re-entrant: engine operations nest (e.g. a tick creating a voice).
        self.lock = threading.RLock()
        self._frames_rendered = 0
        self._block_index = 0
        self.destination = AudioDestinationNode(self)

    @property
    def current_time(self) -> float:
        return self._frames_rendered / self.sample_rate

    def create_gain(self) -> GainNode:
        return GainNode(self)

    def create_oscillator(self) -> OscillatorNode:
        return OscillatorNode(self)

    def create_biquad_filter(self) -> BiquadFilterNode:
        return BiquadFilterNode(self)

    def create_delay(self, max_delay_time: float = 1.0) -> DelayNode:
        return DelayNode(self, max_delay_time)

    def render(self, frames: int) -> np.ndarray:
        """Render ``frames`` mono samples and advance the clock."""
        out = np.zeros(frames, dtype=np.float32)
        with self.lock:
            pos = 0
            while pos < frames:
                n = min(RENDER_QUANTUM, frames - pos)
                block = _Block(self._block_index, self.current_time, n)
                out[pos:pos + n] = self.destination.render(block)
                self._block_index += 1
                self._frames_rendered += n
                pos += n
        return out
