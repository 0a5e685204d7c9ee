"""Shared processing nodes every voice feeds into.

    voices ─► filter ─┬──────────────► main gain ─► destination
                      └─► delay ◄─► feedback
                            └──────► main gain
    LFO ─► LFO depth gain ─► filter cutoff  (or a voice oscillator's detune)
"""
from music.audio_graph import AudioContext, AudioParam
from music.parameters import LFOTarget, ParameterStore


class SignalGraph:
    """Builds the shared nodes once and retargets them idempotently."""

    def __init__(self, context: AudioContext, parameters: ParameterStore):
        self.context = context
        self.parameters = parameters
        self.main_gain = None
        self.filter = None
        self.delay = None
        self.feedback = None
        self.lfo = None
        self.lfo_gain = None
        self.lfo_target = LFOTarget.FILTER

    def initialize(self):
        ctx = self.context
        now = ctx.current_time
        amp = self.parameters.amp
        flt = self.parameters.filter
        dly = self.parameters.delay
        lfo = self.parameters.lfo

        self.main_gain = ctx.create_gain()
        self.main_gain.gain.set_value_at_time(amp.level, now)

        self.filter = ctx.create_biquad_filter()
        self.filter.type = "lowpass"
        self.filter.frequency.set_value_at_time(flt.frequency_hz, now)
        self.filter.Q.set_value_at_time(flt.q, now)

        self.delay = ctx.create_delay()
        self.delay.delay_time.set_value_at_time(dly.time_seconds, now)
        self.feedback = ctx.create_gain()
        self.feedback.gain.set_value_at_time(dly.feedback, now)

        self.lfo = ctx.create_oscillator()
        self.lfo.type = lfo.wave_shape
        self.lfo.frequency.set_value_at_time(lfo.frequency_hz, now)
        self.lfo_gain = ctx.create_gain()
        self.lfo_gain.gain.set_value_at_time(lfo.depth, now)
        self.lfo.connect(self.lfo_gain)
        # Voices pick up oscillator routing themselves when they are created.
        self.lfo_target = lfo.target
        if lfo.target is LFOTarget.FILTER:
            self.lfo_gain.connect(self.filter.frequency)
        # Runs for the lifetime of the process.
        self.lfo.start()

        self.delay.connect(self.feedback)
        self.feedback.connect(self.delay)
        self.filter.connect(self.delay)
        self.filter.connect(self.main_gain)
        self.delay.connect(self.main_gain)
        self.main_gain.connect(ctx.destination)

    @property
    def voice_input(self):
        """Where each voice's VCA connects."""
        return self.filter

    def set_lfo_routing(self, target: LFOTarget, depth: float, wave_shape: str, frequency_hz: float):
        now = self.context.current_time
        if target is not self.lfo_target:
            self.lfo_gain.disconnect()
            if target is LFOTarget.FILTER:
                self.lfo_gain.connect(self.filter.frequency)
            self.lfo_target = target
        if self.lfo_gain.gain.value != depth:
            self.lfo_gain.gain.set_value_at_time(depth, now)
        if self.lfo.type != wave_shape:
            self.lfo.type = wave_shape
        if self.lfo.frequency.value != frequency_hz:
            self.lfo.frequency.set_value_at_time(frequency_hz, now)

    def modulate(self, target: LFOTarget, detune: AudioParam):
        """Route the LFO into a new voice oscillator's detune if it is the current target."""
        if target is self.lfo_target and target is not LFOTarget.FILTER:
            self.lfo_gain.connect(detune)

    def set_filter(self, frequency_hz: float, q: float):
        now = self.context.current_time
        if self.filter.frequency.value != frequency_hz:
            self.filter.frequency.set_value_at_time(frequency_hz, now)
        if self.filter.Q.value != q:
            self.filter.Q.set_value_at_time(q, now)

    def set_delay(self, time_seconds: float, feedback_gain: float):
        now = self.context.current_time
        if self.delay.delay_time.value != time_seconds:
            self.delay.delay_time.set_value_at_time(time_seconds, now)
        if self.feedback.gain.value != feedback_gain:
            self.feedback.gain.set_value_at_time(feedback_gain, now)

    def set_main_level(self, gain: float):
        if self.main_gain.gain.value != gain:
            self.main_gain.gain.set_value_at_time(gain, self.context.current_time)
