"""Tests for the real-time synth engine and its effects."""

import math

import numpy as np
import pytest

from conftest import FakeStream
from pulse_synth import (
    MIN_FREQUENCY,
    TWO_PI,
    EngineState,
    FeedbackDelay,
    SimpleReverb,
    SynthEngine,
    SynthParams,
)

DRY = dict(reverb_mix=0.0, delay_mix=0.0)


def reference_render(params: SynthParams, frames: int, sr: int) -> np.ndarray:
    """Sample-by-sample oscillator, no effects."""
    phase = 0.0
    vib_phase = 0.0
    out = np.zeros(frames)
    for n in range(frames):
        vibrato = params.vibrato_depth * math.sin(vib_phase)
        vib_phase += TWO_PI * params.vibrato_rate / sr
        if vib_phase >= TWO_PI:
            vib_phase -= TWO_PI
        freq = max(MIN_FREQUENCY, params.base_frequency + vibrato)
        phase += TWO_PI * freq / sr
        if phase >= TWO_PI:
            phase -= TWO_PI
        amp = 0.0 if params.muted else params.amplitude
        out[n] = amp * (0.7 * math.sin(phase) + 0.3 * math.sin(phase / 2))
    return out


# =============================================================================
# Rendering
# =============================================================================

class TestRender:
    def test_muted_engine_is_silent(self, engine):
        engine.publish(SynthParams(muted=True))
        out = engine.render(512)
        assert out.dtype == np.float32
        assert np.all(out == 0.0)

    def test_matches_per_sample_oscillator(self, engine):
        params = SynthParams(base_frequency=220.0, vibrato_depth=3.0, amplitude=0.2, **DRY)
        engine.publish(params)
        out = np.concatenate([engine.render(256), engine.render(300)])
        expected = reference_render(params, 556, engine.sr)
        assert np.allclose(out, expected, atol=1e-5)

    def test_phases_stay_wrapped(self, engine):
        engine.publish(SynthParams(base_frequency=1000.0, **DRY))
        for _ in range(20):
            engine.render(512)
            assert 0.0 <= engine.phase < TWO_PI
            assert 0.0 <= engine.vibrato_phase < TWO_PI

    def test_frequency_floor(self, engine):
        engine.publish(SynthParams(base_frequency=30.0, vibrato_depth=0.0, **DRY))
        engine.render(1)
        assert engine.phase == pytest.approx(TWO_PI * MIN_FREQUENCY / engine.sr)

    def test_output_is_clipped(self, engine):
        engine.publish(SynthParams(amplitude=5.0, **DRY))
        out = engine.render(2048)
        assert np.max(np.abs(out)) <= 1.0

    def test_zero_frames(self, engine):
        assert engine.render(0).size == 0

    def test_effects_keep_block_length(self, engine):
        engine.publish(SynthParams(reverb_mix=0.5, delay_mix=0.5, delay_time=0.1))
        assert engine.render(8192).shape == (8192,)

    def test_mute_leaves_other_fields(self, engine):
        engine.publish(SynthParams(base_frequency=300.0))
        engine.set_muted(True)
        assert engine.params.muted
        assert engine.params.base_frequency == 300.0

    def test_callback_fills_all_channels(self, engine):
        engine.publish(SynthParams(amplitude=0.3, **DRY))
        outdata = np.zeros((128, 2), dtype=np.float32)
        engine.audio_callback(outdata, 128, None, None)
        assert np.any(outdata[:, 0] != 0.0)
        assert np.array_equal(outdata[:, 0], outdata[:, 1])

    def test_callback_counts_device_status(self, engine):
        outdata = np.zeros((64, 1), dtype=np.float32)
        engine.audio_callback(outdata, 64, None, "output underflow")
        engine.audio_callback(outdata, 64, None, None)
        assert engine.xrun_count == 1


# =============================================================================
# Lifecycle
# =============================================================================

class TestLifecycle:
    def test_start_opens_stream(self, engine, streams):
        assert engine.start()
        assert engine.state is EngineState.RUNNING
        assert len(streams) == 1
        stream = streams[0]
        assert stream.started
        assert stream.kwargs["samplerate"] == engine.sr
        assert stream.kwargs["callback"] == engine.audio_callback

    def test_start_is_idempotent(self, engine, streams):
        engine.start()
        engine.start()
        assert len(streams) == 1

    def test_stop_mutes_and_closes(self, engine, streams):
        engine.start()
        engine.stop()
        assert engine.state is EngineState.STOPPED
        assert engine.params.muted
        assert streams[0].stopped and streams[0].closed

    def test_start_failure_is_swallowed(self):
        def broken(**kwargs):
            raise OSError("PortAudio library not found")

        engine = SynthEngine(stream_factory=broken)
        assert engine.start() is False
        assert engine.state is EngineState.STOPPED
        assert "PortAudio" in engine.last_error

    def test_stop_failure_is_swallowed(self):
        engine = SynthEngine(stream_factory=lambda **kw: FakeStream(fail_on_stop=True, **kw))
        engine.start()
        engine.stop()
        assert engine.state is EngineState.STOPPED
        assert engine.last_error

    def test_stop_without_start(self, engine):
        engine.stop()
        assert engine.state is EngineState.STOPPED


# =============================================================================
# Effects
# =============================================================================

class TestEffects:
    def test_feedback_delay_repeats_impulse(self):
        delay = FeedbackDelay(sr=10, max_delay=2.0)
        x = np.zeros(20, dtype=np.float32)
        x[0] = 1.0
        out = delay.process(x, delay_time=0.5, feedback=0.5, mix=1.0)
        assert out[5] == pytest.approx(1.0)
        assert out[10] == pytest.approx(0.5)
        assert out[15] == pytest.approx(0.25)
        assert np.count_nonzero(out) == 3

    def test_feedback_delay_dry(self):
        delay = FeedbackDelay(sr=10, max_delay=2.0)
        x = np.arange(8, dtype=np.float32)
        assert np.allclose(delay.process(x, 0.3, 0.2, 0.0), x)

    def test_feedback_delay_state_carries_across_blocks(self):
        delay = FeedbackDelay(sr=10, max_delay=2.0)
        first = np.zeros(3, dtype=np.float32)
        first[0] = 1.0
        delay.process(first, 0.5, 0.0, 1.0)
        out = delay.process(np.zeros(3, dtype=np.float32), 0.5, 0.0, 1.0)
        assert out[2] == pytest.approx(1.0)

    def test_reverb_dry_passthrough(self):
        reverb = SimpleReverb(sr=8000)
        x = np.random.default_rng(2).normal(0, 0.1, 1000).astype(np.float32)
        assert np.allclose(reverb.process(x, 0.0), x)

    def test_reverb_tail_outlasts_input(self):
        reverb = SimpleReverb(sr=8000)
        x = np.zeros(4000, dtype=np.float32)
        x[0] = 1.0
        out = reverb.process(x, 1.0)
        assert np.any(np.abs(out[1000:]) > 1e-4)
