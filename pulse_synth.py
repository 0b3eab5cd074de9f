# Real-Time Pulse Synth Engine
# ----------------------------
#
# A two-partial oscillator with vibrato, fed through a feedback delay and a
# small Schroeder reverb, rendered block by block from a sounddevice callback.
#
# The control thread never touches engine state directly: it builds a new
# frozen SynthParams and hands it to publish(). The callback reads that
# reference once per block, so it never waits on the control thread.
#
import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

import numpy as np

from pulse_config import BLOCK_SIZE, CHANNELS, SAMPLE_RATE

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi
MIN_FREQUENCY = 60.0
VIBRATO_RATE = 5.5  # Hz
MAX_DELAY_SEC = 1.0

# ---------------------------- Params ---------------------------------


@dataclass(frozen=True)
class SynthParams:
    base_frequency: float = 220.0
    vibrato_depth: float = 2.0
    vibrato_rate: float = VIBRATO_RATE
    amplitude: float = 0.15
    reverb_mix: float = 0.25
    delay_mix: float = 0.15
    delay_time: float = 0.25
    delay_feedback: float = 0.2
    muted: bool = False


class EngineState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"

# ---------------------------- Effects --------------------------------


class FeedbackDelay:
    """Single tap delay line whose output is fed back into its input."""

    def __init__(self, sr: int = SAMPLE_RATE, max_delay: float = MAX_DELAY_SEC):
        self.sr = sr
        self.buf = np.zeros(int(sr * max_delay) + 1, dtype=np.float32)
        self.write_idx = 0

    def process(self, x: np.ndarray, delay_time: float, feedback: float, mix: float) -> np.ndarray:
        size = self.buf.size
        d = int(min(max(1, round(delay_time * self.sr)), size - 1))
        wet = np.empty_like(x)
        pos = 0
        n = x.shape[0]
        # a chunk no longer than the delay never reads what it writes
        while pos < n:
            step = min(d, n - pos)
            w = (self.write_idx + np.arange(step)) % size
            delayed = self.buf[(w - d) % size]
            wet[pos:pos + step] = delayed
            self.buf[w] = x[pos:pos + step] + feedback * delayed
            self.write_idx = (self.write_idx + step) % size
            pos += step
        return (1.0 - mix) * x + mix * wet


class _CombLine:
    def __init__(self, delay: int, feedback: float):
        self.buf = np.zeros(max(1, delay), dtype=np.float32)
        self.idx = 0
        self.feedback = feedback

    def process(self, x: np.ndarray) -> np.ndarray:
        size = self.buf.size
        out = np.empty_like(x)
        pos = 0
        n = x.shape[0]
        while pos < n:
            step = min(size, n - pos)
            idx = (self.idx + np.arange(step)) % size
            v = self.buf[idx]
            out[pos:pos + step] = v
            self.buf[idx] = x[pos:pos + step] + self.feedback * v
            self.idx = (self.idx + step) % size
            pos += step
        return out


class _AllPass:
    def __init__(self, delay: int, gain: float):
        self.buf = np.zeros(max(1, delay), dtype=np.float32)
        self.idx = 0
        self.gain = gain

    def process(self, x: np.ndarray) -> np.ndarray:
        size = self.buf.size
        g = self.gain
        out = np.empty_like(x)
        pos = 0
        n = x.shape[0]
        while pos < n:
            step = min(size, n - pos)
            idx = (self.idx + np.arange(step)) % size
            z = self.buf[idx]
            w = x[pos:pos + step] + g * z
            out[pos:pos + step] = z - g * w
            self.buf[idx] = w
            self.idx = (self.idx + step) % size
            pos += step
        return out


class SimpleReverb:
    def __init__(self, sr: int = SAMPLE_RATE):
        delays = [int(sr * t) for t in (0.0297, 0.0371, 0.0411, 0.0437)]
        feedbacks = [0.77, 0.74, 0.73, 0.71]
        self.combs = [_CombLine(d, fb) for d, fb in zip(delays, feedbacks)]
        self.allpasses = [_AllPass(int(sr * 0.005), 0.5), _AllPass(int(sr * 0.0017), 0.5)]

    def process(self, x: np.ndarray, mix: float) -> np.ndarray:
        wet = np.zeros_like(x)
        for comb in self.combs:
            wet += comb.process(x)
        wet /= len(self.combs)
        for ap in self.allpasses:
            wet = ap.process(wet)
        return (1.0 - mix) * x + mix * wet

# ---------------------------- Engine ---------------------------------


def _default_stream_factory(**kwargs):
    import sounddevice as sd
    return sd.OutputStream(**kwargs)


class SynthEngine:
    def __init__(self, params: Optional[SynthParams] = None, sr: int = SAMPLE_RATE,
                 block_size: int = BLOCK_SIZE, channels: int = CHANNELS,
                 stream_factory: Optional[Callable] = None):
        self._params = params if params is not None else SynthParams()
        self.sr = sr
        self.block_size = block_size
        self.channels = channels
        self._stream_factory = stream_factory or _default_stream_factory
        self._stream = None
        self.state = EngineState.STOPPED
        self.last_error: Optional[str] = None
        self.xrun_count = 0

        # owned by the render thread
        self.phase = 0.0
        self.vibrato_phase = 0.0
        self.delay = FeedbackDelay(sr=sr)
        self.reverb = SimpleReverb(sr=sr)

    # --- control side ---

    @property
    def params(self) -> SynthParams:
        return self._params

    @property
    def running(self) -> bool:
        return self.state is EngineState.RUNNING

    def publish(self, params: SynthParams):
        self._params = params

    def set_muted(self, muted: bool):
        current = self._params
        if current.muted != muted:
            self._params = replace(current, muted=muted)

    def start(self) -> bool:
        if self.state is EngineState.RUNNING:
            return True
        try:
            stream = self._stream_factory(
                samplerate=self.sr,
                blocksize=self.block_size,
                channels=self.channels,
                dtype="float32",
                callback=self.audio_callback,
            )
            stream.start()
        except Exception as e:
            self.last_error = f"Audio unavailable: {e}"
            logger.warning("audio output failed to start: %r", e)
            return False
        self._stream = stream
        self.last_error = None
        self.state = EngineState.RUNNING
        logger.info("audio output started (%d Hz, block %d)", self.sr, self.block_size)
        return True

    def stop(self):
        self.set_muted(True)
        stream, self._stream = self._stream, None
        self.state = EngineState.STOPPED
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            self.last_error = f"Audio stop failed: {e}"
            logger.warning("audio output failed to stop cleanly: %r", e)
        else:
            logger.info("audio output stopped")

    # --- render side ---

    def render(self, frames: int) -> np.ndarray:
        p = self._params
        if frames <= 0:
            return np.zeros(0, dtype=np.float32)

        vib_inc = TWO_PI * p.vibrato_rate / self.sr
        vib = self.vibrato_phase + vib_inc * np.arange(frames)
        freq = np.maximum(MIN_FREQUENCY, p.base_frequency + p.vibrato_depth * np.sin(vib))
        phases = np.mod(self.phase + np.cumsum(TWO_PI * freq / self.sr), TWO_PI)
        self.phase = float(phases[-1])
        self.vibrato_phase = float(np.mod(self.vibrato_phase + vib_inc * frames, TWO_PI))

        amp = 0.0 if p.muted else p.amplitude
        x = (amp * (0.7 * np.sin(phases) + 0.3 * np.sin(0.5 * phases))).astype(np.float32)

        x = self.delay.process(x, p.delay_time, p.delay_feedback, p.delay_mix)
        x = self.reverb.process(x, p.reverb_mix)
        return np.clip(x, -1.0, 1.0).astype(np.float32)

    def audio_callback(self, outdata, frames, time_info, status):
        if status:
            self.xrun_count += 1
        out = self.render(frames)
        for ch in range(outdata.shape[1]):
            outdata[:, ch] = out
