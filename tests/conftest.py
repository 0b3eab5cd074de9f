"""Shared pytest configuration and fixtures for the pulse synth test suite."""

import os
import sys
from pathlib import Path

import numpy as np
import pytest

os.environ.setdefault("MPLBACKEND", "Agg")

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pulse_synth import SynthEngine  # noqa: E402


# =============================================================================
# Helpers
# =============================================================================

class FakeStream:
    """Stands in for sounddevice.OutputStream."""

    def __init__(self, fail_on_stop=False, **kwargs):
        self.kwargs = kwargs
        self.fail_on_stop = fail_on_stop
        self.started = False
        self.stopped = False
        self.closed = False

    def start(self):
        self.started = True

    def stop(self):
        if self.fail_on_stop:
            raise RuntimeError("device vanished")
        self.stopped = True

    def close(self):
        self.closed = True


def sine_pulse(bpm: float, seconds: float, fs: float = 30.0,
               baseline: float = 150.0, amplitude: float = 50.0, t0: float = 0.0):
    """Timestamps and a sinusoidal pulse with one peak per beat."""
    n = int(round(seconds * fs))
    t = t0 + np.arange(n) / fs
    values = baseline + amplitude * np.sin(2.0 * np.pi * (bpm / 60.0) * (t - t0))
    return t, values


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def streams():
    """Every FakeStream created through the stream_factory fixture."""
    return []


@pytest.fixture
def stream_factory(streams):
    def factory(**kwargs):
        stream = FakeStream(**kwargs)
        streams.append(stream)
        return stream
    return factory


@pytest.fixture
def engine(stream_factory) -> SynthEngine:
    return SynthEngine(stream_factory=stream_factory)
