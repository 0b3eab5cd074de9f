"""
Conditioning for a raw PPG intensity stream.

condition() chains a causal moving-average detrend, an exponential low-pass
and a z-score so that peaks are comparable across lighting and skin tone.
"""
import numpy as np
from scipy import signal

from pulse_config import DETREND_WINDOW, LOWPASS_ALPHA, VARIANCE_FLOOR


def moving_average(values, window: int = DETREND_WINDOW) -> np.ndarray:
    """Causal mean over the min(i + 1, window) most recent samples."""
    x = np.asarray(values, dtype=float)
    if x.size == 0 or window <= 1:
        return x.copy()
    csum = np.cumsum(x)
    out = csum.copy()
    out[window:] = csum[window:] - csum[:-window]
    counts = np.minimum(np.arange(1, x.size + 1), window)
    return out / counts


def detrend(values, window: int = DETREND_WINDOW) -> np.ndarray:
    x = np.asarray(values, dtype=float)
    return x - moving_average(x, window)


def low_pass(values, alpha: float = LOWPASS_ALPHA) -> np.ndarray:
    """out[i] = out[i-1] + alpha * (in[i] - out[i-1]), seeded with out[0] = in[0]."""
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return x.copy()
    b = [alpha]
    a = [1.0, -(1.0 - alpha)]
    zi = [(1.0 - alpha) * x[0]]
    out, _ = signal.lfilter(b, a, x, zi=zi)
    return out


def normalize(values) -> np.ndarray:
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return x.copy()
    centered = x - np.mean(x)
    var = np.sum(centered * centered) / max(1, x.size - 1)
    std = np.sqrt(max(var, VARIANCE_FLOOR))
    return centered / std


def condition(raw, window: int = DETREND_WINDOW, alpha: float = LOWPASS_ALPHA) -> np.ndarray:
    return normalize(low_pass(detrend(raw, window), alpha))
