"""
Heartbeat detection on a conditioned PPG window.

Peaks are found in the time domain with a refractory period, then turned into
RR intervals, a BPM and a 0..1 quality score. Every estimate is recomputed from
the current window; nothing is carried between calls.
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from ppg_signal import condition
from pulse_config import (
    MIN_PEAK_DISTANCE_SEC,
    MIN_SAMPLES,
    RMS_FLOOR,
    RR_MAX_SEC,
    RR_MIN_SEC,
    THRESHOLD_RMS_RATIO,
)


@dataclass(frozen=True)
class HeartRateEstimate:
    bpm: Optional[float]
    quality: float
    rr_intervals: Tuple[float, ...] = ()


INSUFFICIENT = HeartRateEstimate(bpm=None, quality=0.0, rr_intervals=())


def signal_rms(values) -> float:
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return float(np.sqrt(RMS_FLOOR))
    return float(np.sqrt(max(RMS_FLOOR, float(np.mean(x * x)))))


def detect_peaks(values, timestamps, min_distance_sec: float = MIN_PEAK_DISTANCE_SEC,
                 threshold: float = 0.0) -> list:
    """
    Indices of local maxima above threshold, at least min_distance_sec apart.

    Candidates are scanned left to right and the first one inside a refractory
    window wins, even if a taller one follows.
    """
    v = np.asarray(values, dtype=float)
    t = np.asarray(timestamps, dtype=float)
    if v.shape != t.shape or v.size < 3:
        return []

    mid = v[1:-1]
    is_peak = (mid > v[:-2]) & (mid > v[2:]) & (mid > threshold)
    candidates = np.nonzero(is_peak)[0] + 1

    peaks = []
    last_time = -np.inf
    for i in candidates:
        if t[i] - last_time >= min_distance_sec:
            peaks.append(int(i))
            last_time = t[i]
    return peaks


def rr_from_peaks(peaks: Sequence[int], timestamps) -> list:
    """Successive peak spacings inside the physiological bound; the rest are dropped."""
    t = np.asarray(timestamps, dtype=float)
    intervals = []
    for prev, cur in zip(peaks, peaks[1:]):
        dt = float(t[cur] - t[prev])
        if RR_MIN_SEC < dt < RR_MAX_SEC:
            intervals.append(dt)
    return intervals


def estimate_heart_rate(timestamps, raw_signal) -> HeartRateEstimate:
    t = np.asarray(timestamps, dtype=float)
    raw = np.asarray(raw_signal, dtype=float)
    assert t.shape == raw.shape, (
        f"timestamps and samples differ in length: {t.shape} vs {raw.shape}"
    )
    if t.shape != raw.shape or raw.size < MIN_SAMPLES:
        return INSUFFICIENT

    normalized = condition(raw)
    rms = signal_rms(normalized)
    threshold = THRESHOLD_RMS_RATIO * rms

    peaks = detect_peaks(normalized, t, MIN_PEAK_DISTANCE_SEC, threshold)
    if len(peaks) < 3:
        return HeartRateEstimate(bpm=None, quality=min(0.3, len(peaks) / 3.0))

    intervals = rr_from_peaks(peaks, t)
    if not intervals:
        return HeartRateEstimate(bpm=None, quality=0.2)

    mean_dt = float(np.mean(intervals))
    bpm = 60.0 / mean_dt

    duration = float(t[-1] - t[0])
    expected = max(1, int(duration / mean_dt))
    consistency = min(1.0, len(peaks) / expected)
    quality = float(np.clip(0.5 * consistency + 0.5 * min(1.0, rms), 0.0, 1.0))

    return HeartRateEstimate(bpm=bpm, quality=quality, rr_intervals=tuple(intervals))


def rmssd(intervals) -> float:
    """Root mean square of successive RR differences; 0.0 below two intervals."""
    rr = np.asarray(intervals, dtype=float)
    if rr.size < 2:
        return 0.0
    diffs = np.diff(rr)
    return float(np.sqrt(np.mean(diffs * diffs)))
