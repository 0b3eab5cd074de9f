"""
Mood/energy/BPM -> synth parameter mapping.

Pure functions only; the orchestrator publishes the result to the engine.
"""
from dataclasses import dataclass
from typing import Optional

from mood_classifier import Mood, Prediction
from pulse_synth import SynthParams

HR_REFERENCE_BPM = 90.0
HR_FACTOR_MIN, HR_FACTOR_MAX = 0.8, 1.4
DELAY_MIN_SEC, DELAY_MAX_SEC = 0.1, 0.6


@dataclass(frozen=True)
class MoodVoicing:
    base_frequency: float
    reverb_mix: float
    delay_mix: float


VOICINGS = {
    Mood.RELAXED: MoodVoicing(base_frequency=174.61, reverb_mix=0.35, delay_mix=0.10),  # F3
    Mood.FOCUSED: MoodVoicing(base_frequency=220.00, reverb_mix=0.25, delay_mix=0.15),  # A3
    Mood.EXCITED: MoodVoicing(base_frequency=261.63, reverb_mix=0.20, delay_mix=0.20),  # C4
}
_missing = set(Mood) - set(VOICINGS)
if _missing:
    raise RuntimeError(f"no voicing for {sorted(m.value for m in _missing)}")


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def delay_time_for(bpm: float) -> float:
    """Half a quarter note at the measured tempo."""
    return clamp((60.0 / bpm) / 2.0, DELAY_MIN_SEC, DELAY_MAX_SEC)


def map_prediction(prediction: Prediction, bpm: Optional[float]) -> SynthParams:
    voicing = VOICINGS[prediction.mood]
    if bpm is None or bpm <= 0:
        return SynthParams(
            base_frequency=voicing.base_frequency,
            reverb_mix=voicing.reverb_mix,
            delay_mix=voicing.delay_mix,
            muted=True,
        )

    hr_factor = clamp(bpm / HR_REFERENCE_BPM, HR_FACTOR_MIN, HR_FACTOR_MAX)
    return SynthParams(
        base_frequency=voicing.base_frequency * hr_factor,
        vibrato_depth=0.5 + 4.0 * prediction.energy,
        amplitude=0.12 + 0.18 * prediction.energy,
        reverb_mix=voicing.reverb_mix,
        delay_mix=voicing.delay_mix,
        delay_time=delay_time_for(bpm),
        muted=False,
    )
