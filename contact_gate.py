"""
Fingertip contact heuristic on raw (unconditioned) red intensity.

With the torch on and a finger over the lens the red channel sits high and
only wobbles with the pulse; an uncovered lens is darker or swings widely.
"""
import numpy as np

from pulse_config import (
    CONTACT_MAX_STD,
    CONTACT_MIN_MEAN,
    CONTACT_MIN_SAMPLES,
    CONTACT_WINDOW,
)


def is_contact(recent_values, emitter_on: bool,
               min_mean: float = CONTACT_MIN_MEAN,
               max_std: float = CONTACT_MAX_STD,
               window: int = CONTACT_WINDOW) -> bool:
    if not emitter_on or window <= 0:
        return False
    recent = np.asarray(recent_values, dtype=float)[-window:]
    if recent.size < CONTACT_MIN_SAMPLES:
        return False
    mean = float(np.mean(recent))
    std = float(np.std(recent))
    return mean > min_mean and std < max_std
