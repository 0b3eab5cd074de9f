"""
Online 3-cluster mood classifier over [bpm, rmssd, quality].

There is no training phase: each call assigns the nearest centroid and then
pulls that centroid toward the observation, so the clusters slowly drift to
the wearer's own physiology.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


class Mood(Enum):
    RELAXED = "relaxed"
    FOCUSED = "focused"
    EXCITED = "excited"

    @property
    def label(self) -> str:
        return self.value.capitalize()


# centroid index -> mood
MOOD_ORDER = (Mood.RELAXED, Mood.FOCUSED, Mood.EXCITED)

DEFAULT_SEEDS = (
    (60.0, 0.08, 0.8),   # relaxed: low bpm, high rmssd, good quality
    (85.0, 0.05, 0.7),   # focused
    (115.0, 0.02, 0.7),  # excited: high bpm, low rmssd
)
DEFAULT_LEARNING_RATE = 0.1
PLACEHOLDER_BPM = 80.0


@dataclass(frozen=True)
class Prediction:
    mood: Mood
    energy: float


@dataclass(frozen=True)
class Centroid:
    features: tuple
    update_count: int


def energy_for(bpm: float, quality: float) -> float:
    hr_norm = min(1.0, max(0.0, (bpm - 50.0) / 80.0))
    return 0.7 * hr_norm + 0.3 * quality


class OnlineMoodClassifier:
    def __init__(self, seeds: Sequence[Sequence[float]] = DEFAULT_SEEDS,
                 learning_rate: float = DEFAULT_LEARNING_RATE):
        centroids = np.array(seeds, dtype=float)
        if centroids.shape != (len(MOOD_ORDER), 3):
            raise ValueError(f"expected {len(MOOD_ORDER)} seeds of 3 features, got {centroids.shape}")
        self._centroids = centroids
        self._counts = [1] * len(MOOD_ORDER)
        self.learning_rate = float(learning_rate)

    @property
    def centroids(self) -> list:
        return [
            Centroid(features=tuple(float(v) for v in c), update_count=n)
            for c, n in zip(self._centroids, self._counts)
        ]

    def nearest(self, feature) -> int:
        f = np.asarray(feature, dtype=float)
        dists = np.sum((self._centroids - f) ** 2, axis=1)
        return int(np.argmin(dists))

    def classify(self, bpm: Optional[float], rmssd: float, quality: float) -> Prediction:
        hr = PLACEHOLDER_BPM if bpm is None else float(bpm)
        feature = np.array([hr, rmssd, quality], dtype=float)

        idx = self.nearest(feature)
        self._centroids[idx] += self.learning_rate * (feature - self._centroids[idx])
        self._counts[idx] += 1

        mood = MOOD_ORDER[idx]
        logger.debug("classified %s (bpm=%.1f rmssd=%.3f q=%.2f)", mood.value, hr, rmssd, quality)
        return Prediction(mood=mood, energy=energy_for(hr, quality))
