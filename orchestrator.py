"""
Sequencing loop between the capture source, the estimator chain and the synth.

Every sample is buffered, the contact gate runs, a display point goes out and,
every few accepted samples, one estimate -> classify -> map -> publish cycle
runs synchronously on the caller's thread.
"""
import itertools
import logging
from collections import deque
from dataclasses import replace
from typing import Callable, Optional

import numpy as np

from beat_detect import HeartRateEstimate, estimate_heart_rate, rmssd
from contact_gate import is_contact
from mood_classifier import Mood, OnlineMoodClassifier, Prediction
from param_mapper import map_prediction
from pulse_config import PipelineConfig
from pulse_synth import SynthEngine
from status_text import (
    NO_CONTACT_DETAIL,
    StatusText,
    contact_line,
    format_heart_rate,
    interpretation_text,
)

logger = logging.getLogger(__name__)

PointSink = Callable[[int, float], None]
StatusSink = Callable[[StatusText], None]


class SignalBuffer:
    """Time-bounded (timestamp, intensity) history, pruned from the front."""

    def __init__(self, window_seconds: float):
        self.window_seconds = window_seconds
        self._timestamps = deque()
        self._values = deque()

    def __len__(self):
        return len(self._values)

    @property
    def last_timestamp(self) -> Optional[float]:
        return self._timestamps[-1] if self._timestamps else None

    def append(self, timestamp: float, value: float) -> bool:
        last = self.last_timestamp
        if last is not None and timestamp < last:
            return False
        self._timestamps.append(float(timestamp))
        self._values.append(float(value))
        self.prune()
        return True

    def prune(self):
        if not self._timestamps:
            return
        newest = self._timestamps[-1]
        while newest - self._timestamps[0] > self.window_seconds:
            self._timestamps.popleft()
            self._values.popleft()

    def clear(self):
        self._timestamps.clear()
        self._values.clear()

    def timestamps(self) -> np.ndarray:
        return np.array(self._timestamps, dtype=float)

    def values(self) -> np.ndarray:
        return np.array(self._values, dtype=float)

    def recent(self, n: int) -> np.ndarray:
        start = max(0, len(self._values) - n)
        return np.fromiter(itertools.islice(self._values, start, None), dtype=float)


class PulseOrchestrator:
    def __init__(self, engine: SynthEngine,
                 classifier: Optional[OnlineMoodClassifier] = None,
                 config: PipelineConfig = PipelineConfig(),
                 point_sink: Optional[PointSink] = None,
                 status_sink: Optional[StatusSink] = None):
        self.engine = engine
        self.classifier = classifier if classifier is not None else OnlineMoodClassifier()
        self.config = config
        self.point_sink = point_sink
        self.status_sink = status_sink

        self.buffer = SignalBuffer(config.buffer_seconds)
        self.emitter_on = False
        self.in_contact = False
        self.no_contact_count = 0
        self.accepted_count = 0
        self.sample_index = 0
        self.reset_count = 0
        self.last_estimate: Optional[HeartRateEstimate] = None
        self.last_prediction: Optional[Prediction] = None
        self.status = StatusText()
        self._stopped = False

    # --- lifecycle ---

    def start(self):
        # no contact decision yet, so the engine starts silent
        self.engine.set_muted(True)
        self._stopped = False
        self.reset_buffers()
        self.accepted_count = 0
        self.sample_index = 0
        if not self.engine.start():
            self._set_status(detail=self.engine.last_error or "Audio unavailable")

    def silence(self):
        """Mute and drop further samples; the audio stream stays open."""
        # flag before muting so a cycle still in flight re-mutes after its publish
        self._stopped = True
        self.engine.set_muted(True)

    def stop(self):
        self.silence()
        self.engine.stop()
        if self.engine.last_error:
            self._set_status(detail=self.engine.last_error)

    def reset_buffers(self):
        self.buffer.clear()
        self.last_estimate = None
        self.no_contact_count = 0

    # --- capture callbacks ---

    def on_emitter_changed(self, is_on: bool):
        self.emitter_on = bool(is_on)
        logger.info("emitter %s", "on" if self.emitter_on else "off")
        self._set_status(contact=contact_line(self.emitter_on, self.in_contact))

    def on_sample(self, timestamp: float, intensity: float):
        if self._stopped:
            return
        if not self.buffer.append(timestamp, intensity):
            logger.debug("dropping out-of-order sample at %.3f", timestamp)
            return

        window = self.config.contact_window
        contact = is_contact(self.buffer.recent(window), self.emitter_on, window=window)
        self.no_contact_count = 0 if contact else self.no_contact_count + 1
        if contact != self.in_contact:
            logger.info("contact %s", "acquired" if contact else "lost")
        self.in_contact = contact
        self._set_status(contact=contact_line(self.emitter_on, contact))

        if self.no_contact_count >= self.config.reset_after_lost_samples:
            logger.info("contact lost for %d samples, clearing buffer", self.no_contact_count)
            self.reset_buffers()
            self.reset_count += 1

        self._emit_point(intensity if contact else 0.0)

        self.accepted_count += 1
        if self.accepted_count % self.config.estimation_cadence == 0:
            self._run_cycle()

    # --- internals ---

    def _run_cycle(self):
        if not self.in_contact:
            self._publish(map_prediction(Prediction(mood=Mood.FOCUSED, energy=0.0), 0.0))
            self._set_status(heart_rate="HR: 0 bpm", mood="Mood: No contact", detail=NO_CONTACT_DETAIL)
            return

        estimate = estimate_heart_rate(self.buffer.timestamps(), self.buffer.values())
        self.last_estimate = estimate
        hrv = rmssd(estimate.rr_intervals)
        prediction = self.classifier.classify(estimate.bpm, hrv, estimate.quality)
        self.last_prediction = prediction
        self._publish(map_prediction(prediction, estimate.bpm))

        self._set_status(
            heart_rate=format_heart_rate(estimate.bpm, estimate.quality, self.config.display_quality_min),
            mood=f"Mood: {prediction.mood.label}",
            detail=interpretation_text(estimate.bpm, estimate.quality, self.config.display_quality_min),
        )
        logger.debug("cycle bpm=%s quality=%.2f rmssd=%.3f mood=%s",
                     estimate.bpm, estimate.quality, hrv, prediction.mood.value)

    def _publish(self, params):
        if self._stopped:
            return
        self.engine.publish(params)
        # stop() may have landed between the check and the swap
        if self._stopped:
            self.engine.set_muted(True)

    def _emit_point(self, value: float):
        index = self.sample_index
        self.sample_index += 1
        if self.point_sink is not None:
            self.point_sink(index, value)

    def _set_status(self, **changes):
        updated = replace(self.status, **changes)
        if updated == self.status:
            return
        self.status = updated
        if self.status_sink is not None:
            self.status_sink(updated)
