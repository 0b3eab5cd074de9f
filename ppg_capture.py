"""
Sample sources for the orchestrator.

CameraPPGSource reads frames from an OpenCV camera and reports the mean red
intensity of the central third of each frame. SyntheticPPGSource produces a
clean pulse for demos and bench checks without a camera.
"""
import logging
import math
import threading
import time
from typing import Callable, Iterator, Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

SampleCallback = Callable[[float, float], None]
EmitterCallback = Callable[[bool], None]


def average_red_intensity(frame: np.ndarray) -> float:
    """Mean of the red channel over the centre third of a BGR frame."""
    if frame is None or frame.ndim != 3 or frame.shape[2] < 3:
        return 0.0
    h, w = frame.shape[:2]
    roi_w, roi_h = w // 3, h // 3
    if roi_w == 0 or roi_h == 0:
        return 0.0
    x0 = (w - roi_w) // 2
    y0 = (h - roi_h) // 2
    roi = frame[y0:y0 + roi_h, x0:x0 + roi_w, 2]
    return float(np.mean(roi))


class CameraPPGSource:
    def __init__(self, on_sample: SampleCallback, on_emitter: Optional[EmitterCallback] = None,
                 camera_index: int = 0, assume_emitter: bool = True, fps: float = 30.0):
        self.on_sample = on_sample
        self.on_emitter = on_emitter
        self.camera_index = camera_index
        self.assume_emitter = assume_emitter
        self.fps = fps
        self.last_error: Optional[str] = None
        self._cap = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        if self.running:
            return True
        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            self.last_error = f"Could not open camera {self.camera_index}"
            logger.warning(self.last_error)
            cap.release()
            self._report_emitter(False)
            return False
        cap.set(cv2.CAP_PROP_FPS, self.fps)
        self._cap = cap
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="ppg-capture", daemon=True)
        self._thread.start()
        self._report_emitter(self.assume_emitter)
        logger.info("camera %d capturing", self.camera_index)
        return True

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        self._report_emitter(False)

    def _report_emitter(self, is_on: bool):
        if self.on_emitter is not None:
            self.on_emitter(is_on)

    def _run(self):
        while not self._stop.is_set():
            ret, frame = self._cap.read()
            if not ret:
                self.last_error = "Camera stopped delivering frames"
                logger.warning(self.last_error)
                break
            self.on_sample(time.monotonic(), average_red_intensity(frame))


class SyntheticPPGSource:
    """A finger-on-lens pulse at a fixed rate: baseline plus a sinusoidal beat."""

    def __init__(self, on_sample: Optional[SampleCallback] = None,
                 on_emitter: Optional[EmitterCallback] = None,
                 bpm: float = 72.0, fs: float = 30.0,
                 baseline: float = 150.0, amplitude: float = 10.0,
                 noise: float = 0.0, seed: Optional[int] = None):
        self.on_sample = on_sample
        self.on_emitter = on_emitter
        self.bpm = bpm
        self.fs = fs
        self.baseline = baseline
        self.amplitude = amplitude
        self.noise = noise
        self.rng = np.random.default_rng(seed)
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def value_at(self, t: float) -> float:
        beat = math.sin(2.0 * math.pi * (self.bpm / 60.0) * t)
        v = self.baseline + self.amplitude * beat
        if self.noise > 0:
            v += float(self.rng.normal(0.0, self.noise))
        return v

    def samples(self, duration: float, start: float = 0.0) -> Iterator[Tuple[float, float]]:
        n = int(round(duration * self.fs))
        for i in range(n):
            t = start + i / self.fs
            yield t, self.value_at(t - start)

    def start(self) -> bool:
        if self._thread is not None:
            return True
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="ppg-synthetic", daemon=True)
        self._thread.start()
        if self.on_emitter is not None:
            self.on_emitter(True)
        return True

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        if self.on_emitter is not None:
            self.on_emitter(False)

    def _run(self):
        t0 = time.monotonic()
        period = 1.0 / self.fs
        i = 0
        while not self._stop.is_set():
            t = i * period
            self.on_sample(t0 + t, self.value_at(t))
            i += 1
            delay = t0 + i * period - time.monotonic()
            if delay > 0:
                self._stop.wait(delay)
