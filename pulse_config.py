"""
Configuration for the pulse synth pipeline.

Every threshold the pipeline uses lives here so tests and the launcher can
build a PipelineConfig with different values.
"""
from dataclasses import dataclass

# ---------------------------- Audio ----------------------------------

SAMPLE_RATE = 48000
BLOCK_SIZE = 512
CHANNELS = 2

# ---------------------------- Signal ---------------------------------

DETREND_WINDOW = 30          # samples, ~1 s at 30 fps
LOWPASS_ALPHA = 0.2
VARIANCE_FLOOR = 1e-9

MIN_SAMPLES = 60
MIN_PEAK_DISTANCE_SEC = 0.33  # caps detection at ~182 BPM
THRESHOLD_RMS_RATIO = 0.3
RMS_FLOOR = 1e-6
RR_MIN_SEC = 0.25
RR_MAX_SEC = 2.0

# ---------------------------- Contact --------------------------------

CONTACT_WINDOW = 25
CONTACT_MIN_SAMPLES = 15
CONTACT_MIN_MEAN = 110.0     # 8-bit red channel, torch on
CONTACT_MAX_STD = 30.0

# ---------------------------- Orchestrator ---------------------------

BUFFER_SECONDS = 15.0
ESTIMATION_CADENCE = 15
RESET_AFTER_LOST_SAMPLES = 30
DISPLAY_QUALITY_MIN = 0.2


@dataclass(frozen=True)
class PipelineConfig:
    buffer_seconds: float = BUFFER_SECONDS
    estimation_cadence: int = ESTIMATION_CADENCE
    reset_after_lost_samples: int = RESET_AFTER_LOST_SAMPLES
    contact_window: int = CONTACT_WINDOW
    display_quality_min: float = DISPLAY_QUALITY_MIN
