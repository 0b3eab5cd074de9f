"""Human-readable status strings for the display."""
from dataclasses import dataclass
from typing import Optional

from pulse_config import DISPLAY_QUALITY_MIN


@dataclass(frozen=True)
class StatusText:
    heart_rate: str = "HR: -- bpm"
    mood: str = "Mood: --"
    contact: str = "Torch: -- • Contact: No"
    detail: str = "Place your fingertip over the camera and light. Hold still for 20-30 seconds."


NO_CONTACT_DETAIL = "No fingertip detected. Cover the camera and light fully and hold still."


def format_heart_rate(bpm: Optional[float], quality: float,
                      min_quality: float = DISPLAY_QUALITY_MIN) -> str:
    if bpm is None or quality <= min_quality:
        return "HR: -- bpm"
    return f"HR: {bpm:.0f} bpm"


def contact_line(emitter_on: bool, in_contact: bool) -> str:
    torch = "On" if emitter_on else "Off"
    contact = "Yes" if in_contact else "No"
    return f"Torch: {torch} • Contact: {contact}"


def interpretation_text(bpm: Optional[float], quality: float,
                        min_quality: float = DISPLAY_QUALITY_MIN) -> str:
    if quality <= min_quality:
        return "Signal quality is low. Keep your finger steady and fully covering the camera and light."
    if bpm is None:
        return "Measuring... Typical resting is ~60-100 bpm. Athletes can be lower."

    if bpm < 50:
        hint = "Lower than typical resting. If you feel unwell, consult a professional."
    elif bpm < 60:
        hint = "On the lower side. Can be normal for well-trained individuals."
    elif bpm <= 100:
        hint = "Within typical resting range for adults."
    elif bpm <= 120:
        hint = "Slightly elevated. Movement, stress, or caffeine may raise it."
    else:
        hint = "High. Consider resting. If persistent and you feel unwell, seek advice."
    return f"Your estimated heart rate is {int(bpm)} bpm. {hint}"
