"""
Canonical defaults: single source for effect and render settings.
Effect defaults match the control surface's initial slider positions.
"""
from typing import Dict, Any

ENGINE_DEFAULTS: Dict[str, Any] = {
    "speed": 0.85,
    "reverb_wet": 0.4,
    "reverb_decay": 2.5,
}

RENDER_DEFAULTS: Dict[str, Any] = {
    # "source": render length = source frame count (slow-downs are truncated).
    # "stretched": render length = ceil(frames / speed).
    "render_length": "source",
    "normalize_impulse": True,
    # Frames pulled per live callback.
    "block_size": 2048,
    "waveform_buckets": 200,
}

RENDER_LENGTH_MODES = ("source", "stretched")

FALLBACK_FILENAME = "audio.wav"
EXPORT_PREFIX = "slowed_reverb_"
