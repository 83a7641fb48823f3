"""
Synthetic reverb impulse response: stereo uniform white noise shaped by a
power-law decay envelope. No frequency-dependent filtering.
"""
import logging
import math
from typing import Optional

import torch

from slowverb.dsp.envelopes import power_decay, DECAY_EXPONENT
from slowverb.dsp.noise import Noise

logger = logging.getLogger(__name__)

IR_CHANNELS = 2


def impulse_length(decay_seconds: float, sample_rate: int) -> int:
    """round(sample_rate * decay_seconds), at least 1. Raises ValueError on bad input."""
    try:
        decay = float(decay_seconds)
    except (TypeError, ValueError):
        raise ValueError(f"reverb decay must be a number, got {decay_seconds!r}")
    if not math.isfinite(decay) or decay <= 0:
        raise ValueError(f"reverb decay must be > 0 seconds, got {decay_seconds}")
    if int(sample_rate) <= 0:
        raise ValueError(f"sample rate must be > 0, got {sample_rate}")
    return max(1, int(round(int(sample_rate) * decay)))


def synthesize_impulse_response(
    decay_seconds: float,
    sample_rate: int,
    generator: Optional[torch.Generator] = None,
) -> torch.Tensor:
    """
    Build a stereo impulse response, shape (2, round(sample_rate * decay_seconds)).
    Each sample: Uniform(-1, 1) * (1 - j / length) ** 2.5, drawn independently
    per channel. Pass a seeded generator for reproducible output.
    """
    length = impulse_length(decay_seconds, sample_rate)
    noise = Noise.uniform(IR_CHANNELS, length, generator=generator)
    env = power_decay(length, DECAY_EXPONENT)
    logger.debug("Synthesized impulse response: %d samples @ %d Hz", length, sample_rate)
    return noise * env


class ImpulseResponseSynthesizer:
    """Holds a sample rate and random source; synthesize(decay) regenerates every call."""

    def __init__(self, sample_rate: int, generator: Optional[torch.Generator] = None):
        self.sample_rate = int(sample_rate)
        self.generator = generator

    def synthesize(self, decay_seconds: float) -> torch.Tensor:
        return synthesize_impulse_response(decay_seconds, self.sample_rate, self.generator)
