"""
Level statistics for rendered buffers: peak, RMS, and how many samples the
WAV encoder will hard-clamp.
"""
from typing import Dict

import numpy as np
import torch


def _dbfs(x: float) -> float:
    """Linear amplitude to dBFS."""
    if x <= 0:
        return -np.inf
    return 20.0 * np.log10(abs(x))


def analyze_levels(samples: torch.Tensor) -> Dict:
    """Peak/RMS/clipping metrics for a (channels, frames) buffer."""
    flat = samples.reshape(-1).float()
    if flat.numel() == 0:
        return {"peak": 0.0, "peak_dbfs": -np.inf, "rms": 0.0, "clipped_samples": 0, "clipped_ratio": 0.0}
    peak = float(torch.max(torch.abs(flat)))
    rms = float(torch.sqrt(torch.mean(flat ** 2) + 1e-12))
    clipped = int(torch.count_nonzero(torch.abs(flat) > 1.0))
    return {
        "peak": peak,
        "peak_dbfs": _dbfs(peak),
        "rms": rms,
        "clipped_samples": clipped,
        "clipped_ratio": clipped / flat.numel(),
    }
