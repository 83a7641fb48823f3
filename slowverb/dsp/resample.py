"""
Playback-rate reading: the source is read at fractional positions advancing
by `rate` per output frame, with linear interpolation. Pitch and duration
change together (duration scales by 1 / rate).
"""
import math

import torch


def playback_positions(start: float, count: int, rate: float) -> torch.Tensor:
    """Read positions (in source frames) for `count` output frames. float64."""
    grid = torch.arange(count, dtype=torch.float64)
    return start + grid * float(rate)


def read_interpolated(samples: torch.Tensor, positions: torch.Tensor, loop: bool = False) -> torch.Tensor:
    """
    Read (channels, frames) samples at fractional positions.
    y = x[floor] * (1 - frac) + x[floor + 1] * frac
    loop=True wraps positions around the buffer; otherwise positions outside
    [0, frames) read as silence and the final frame interpolates against itself.
    """
    channels, frames = samples.shape
    count = positions.shape[-1]
    if frames == 0 or count == 0:
        return torch.zeros(channels, count, dtype=samples.dtype)

    if loop:
        positions = torch.remainder(positions, frames)

    indices_floor = torch.floor(positions).long()
    frac = (positions - indices_floor.double()).to(samples.dtype)

    if loop:
        indices_floor = indices_floor % frames
        indices_ceil = (indices_floor + 1) % frames
    else:
        valid = (positions >= 0) & (positions < frames)
        indices_floor = indices_floor.clamp(0, frames - 1)
        indices_ceil = (indices_floor + 1).clamp(max=frames - 1)

    out = samples[:, indices_floor] * (1.0 - frac) + samples[:, indices_ceil] * frac
    if not loop:
        out = out * valid.to(samples.dtype)
    return out


def stretched_length(frames: int, rate: float) -> int:
    """Frames needed to play `frames` source frames at `rate` to the end."""
    if rate <= 0:
        raise ValueError(f"playback rate must be > 0, got {rate}")
    return int(math.ceil(frames / float(rate)))
