"""
FFT convolution for the reverb wet path.
Block-wise overlap-add so a live context can stream blocks through the same
convolver that an offline context runs in one block.
"""
import math
from typing import Optional

import torch
import torch.fft

# Response normalization of the platform convolver the effect was tuned on:
# equal-power scaling with a fixed 0.00125 calibration at 44.1 kHz.
GAIN_CALIBRATION = 0.00125
GAIN_CALIBRATION_SAMPLE_RATE = 44100.0
MIN_POWER = 0.000125


def normalization_scale(response: torch.Tensor, sample_rate: int) -> float:
    """Scalar applied to a (channels, length) response when normalization is on."""
    channels, length = response.shape
    power = float(torch.sum(response.double() ** 2))
    power = math.sqrt(power / (channels * length)) if length > 0 else 0.0
    if not math.isfinite(power) or power < MIN_POWER:
        power = MIN_POWER
    scale = GAIN_CALIBRATION / power
    scale *= GAIN_CALIBRATION_SAMPLE_RATE / float(sample_rate)
    return scale


def fft_convolve(x: torch.Tensor, h: torch.Tensor) -> torch.Tensor:
    """
    Full linear convolution along the last dim: (..., n) * (..., m) -> (..., n + m - 1).
    Leading dims broadcast.
    """
    n = x.shape[-1]
    m = h.shape[-1]
    if n == 0 or m == 0:
        shape = torch.broadcast_shapes(x.shape[:-1], h.shape[:-1])
        return torch.zeros(*shape, max(0, n + m - 1), dtype=x.dtype)
    out_len = n + m - 1
    n_fft = 1 << (out_len - 1).bit_length()
    X = torch.fft.rfft(x, n=n_fft)
    H = torch.fft.rfft(h, n=n_fft)
    y = torch.fft.irfft(X * H, n=n_fft)
    return y[..., :out_len]


class OverlapAddConvolver:
    """
    Stateful convolver. Channel routing:
    - mono response: every input channel convolved with it
    - stereo response, mono input: one output channel per response channel
    - stereo response, stereo input: channel-wise
    """

    def __init__(self, response: torch.Tensor, sample_rate: int, normalize: bool = True):
        if response.dim() == 1:
            response = response.unsqueeze(0)
        if response.dim() != 2 or response.shape[0] not in (1, 2) or response.shape[-1] == 0:
            raise ValueError(f"impulse response must be (1|2, length>0), got {tuple(response.shape)}")
        scale = normalization_scale(response, sample_rate) if normalize else 1.0
        self.response = (response.float() * scale)
        self.scale = scale
        self._tail: Optional[torch.Tensor] = None

    @property
    def length(self) -> int:
        return int(self.response.shape[-1])

    def reset(self) -> None:
        self._tail = None

    def _route(self, block: torch.Tensor) -> torch.Tensor:
        in_ch = block.shape[0]
        ir_ch = self.response.shape[0]
        if ir_ch == 1:
            return block
        if in_ch == 1:
            return block.expand(ir_ch, -1)
        if in_ch == ir_ch:
            return block
        raise ValueError(f"cannot convolve {in_ch}-channel input with {ir_ch}-channel response")

    def process(self, block: torch.Tensor) -> torch.Tensor:
        """Convolve one (channels, n) block; returns (out_channels, n)."""
        x = self._route(block.float())
        n = x.shape[-1]
        y = fft_convolve(x, self.response)
        if self._tail is not None and self._tail.shape[0] == y.shape[0]:
            tail_len = self._tail.shape[-1]
            y[..., :tail_len] += self._tail
        self._tail = y[..., n:].clone()
        return y[..., :n].contiguous()
