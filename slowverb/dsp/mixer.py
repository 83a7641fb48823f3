"""
Channel mixing for summing junctions (gain nodes, destination).
Up-mix copies mono into each channel; stereo down-mixes to mono as 0.5 * (L + R).
Shorter inputs are zero-padded to the longest.
"""
from typing import List

import torch


def mix_channels(block: torch.Tensor, channels: int) -> torch.Tensor:
    """Convert a (in_channels, n) block to `channels` channels."""
    in_ch = block.shape[0]
    if in_ch == channels:
        return block
    if in_ch == 1:
        return block.expand(channels, -1).clone()
    if channels == 1:
        return block.mean(dim=0, keepdim=True)
    if in_ch > channels:
        return block[:channels].clone()
    # Fill missing channels with silence.
    return torch.nn.functional.pad(block, (0, 0, 0, channels - in_ch))


def sum_inputs(blocks: List[torch.Tensor], channels: int = 0) -> torch.Tensor:
    """
    Sum blocks into one (channels, n) tensor. channels=0 picks the widest input.
    Returns an empty (max(channels, 1), 0) tensor when there are no inputs.
    """
    if not blocks:
        return torch.zeros(max(channels, 1), 0)
    out_ch = channels or max(b.shape[0] for b in blocks)
    ref_len = max(b.shape[-1] for b in blocks)
    master = None
    for raw in blocks:
        block = mix_channels(raw, out_ch)
        length = block.shape[-1]
        if length < ref_len:
            block = torch.nn.functional.pad(block, (0, ref_len - length))
        if master is None:
            master = block.clone()
        else:
            master = master + block
    return master
