from typing import List

import torch

from slowverb.core.types import SourceAudio

WAVEFORM_BUCKETS = 200


def waveform_summary(source: SourceAudio, buckets: int = WAVEFORM_BUCKETS) -> List[float]:
    """
    Mean absolute amplitude of channel 0 in `buckets` equal blocks, normalized
    to the loudest block. Trailing frames that do not fill a block are ignored.
    Returns all zeros for silent files or files shorter than `buckets` frames.
    """
    if buckets <= 0:
        return []
    data = source.samples[0].float() if source.channels > 0 else torch.zeros(0)
    block_size = data.shape[-1] // buckets
    if block_size == 0:
        return [0.0] * buckets

    blocks = data[: block_size * buckets].abs().reshape(buckets, block_size)
    means = blocks.mean(dim=1)
    peak = float(means.max())
    if peak <= 0:
        return [0.0] * buckets
    return (means / peak).tolist()
