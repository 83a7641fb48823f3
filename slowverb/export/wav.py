"""
16-bit PCM WAV encoding. Samples are quantized here (asymmetric 32768/32767
scaling, truncation toward zero) and the int16 frames are handed to soundfile
unchanged, which writes the canonical 44-byte RIFF/WAVE header (fmt + data
sub-chunks only) followed by interleaved little-endian samples.
"""
import io
from typing import BinaryIO, NamedTuple, Union

import numpy as np
import soundfile as sf

from slowverb.core.types import RenderedBuffer

WAV_HEADER_SIZE = 44
PCM_FORMAT = 1
BITS_PER_SAMPLE = 16
BYTES_PER_SAMPLE = BITS_PER_SAMPLE // 8


class WavHeader(NamedTuple):
    riff_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int


def quantize_pcm16(samples: np.ndarray) -> np.ndarray:
    """
    Clamp to [-1, 1] then scale asymmetrically: negatives by 32768,
    non-negatives by 32767, truncating toward zero.
    """
    x = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(x < 0, x * 32768.0, x * 32767.0)
    return np.trunc(scaled).astype(np.int16)


def write_wav(buffer: RenderedBuffer, file: Union[str, BinaryIO]) -> None:
    """Quantize and write a rendered buffer to a path or binary file object."""
    if buffer.channels <= 0:
        raise ValueError("cannot encode a buffer with no channels")
    # (channels, frames) -> (frames, channels); soundfile interleaves per frame
    data = buffer.samples.detach().cpu().numpy().T
    pcm = np.ascontiguousarray(quantize_pcm16(data))
    # int16 input with PCM_16 is written as-is, no rescaling
    sf.write(file, pcm, int(buffer.sample_rate), format="WAV", subtype="PCM_16")


def encode_wav(buffer: RenderedBuffer) -> bytes:
    """Serialize a rendered buffer; output is 44 + frames * channels * 2 bytes."""
    out = io.BytesIO()
    write_wav(buffer, out)
    return out.getvalue()


def parse_wav_header(data: bytes) -> WavHeader:
    """Describe a 16-bit PCM WAV held in memory. Raises ValueError on anything else."""
    try:
        info = sf.info(io.BytesIO(data))
    except (sf.SoundFileError, RuntimeError, TypeError) as exc:
        raise ValueError(f"not a readable WAV file: {exc}") from exc
    if info.format != "WAV" or info.subtype != "PCM_16":
        raise ValueError(f"not a 16-bit PCM WAV file: {info.format}/{info.subtype}")
    block_align = info.channels * BYTES_PER_SAMPLE
    return WavHeader(
        riff_size=len(data) - 8,
        audio_format=PCM_FORMAT,
        channels=info.channels,
        sample_rate=info.samplerate,
        byte_rate=info.samplerate * block_align,
        block_align=block_align,
        bits_per_sample=BITS_PER_SAMPLE,
        data_size=info.frames * block_align,
    )
