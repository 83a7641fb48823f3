import io
import logging
import os
from typing import Optional

import numpy as np
import soundfile as sf
import torch

from slowverb.core.errors import DecodeError
from slowverb.core.types import RenderedBuffer, SourceAudio
from slowverb.export.wav import write_wav

logger = logging.getLogger(__name__)

SUPPORTED_CHANNELS = (1, 2)


class AudioIO:
    @staticmethod
    def decode(data: bytes, name: Optional[str] = None) -> SourceAudio:
        """
        Decode an audio file held in memory (any container libsndfile reads).
        Raises DecodeError for undecodable data, empty files and channel counts other than 1 or 2.
        """
        if not data:
            raise DecodeError("No audio data")
        try:
            samples, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
        except (sf.SoundFileError, RuntimeError, TypeError, ValueError) as exc:
            raise DecodeError(f"Could not decode {name or 'audio'}: {exc}") from exc
        return AudioIO._to_source(samples, sample_rate, name)

    @staticmethod
    def load(path: str) -> SourceAudio:
        """Decode a file from disk; the basename becomes the source name."""
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as exc:
            raise DecodeError(f"Could not read {path}: {exc}") from exc
        return AudioIO.decode(data, name=os.path.basename(path))

    @staticmethod
    def _to_source(samples: np.ndarray, sample_rate: int, name: Optional[str]) -> SourceAudio:
        frames, channels = samples.shape
        if channels not in SUPPORTED_CHANNELS:
            raise DecodeError(f"Unsupported channel count: {channels} (expected mono or stereo)")
        if frames == 0:
            raise DecodeError(f"{name or 'audio'} contains no samples")
        # soundfile yields (frames, channels); the engine works channel-major
        tensor = torch.from_numpy(np.ascontiguousarray(samples.T))
        logger.info("Decoded %s: %d frames, %d ch @ %d Hz", name or "audio", frames, channels, sample_rate)
        return SourceAudio(samples=tensor, sample_rate=int(sample_rate), name=name)

    @staticmethod
    def save_wav(buffer: RenderedBuffer, path: str) -> int:
        """Write a rendered buffer as 16-bit PCM WAV. Returns the file size in bytes."""
        write_wav(buffer, path)
        return os.path.getsize(path)
