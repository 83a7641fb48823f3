"""
Execution contexts: own a destination, create nodes, and drive the graph.
OfflineContext renders a fixed-length buffer in one block; LiveContext pulls
blocks from a sounddevice output stream callback.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
import torch

from slowverb.core.errors import PlaybackStartError
from slowverb.core.types import SourceAudio
from slowverb.graph.nodes import ConvolverNode, DestinationNode, GainNode, SourceNode

logger = logging.getLogger(__name__)


class ExecutionContext(ABC):
    def __init__(self, sample_rate: int, channels: int):
        if int(sample_rate) <= 0:
            raise ValueError(f"sample rate must be > 0, got {sample_rate}")
        if int(channels) <= 0:
            raise ValueError(f"channel count must be > 0, got {channels}")
        self.sample_rate = int(sample_rate)
        self.channels = int(channels)
        # Serializes block processing against graph construction/teardown.
        self.lock = threading.RLock()
        self.destination = DestinationNode(self)
        self._block_index = 0
        self._frames_processed = 0

    @property
    @abstractmethod
    def current_time(self) -> float:
        """Context clock in seconds."""

    @property
    def frames_processed(self) -> int:
        return self._frames_processed

    def create_buffer_source(self, buffer: SourceAudio) -> SourceNode:
        return SourceNode(self, buffer)

    def create_convolver(self, normalize: bool = True) -> ConvolverNode:
        return ConvolverNode(self, normalize=normalize)

    def create_gain(self, gain: float = 1.0) -> GainNode:
        return GainNode(self, gain)

    def process_block(self, frames: int) -> torch.Tensor:
        """Pull one block of `frames` through the graph. Returns (channels, frames)."""
        with self.lock:
            index = self._block_index
            self._block_index += 1
            out = self.destination.pull(index, frames)
            self._frames_processed += frames
        return out

    def resume(self) -> None:
        """Begin advancing the clock (device contexts open their stream here)."""

    def close(self) -> None:
        pass


class OfflineContext(ExecutionContext):
    """Renders `length` frames as fast as possible, once."""

    def __init__(self, channels: int, length: int, sample_rate: int):
        super().__init__(sample_rate, channels)
        if int(length) <= 0:
            raise ValueError(f"render length must be > 0 frames, got {length}")
        self.length = int(length)
        self._rendered = False

    @property
    def current_time(self) -> float:
        return self._frames_processed / float(self.sample_rate)

    def start_rendering(self) -> torch.Tensor:
        if self._rendered:
            raise RuntimeError("offline context has already rendered")
        self._rendered = True
        out = self.process_block(self.length)
        return out[:, : self.length].contiguous()


class LiveContext(ExecutionContext):
    """
    Real-time context on the default (or given) output device.
    The clock advances with frames delivered to the device, so it stands still
    until resume() opens the stream.
    """

    def __init__(
        self,
        sample_rate: int,
        channels: int = 2,
        block_size: int = 2048,
        device: Optional[int] = None,
    ):
        super().__init__(sample_rate, channels)
        self.block_size = int(block_size)
        self.device = device
        self._stream = None

    @property
    def current_time(self) -> float:
        return self._frames_processed / float(self.sample_rate)

    @property
    def running(self) -> bool:
        return self._stream is not None

    def _callback(self, outdata, frames, time_info, status):
        if status:
            logger.warning("Output stream status: %s", status)
        block = self.process_block(frames)
        outdata[:] = block.t().numpy().astype(np.float32, copy=False)

    def resume(self) -> None:
        """Open and start the output stream. Raises PlaybackStartError when unavailable."""
        if self._stream is not None:
            return
        try:
            import sounddevice as sd
        except (ImportError, OSError) as exc:
            raise PlaybackStartError(f"Audio output unavailable: {exc}") from exc
        try:
            stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                blocksize=self.block_size,
                dtype="float32",
                device=self.device,
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            raise PlaybackStartError(f"Could not open output stream: {exc}") from exc
        self._stream = stream
        logger.info("Output stream started: %d Hz, %d ch", self.sample_rate, self.channels)

    def close(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        stream.stop()
        stream.close()
        logger.info("Output stream closed")
