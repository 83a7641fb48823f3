"""
Pull-based processing nodes. A context pulls its destination once per block;
each node pulls its inputs, processes, and caches the result for that block so
fan-out (source -> dry + convolver) does not advance the source twice.
"""
import logging
import threading
from typing import Callable, List, Optional, TYPE_CHECKING

import torch

from slowverb.core.types import SourceAudio
from slowverb.dsp.convolution import OverlapAddConvolver
from slowverb.dsp.mixer import sum_inputs
from slowverb.dsp.resample import playback_positions, read_interpolated

if TYPE_CHECKING:
    from slowverb.graph.context import ExecutionContext

logger = logging.getLogger(__name__)


class InvalidStateError(RuntimeError):
    """Node operation not allowed in its current state (e.g. stop before start)."""


class EndedSignal:
    """
    One-shot completion signal. fire() runs subscribers at most once;
    after cancel() it never fires.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._callbacks: List[Callable[[], None]] = []
        self._fired = False
        self._cancelled = False

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def subscribe(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if self._cancelled:
                return
            if not self._fired:
                self._callbacks.append(callback)
                return
        callback()

    def fire(self) -> bool:
        with self._lock:
            if self._fired or self._cancelled:
                return False
            self._fired = True
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        self._event.set()
        for callback in callbacks:
            callback()
        return True

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            self._callbacks.clear()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


class Param:
    """Control value read once per processed block. Writes apply from the next block."""

    def __init__(self, value: float = 0.0):
        self._value = float(value)

    @property
    def value(self) -> float:
        return self._value

    @value.setter
    def value(self, new_value: float) -> None:
        self._value = float(new_value)


class AudioNode:
    def __init__(self, context: "ExecutionContext"):
        self.context = context
        self._inputs: List["AudioNode"] = []
        self._outputs: List["AudioNode"] = []
        self._cache_index = -1
        self._cache: Optional[torch.Tensor] = None

    def connect(self, node: "AudioNode") -> "AudioNode":
        """Route this node's output into `node`. Returns `node` for chaining."""
        if node.context is not self.context:
            raise ValueError("cannot connect nodes from different contexts")
        node._inputs.append(self)
        self._outputs.append(node)
        return node

    def disconnect(self) -> None:
        """Remove every outgoing connection."""
        for node in self._outputs:
            if self in node._inputs:
                node._inputs.remove(self)
        self._outputs.clear()

    @property
    def inputs(self) -> List["AudioNode"]:
        return list(self._inputs)

    @property
    def outputs(self) -> List["AudioNode"]:
        return list(self._outputs)

    def pull(self, block_index: int, frames: int) -> torch.Tensor:
        if self._cache_index == block_index and self._cache is not None:
            return self._cache
        blocks = [node.pull(block_index, frames) for node in self._inputs]
        out = self.process(blocks, frames)
        self._cache_index = block_index
        self._cache = out
        return out

    def process(self, inputs: List[torch.Tensor], frames: int) -> torch.Tensor:
        raise NotImplementedError


class SourceNode(AudioNode):
    """
    Plays one SourceAudio buffer at playback_rate. start() may be called once.
    Non-looping sources fire `ended` when the read position passes the end.
    """

    def __init__(self, context: "ExecutionContext", buffer: SourceAudio):
        super().__init__(context)
        self.buffer = buffer
        self.playback_rate = Param(1.0)
        self.loop = False
        self.ended = EndedSignal()
        self._samples = buffer.samples.float()
        self._position = 0.0
        self._started = False
        self._stopped = False
        # Buffers play at their own rate regardless of the context's rate.
        self._rate_ratio = float(buffer.sample_rate) / float(context.sample_rate)

    @property
    def position(self) -> float:
        """Read position in source frames."""
        return self._position

    @property
    def playing(self) -> bool:
        return self._started and not self._stopped

    def start(self, offset: float = 0.0) -> None:
        """Start playback at `offset` seconds into the buffer."""
        if self._started:
            raise InvalidStateError("source node can only be started once")
        frames = self.buffer.frames
        position = max(0.0, float(offset)) * self.buffer.sample_rate
        if self.loop and frames > 0:
            position = position % frames
        self._position = position
        self._started = True

    def stop(self) -> None:
        """Stop playback. Stopping an already stopped source is a no-op."""
        if not self._started:
            raise InvalidStateError("source node stopped before it was started")
        if self._stopped:
            return
        self._stopped = True
        self.ended.fire()

    def process(self, inputs: List[torch.Tensor], frames: int) -> torch.Tensor:
        channels = self._samples.shape[0]
        if not self.playing:
            return torch.zeros(channels, frames)

        rate = self.playback_rate.value * self._rate_ratio
        positions = playback_positions(self._position, frames, rate)
        out = read_interpolated(self._samples, positions, loop=self.loop)
        self._position += frames * rate

        total = self.buffer.frames
        if self.loop:
            if total > 0:
                self._position = self._position % total
        elif self._position >= total:
            self._stopped = True
            self.ended.fire()
        return out


class GainNode(AudioNode):
    def __init__(self, context: "ExecutionContext", gain: float = 1.0):
        super().__init__(context)
        self.gain = Param(gain)

    def process(self, inputs: List[torch.Tensor], frames: int) -> torch.Tensor:
        if not inputs:
            return torch.zeros(1, frames)
        return sum_inputs(inputs) * self.gain.value


class ConvolverNode(AudioNode):
    """Convolves the summed input with `buffer` (a (channels, length) impulse response)."""

    def __init__(self, context: "ExecutionContext", normalize: bool = True):
        super().__init__(context)
        self.normalize = normalize
        self._buffer: Optional[torch.Tensor] = None
        self._convolver: Optional[OverlapAddConvolver] = None

    @property
    def buffer(self) -> Optional[torch.Tensor]:
        return self._buffer

    @buffer.setter
    def buffer(self, response: Optional[torch.Tensor]) -> None:
        # Reassigning drops the previous response's tail.
        with self.context.lock:
            if response is None:
                self._buffer = None
                self._convolver = None
                return
            self._convolver = OverlapAddConvolver(response, self.context.sample_rate, self.normalize)
            self._buffer = response

    def process(self, inputs: List[torch.Tensor], frames: int) -> torch.Tensor:
        if self._convolver is None:
            return torch.zeros(2, frames)
        if not inputs:
            block = torch.zeros(1, frames)
        else:
            block = sum_inputs(inputs)
        return self._convolver.process(block)


class DestinationNode(AudioNode):
    """Final sum, mixed to the context's channel count."""

    def process(self, inputs: List[torch.Tensor], frames: int) -> torch.Tensor:
        channels = self.context.channels
        if not inputs:
            return torch.zeros(channels, frames)
        return sum_inputs(inputs, channels)
