r"""
Slowed + reverb graph topology, shared by live and offline contexts:

    source --> dry gain (1 - wet) ---------------> master (1.0) --> destination
          \--> convolver --> wet gain (wet) ----/
"""
import logging
import math
from dataclasses import dataclass
from typing import Tuple

import torch

from slowverb.core.types import SourceAudio
from slowverb.graph.context import ExecutionContext
from slowverb.graph.nodes import ConvolverNode, EndedSignal, GainNode, InvalidStateError, SourceNode

logger = logging.getLogger(__name__)


def mix_gains(wet_level: float) -> Tuple[float, float]:
    """(dry_gain, wet_gain) == (1 - wet_level, wet_level)."""
    w = float(wet_level)
    if not math.isfinite(w) or not 0.0 <= w <= 1.0:
        raise ValueError(f"wet level must be in [0, 1], got {wet_level}")
    return 1.0 - w, w


def _check_speed(speed: float) -> float:
    s = float(speed)
    if not math.isfinite(s) or s <= 0:
        raise ValueError(f"speed must be > 0, got {speed}")
    return s


@dataclass
class SignalGraph:
    """One-shot graph instance: started once, torn down once."""
    context: ExecutionContext
    source: SourceNode
    convolver: ConvolverNode
    wet_gain: GainNode
    dry_gain: GainNode
    master_gain: GainNode
    torn_down: bool = False

    @property
    def ended(self) -> EndedSignal:
        return self.source.ended

    def start(self, offset: float = 0.0) -> None:
        if self.torn_down:
            raise InvalidStateError("graph has been torn down")
        self.source.start(offset)

    def set_speed(self, speed: float) -> None:
        self.source.playback_rate.value = _check_speed(speed)

    def set_wet_level(self, wet_level: float) -> None:
        dry, wet = mix_gains(wet_level)
        with self.context.lock:
            self.dry_gain.gain.value = dry
            self.wet_gain.gain.value = wet

    def set_impulse_response(self, impulse_response: torch.Tensor) -> None:
        self.convolver.buffer = impulse_response

    def teardown(self) -> None:
        """Suppress completion, stop the source and disconnect every stage."""
        if self.torn_down:
            return
        with self.context.lock:
            self.source.ended.cancel()
            try:
                self.source.stop()
            except InvalidStateError:
                logger.debug("Teardown of a graph that never started")
            for node in (self.source, self.convolver, self.wet_gain, self.dry_gain, self.master_gain):
                node.disconnect()
            self.torn_down = True


def build_graph(
    context: ExecutionContext,
    source: SourceAudio,
    impulse_response: torch.Tensor,
    speed: float,
    wet_level: float,
    loop: bool = False,
    normalize: bool = True,
) -> SignalGraph:
    speed = _check_speed(speed)
    dry, wet = mix_gains(wet_level)

    with context.lock:
        src = context.create_buffer_source(source)
        src.loop = loop
        src.playback_rate.value = speed

        convolver = context.create_convolver(normalize=normalize)
        convolver.buffer = impulse_response

        wet_gain = context.create_gain(wet)
        dry_gain = context.create_gain(dry)
        master_gain = context.create_gain(1.0)

        src.connect(dry_gain).connect(master_gain)
        src.connect(convolver).connect(wet_gain).connect(master_gain)
        master_gain.connect(context.destination)

    logger.debug(
        "Built graph: speed=%.3f dry=%.3f wet=%.3f loop=%s ir=%d samples",
        speed, dry, wet, loop, impulse_response.shape[-1],
    )
    return SignalGraph(context, src, convolver, wet_gain, dry_gain, master_gain)
