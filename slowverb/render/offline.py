"""
Offline rendering of the slowed + reverb graph.

Render length follows the source frame count by default ("source" mode):
slow-downs are cut off at the input length and speed-ups end in silence.
"stretched" mode renders ceil(frames / speed) frames so the whole slowed
signal is captured.
"""
import asyncio
import logging
from typing import Optional, Union

import torch

from slowverb.analysis.levels import analyze_levels
from slowverb.core.errors import RenderError
from slowverb.core.types import EffectParameters, RenderedBuffer, SourceAudio
from slowverb.dsp.impulse import synthesize_impulse_response
from slowverb.dsp.resample import stretched_length
from slowverb.graph.builder import build_graph
from slowverb.graph.context import OfflineContext
from slowverb.params.canonical_defaults import RENDER_DEFAULTS, RENDER_LENGTH_MODES
from slowverb.params.resolve import resolve_params

logger = logging.getLogger(__name__)

ParamsLike = Union[EffectParameters, dict]


def _as_effect_parameters(params: ParamsLike) -> EffectParameters:
    if isinstance(params, EffectParameters):
        return params
    return EffectParameters.from_dict(resolve_params(params))


def _validate_source(source: SourceAudio) -> None:
    samples = source.samples
    if not isinstance(samples, torch.Tensor) or samples.dim() != 2:
        raise ValueError("source samples must be a (channels, frames) tensor")
    if source.channels not in (1, 2):
        raise ValueError(f"unsupported channel count: {source.channels}")
    if source.frames == 0:
        raise ValueError("source has no samples")
    if int(source.sample_rate) <= 0:
        raise ValueError(f"invalid sample rate: {source.sample_rate}")


def output_length(frames: int, speed: float, mode: str = "source") -> int:
    """Output frame count for a source of `frames` frames played at `speed`."""
    if mode not in RENDER_LENGTH_MODES:
        raise ValueError(f"render_length must be one of {RENDER_LENGTH_MODES}, got {mode!r}")
    if mode == "stretched":
        return stretched_length(frames, speed)
    return frames


class OfflineRenderer:
    """
    Renders a source through a freshly built graph. Every render synthesizes
    its own impulse response from `generator` (None = global torch RNG).
    """

    def __init__(
        self,
        generator: Optional[torch.Generator] = None,
        render_length: Optional[str] = None,
        normalize_impulse: Optional[bool] = None,
    ):
        self.generator = generator
        self.render_length = render_length or RENDER_DEFAULTS["render_length"]
        self.normalize_impulse = (
            RENDER_DEFAULTS["normalize_impulse"] if normalize_impulse is None else bool(normalize_impulse)
        )

    def render_sync(self, source: SourceAudio, params: ParamsLike) -> RenderedBuffer:
        """Blocking render. Raises RenderError on any failure."""
        try:
            effect = _as_effect_parameters(params)
            effect.validate()
            _validate_source(source)
            length = output_length(source.frames, effect.speed, self.render_length)

            impulse = synthesize_impulse_response(effect.reverb_decay, source.sample_rate, self.generator)
            context = OfflineContext(source.channels, length, source.sample_rate)
            graph = build_graph(
                context,
                source,
                impulse,
                speed=effect.speed,
                wet_level=effect.reverb_wet,
                loop=False,
                normalize=self.normalize_impulse,
            )
            graph.start(0.0)
            samples = context.start_rendering()
        except RenderError:
            raise
        except (ValueError, TypeError, KeyError, RuntimeError, MemoryError) as exc:
            logger.error("Render failed: %s", exc)
            raise RenderError(f"Render failed: {exc}") from exc

        levels = analyze_levels(samples)
        logger.info(
            "Rendered %d frames x %d ch @ %d Hz (speed=%.2f wet=%.2f decay=%.1fs, mode=%s): "
            "peak %.2f dBFS, %d samples over full scale",
            length, source.channels, source.sample_rate,
            effect.speed, effect.reverb_wet, effect.reverb_decay, self.render_length,
            levels["peak_dbfs"], levels["clipped_samples"],
        )
        return RenderedBuffer(samples=samples, sample_rate=source.sample_rate)

    async def render(self, source: SourceAudio, params: ParamsLike) -> RenderedBuffer:
        """Render in a worker thread; suspends only the awaiting task."""
        return await asyncio.to_thread(self.render_sync, source, params)


async def render(
    source: SourceAudio,
    params: ParamsLike,
    generator: Optional[torch.Generator] = None,
    render_length: Optional[str] = None,
) -> RenderedBuffer:
    return await OfflineRenderer(generator=generator, render_length=render_length).render(source, params)
