import logging
import os
from typing import Optional

import torch

from slowverb.core.types import EffectParameters, ExportResult, SourceAudio
from slowverb.export.wav import encode_wav
from slowverb.params.canonical_defaults import EXPORT_PREFIX, FALLBACK_FILENAME
from slowverb.render.offline import OfflineRenderer, ParamsLike

logger = logging.getLogger(__name__)


def suggested_filename(original_name: Optional[str]) -> str:
    """slowed_reverb_<originalName>, or slowed_reverb_audio.wav without a name."""
    name = os.path.basename(original_name) if original_name else ""
    return f"{EXPORT_PREFIX}{name or FALLBACK_FILENAME}"


class Exporter:
    @staticmethod
    async def export(
        source: SourceAudio,
        params: ParamsLike,
        generator: Optional[torch.Generator] = None,
        render_length: Optional[str] = None,
        renderer: Optional[OfflineRenderer] = None,
    ) -> ExportResult:
        """Render the source and encode it to WAV bytes with a suggested filename."""
        renderer = renderer or OfflineRenderer(generator=generator, render_length=render_length)
        rendered = await renderer.render(source, params)
        data = encode_wav(rendered)
        filename = suggested_filename(source.name)
        effect = params if isinstance(params, EffectParameters) else None
        logger.info("Exported %s (%d bytes)", filename, len(data))
        return ExportResult(
            filename=filename,
            data=data,
            metadata={
                "frames": rendered.frames,
                "channels": rendered.channels,
                "sample_rate": rendered.sample_rate,
                "duration": rendered.duration,
                "params": effect.to_dict() if effect is not None else dict(params),
            },
        )
