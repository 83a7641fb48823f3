from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import base64
import binascii
import logging

from slowverb.analysis.waveform import waveform_summary
from slowverb.core.errors import DecodeError, RenderError
from slowverb.core.io import AudioIO
from slowverb.core.types import EffectParameters
from slowverb.dsp.noise import make_generator
from slowverb.export.exporter import Exporter
from slowverb.params import PARAM_SCHEMA, clamp_params, resolve_params, resolve_render_settings
from slowverb.render.offline import OfflineRenderer

# Configure Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("slowverb")

app = FastAPI(
    title="Slowverb Engine",
    version="1.0.0",
    description="Slowed + reverb rendering and WAV export"
)

# CORS (Allow Frontend)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _decode_request_audio(body: dict):
    """Decode the base64 `audio` field into a SourceAudio. 400 on bad input."""
    encoded = body.get("audio")
    if not encoded:
        raise HTTPException(status_code=400, detail="Missing 'audio' (base64-encoded file)")
    name = body.get("filename")
    if name is not None and not isinstance(name, str):
        raise HTTPException(status_code=400, detail="'filename' must be a string")
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError, TypeError):
        raise HTTPException(status_code=400, detail="'audio' is not valid base64")
    try:
        return AudioIO.decode(data, name=name)
    except DecodeError as exc:
        logger.warning("Decode failed: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))


def _resolve_request(body: dict):
    """Resolved params dict, EffectParameters and renderer for a render/export request. 422 on bad input."""
    raw_params = body.get("params") or {}
    if not isinstance(raw_params, dict):
        raise HTTPException(status_code=422, detail="'params' must be an object")
    seed = body.get("seed")
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
        raise HTTPException(status_code=422, detail="'seed' must be an integer")

    params = resolve_params(raw_params)
    try:
        if body.get("mode") == "ui":
            params = clamp_params(params)
        effect = EffectParameters.from_dict(params)
        generator = make_generator(seed)
    except (TypeError, ValueError, RuntimeError, OverflowError) as exc:
        raise HTTPException(status_code=422, detail=f"Invalid request: {exc}")

    settings = resolve_render_settings({"render_length": body.get("render_length")})
    renderer = OfflineRenderer(generator=generator, render_length=settings["render_length"])
    return params, effect, renderer


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "slowverb-engine"}


@app.get("/params/schema")
async def params_schema():
    return PARAM_SCHEMA


@app.post("/render")
async def render_track(body: dict):
    """
    Renders the slowed + reverb effect.
    Body: { audio: base64 file, filename?, params?, seed?, mode?, render_length? }
    Returns JSON with base64-encoded WAV, suggested filename and resolved_params.
    """
    source = _decode_request_audio(body)
    resolved, effect, renderer = _resolve_request(body)
    try:
        result = await Exporter.export(source, effect, renderer=renderer)
    except (RenderError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return {
        "audio": base64.b64encode(result.data).decode("utf-8"),
        "filename": result.filename,
        "resolved_params": resolved,
        "duration": result.metadata["duration"],
    }


@app.post("/export")
async def export_track(body: dict):
    """
    Same as /render, returned as a WAV attachment.
    """
    source = _decode_request_audio(body)
    resolved, effect, renderer = _resolve_request(body)
    try:
        result = await Exporter.export(source, effect, renderer=renderer)
    except (RenderError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return Response(
        content=result.data,
        media_type="audio/wav",
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'}
    )


@app.post("/waveform")
async def waveform(body: dict):
    """Waveform thumbnail data for a file: 200 normalized mean-|x| buckets."""
    source = _decode_request_audio(body)
    return {
        "waveform": waveform_summary(source),
        "duration": source.duration,
        "sample_rate": source.sample_rate,
        "channels": source.channels,
    }


if __name__ == "__main__":
    uvicorn.run("slowverb.main:app", host="0.0.0.0", port=8000, reload=True)
