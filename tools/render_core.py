"""
Core rendering utilities with debug outputs, fingerprinting, and param tracing.
Used by the canonical render.py tool.
"""
import sys
import os
import json
import asyncio
import hashlib
import random
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Tuple

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from slowverb.analysis.levels import analyze_levels
from slowverb.core.io import AudioIO
from slowverb.core.types import EffectParameters, RenderedBuffer
from slowverb.dsp.noise import make_generator
from slowverb.export.exporter import suggested_filename
from slowverb.export.wav import encode_wav
from slowverb.params import clamp_params, resolve_params, resolve_render_settings
from slowverb.render.offline import OfflineRenderer


def _get_git_hash() -> str:
    """Get short git commit hash."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            cwd=os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except OSError:
        pass
    return "unknown"


def compute_fingerprint(wav_bytes: bytes, rendered: RenderedBuffer) -> Dict:
    """Fingerprint: SHA256 of the encoded file plus level stats of the float render."""
    levels = analyze_levels(rendered.samples)
    return {
        "sha256": hashlib.sha256(wav_bytes).hexdigest(),
        "peak": levels["peak"],
        "rms": levels["rms"],
        "clipped_samples": levels["clipped_samples"],
    }


def render_file(
    input_path: str,
    params: dict,
    output_dir: Path,
    filename: Optional[str] = None,
    seed: Optional[int] = None,
    render_length: Optional[str] = None,
    debug: bool = False,
    mode: str = "default",
    script_name: str = "unknown",
) -> Tuple[RenderedBuffer, Dict]:
    """
    Render one input file with full param tracing and fingerprinting.

    Args:
        input_path: Audio file to process
        params: Effect params dict (speed, reverb_wet, reverb_decay; may be partial)
        output_dir: Directory to save WAV and debug JSON
        filename: Output filename (default: slowed_reverb_<input name>)
        seed: Random seed for the impulse response (None = random)
        render_length: "source" or "stretched" (None = default)
        debug: Save <filename>.resolved.json
        mode: "default" or "ui" (clamps params to slider ranges)
        script_name: Name of calling script (for debug JSON)

    Returns:
        Tuple of (rendered_buffer, debug_info_dict)
    """
    if seed is None:
        seed = random.randint(0, 2**31 - 1)

    input_params = params.copy() if params else {}

    # Step 1: Resolve params (defaults + overrides), clamp in ui mode
    resolved_params = resolve_params(input_params)
    if mode == "ui":
        resolved_params = clamp_params(resolved_params)
    settings = resolve_render_settings({"render_length": render_length})

    # Step 2: Decode and render
    source = AudioIO.load(input_path)
    renderer = OfflineRenderer(
        generator=make_generator(seed),
        render_length=settings["render_length"],
    )
    rendered = asyncio.run(renderer.render(source, EffectParameters.from_dict(resolved_params)))

    # Step 3: Encode and save
    wav_bytes = encode_wav(rendered)
    output_dir.mkdir(parents=True, exist_ok=True)
    out_name = filename or suggested_filename(source.name)
    if not out_name.lower().endswith(".wav"):
        out_name = f"{os.path.splitext(out_name)[0]}.wav"
    wav_path = output_dir / out_name
    with open(wav_path, "wb") as f:
        f.write(wav_bytes)

    # Step 4: Debug info
    debug_info = {
        "input": str(input_path),
        "script_name": script_name,
        "timestamp": datetime.now().isoformat(),
        "git_hash": _get_git_hash(),
        "seed": seed,
        "mode": mode,
        "render_length": settings["render_length"],
        "input_params": input_params,
        "resolved_params": resolved_params,
        "source": {
            "frames": source.frames,
            "channels": source.channels,
            "sample_rate": source.sample_rate,
        },
        "fingerprint": compute_fingerprint(wav_bytes, rendered),
        "wav_path": str(wav_path),
    }

    if debug:
        json_path = output_dir / f"{os.path.splitext(out_name)[0]}.resolved.json"
        debug_info["json_path"] = str(json_path)
        with open(json_path, "w") as f:
            json.dump(debug_info, f, indent=2, default=str)

    return rendered, debug_info


def get_unique_output_dir(base_name: str) -> Path:
    """
    Generate unique output directory: renders/{base_name}/YYYYMMDD_HHMMSS_{gitshort}/
    """
    now = datetime.now()
    date_str = now.strftime("%Y%m%d")
    time_str = now.strftime("%H%M%S")
    git_hash = _get_git_hash()
    short_hash = git_hash[:8] if git_hash != "unknown" else "unknown"

    unique_dir = Path("renders") / base_name / f"{date_str}_{time_str}_{short_hash}"
    return unique_dir
