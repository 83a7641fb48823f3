"""
Tests for the HTTP service (slowverb/main.py).
Run from project root: python -m pytest tests/test_api.py -v
"""
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import base64
import io

import numpy as np
import pytest
import soundfile as sf
from fastapi.testclient import TestClient

from slowverb.export.wav import parse_wav_header
from slowverb.main import app

SR = 8000
FRAMES = 4000

client = TestClient(app)


def _audio_b64(channels: int = 2) -> str:
    t = np.arange(FRAMES) / SR
    tone = (0.4 * np.sin(2 * np.pi * 330.0 * t)).astype(np.float32)
    buf = io.BytesIO()
    sf.write(buf, np.stack([tone] * channels, axis=1), SR, format="WAV", subtype="FLOAT")
    return base64.b64encode(buf.getvalue()).decode("utf-8")


def _body(**extra):
    body = {"audio": _audio_b64(), "filename": "tone.wav", "seed": 3}
    body.update(extra)
    return body


# -----------------------------------------------------------------------------
# Metadata endpoints
# -----------------------------------------------------------------------------

def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_params_schema():
    schema = client.get("/params/schema").json()
    assert set(schema) == {"speed", "reverb_wet", "reverb_decay"}
    assert schema["speed"]["default"] == 0.85
    assert schema["reverb_decay"]["display"] == "seconds"


# -----------------------------------------------------------------------------
# Render / export
# -----------------------------------------------------------------------------

def test_render_returns_wav_and_resolved_params():
    response = client.post("/render", json=_body(params={"speed": 0.9, "reverb_decay": 0.5}))
    assert response.status_code == 200
    payload = response.json()
    assert payload["filename"] == "slowed_reverb_tone.wav"
    assert payload["resolved_params"] == {"speed": 0.9, "reverb_wet": 0.4, "reverb_decay": 0.5}
    assert payload["duration"] == pytest.approx(FRAMES / SR)
    wav = base64.b64decode(payload["audio"])
    header = parse_wav_header(wav)
    assert header.channels == 2
    assert header.sample_rate == SR
    assert header.data_size == FRAMES * 2 * 2


def test_render_is_deterministic_with_seed():
    a = client.post("/render", json=_body(params={"reverb_decay": 0.3})).json()["audio"]
    b = client.post("/render", json=_body(params={"reverb_decay": 0.3})).json()["audio"]
    assert a == b


def test_render_ui_mode_clamps():
    response = client.post("/render", json=_body(params={"speed": 5.0, "reverb_decay": 0.2}, mode="ui"))
    assert response.status_code == 200
    assert response.json()["resolved_params"]["speed"] == 1.2


def test_render_stretched_length():
    response = client.post(
        "/render", json=_body(params={"speed": 0.5, "reverb_decay": 0.2}, render_length="stretched")
    )
    assert response.status_code == 200
    assert response.json()["duration"] == pytest.approx(2 * FRAMES / SR)


def test_render_without_filename_uses_fallback():
    body = _body(params={"reverb_decay": 0.2})
    del body["filename"]
    assert client.post("/render", json=body).json()["filename"] == "slowed_reverb_audio.wav"


def test_export_returns_attachment():
    response = client.post("/export", json=_body(params={"reverb_decay": 0.2}))
    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/wav"
    assert 'filename="slowed_reverb_tone.wav"' in response.headers["content-disposition"]
    assert response.content[:4] == b"RIFF"
    assert parse_wav_header(response.content).data_size == FRAMES * 2 * 2


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------

def test_missing_audio_is_400():
    assert client.post("/render", json={"params": {}}).status_code == 400


def test_invalid_base64_is_400():
    assert client.post("/render", json={"audio": "***not base64***"}).status_code == 400


def test_undecodable_audio_is_400():
    body = {"audio": base64.b64encode(b"this is not audio").decode("utf-8")}
    assert client.post("/export", json=body).status_code == 400


@pytest.mark.parametrize("params", [{"speed": 0}, {"reverb_wet": 2.0}, {"speed": "fast"}])
def test_invalid_params_are_422(params):
    assert client.post("/render", json=_body(params=params)).status_code == 422


@pytest.mark.parametrize("extra", [
    {"params": {"speed": [1]}},
    {"params": {"speed": [1]}, "mode": "ui"},
    {"params": {"reverb_decay": {"a": 1}}},
    {"params": [1]},
    {"params": "fast"},
    {"seed": "abc"},
    {"seed": 1.5},
    {"seed": True},
    {"seed": 2 ** 80},
    {"render_length": "bogus"},
    {"render_length": ["source"]},
])
def test_malformed_request_fields_are_422(extra):
    lenient = TestClient(app, raise_server_exceptions=False)
    for path in ("/render", "/export"):
        assert lenient.post(path, json=_body(**extra)).status_code == 422


@pytest.mark.parametrize("body", [
    {"audio": 12345},
    {"audio": ["a"]},
    {"audio": "UklGRg==", "filename": 7},
])
def test_malformed_audio_fields_are_400(body):
    lenient = TestClient(app, raise_server_exceptions=False)
    assert lenient.post("/render", json=body).status_code == 400


# -----------------------------------------------------------------------------
# Waveform
# -----------------------------------------------------------------------------

def test_waveform_endpoint():
    response = client.post("/waveform", json={"audio": _audio_b64(channels=1)})
    assert response.status_code == 200
    payload = response.json()
    assert len(payload["waveform"]) == 200
    assert max(payload["waveform"]) == pytest.approx(1.0)
    assert payload["channels"] == 1
    assert payload["sample_rate"] == SR
    assert payload["duration"] == pytest.approx(FRAMES / SR)


if __name__ == "__main__":
    test_health()
    test_render_returns_wav_and_resolved_params()
    test_export_returns_attachment()
    print("All API tests passed.")
