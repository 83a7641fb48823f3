"""
Tests for slowverb/session/session: load, play/pause, in-place param updates,
seek, download, and the single-render guard. Uses a manually clocked context
so no audio device is needed.
Run from project root: python -m pytest tests/test_session.py -v
"""
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import asyncio
import io
import math

import numpy as np
import pytest
import soundfile as sf

from slowverb.core.errors import DecodeError, PlaybackStartError, RenderError
from slowverb.core.types import ExportResult
from slowverb.export.wav import parse_wav_header
from slowverb.graph.context import ExecutionContext, LiveContext
from slowverb.session.session import Session, default_context_factory

SR = 8000


class ManualContext(ExecutionContext):
    """Context whose clock only moves when the test sets `now`."""

    def __init__(self, sample_rate, channels, fail_resume=False):
        super().__init__(sample_rate, channels)
        self.now = 0.0
        self.resumes = 0
        self.closed = False
        self.fail_resume = fail_resume

    @property
    def current_time(self):
        return self.now

    def resume(self):
        if self.fail_resume:
            raise PlaybackStartError("no device")
        self.resumes += 1

    def close(self):
        self.closed = True


class Factory:
    def __init__(self, fail_resume=False):
        self.contexts = []
        self.fail_resume = fail_resume

    def __call__(self, sample_rate, channels):
        ctx = ManualContext(sample_rate, channels, fail_resume=self.fail_resume)
        self.contexts.append(ctx)
        return ctx

    @property
    def last(self):
        return self.contexts[-1]


def _wav_bytes(seconds=2.0, rate=SR, channels=2):
    frames = int(seconds * rate)
    t = np.arange(frames) / rate
    tone = (0.5 * np.sin(2 * math.pi * 220.0 * t)).astype(np.float32)
    data = np.stack([tone] * channels, axis=1)
    buf = io.BytesIO()
    sf.write(buf, data, rate, format="WAV", subtype="FLOAT")
    return buf.getvalue()


def _session(factory=None, **kwargs):
    factory = factory or Factory()
    session = Session(context_factory=factory, seed=1, **kwargs)
    session.load(_wav_bytes(), "tone.wav")
    return session, factory


# -----------------------------------------------------------------------------
# Loading
# -----------------------------------------------------------------------------

def test_load_sets_asset_and_waveform():
    session, _ = _session()
    assert session.source.name == "tone.wav"
    assert session.duration == pytest.approx(2.0)
    assert len(session.waveform) == 200
    assert max(session.waveform) == pytest.approx(1.0)
    assert not session.is_playing
    assert session.position == 0.0


def test_decode_error_keeps_previous_asset():
    session, _ = _session()
    old = session.source
    with pytest.raises(DecodeError):
        session.load(b"definitely not audio", "broken.mp3")
    assert session.source is old


def test_load_while_playing_stops_playback():
    session, _ = _session()
    session.play()
    graph = session.graph
    session.load(_wav_bytes(seconds=1.0), "other.wav")
    assert not session.is_playing
    assert graph.torn_down
    assert session.duration == pytest.approx(1.0)


def test_new_sample_rate_replaces_context():
    session, factory = _session()
    session.play()
    first = factory.last
    session.load(_wav_bytes(seconds=1.0, rate=16000), "hi.wav")
    assert first.closed
    session.play()
    assert factory.last is not first
    assert factory.last.sample_rate == 16000


def test_default_factory_builds_live_context():
    ctx = default_context_factory(SR, 2)
    assert isinstance(ctx, LiveContext)
    assert not ctx.running


# -----------------------------------------------------------------------------
# Playback
# -----------------------------------------------------------------------------

def test_play_builds_looping_graph_and_resumes():
    session, factory = _session()
    session.play()
    assert session.is_playing
    assert session.graph.source.loop is True
    assert factory.last.resumes == 1
    # A second play is ignored
    graph = session.graph
    session.play()
    assert session.graph is graph


def test_toggle_play():
    session, _ = _session()
    session.toggle_play()
    assert session.is_playing
    graph = session.graph
    session.toggle_play()
    assert not session.is_playing
    assert graph.torn_down


def test_stop_is_idempotent():
    session, _ = _session()
    session.stop()
    session.play()
    session.stop()
    session.stop()
    assert not session.is_playing


def test_pause_resume_uses_new_graph_and_keeps_position():
    session, factory = _session()
    session.play()
    ctx = factory.last
    first = session.graph
    ctx.now = 0.75
    session.pause()
    assert session.position == pytest.approx(0.75)
    ctx.now = 5.0
    assert session.position == pytest.approx(0.75)
    session.play()
    assert session.graph is not first
    assert first.torn_down
    assert session.graph.source.position == pytest.approx(0.75 * SR)
    ctx.now = 5.5
    assert session.position == pytest.approx(1.25)


def test_position_wraps_at_duration():
    session, factory = _session()
    session.play()
    factory.last.now = 2.5
    assert session.position == pytest.approx(0.5)


def test_play_without_asset_is_ignored():
    session = Session(context_factory=Factory())
    session.play()
    assert not session.is_playing


def test_playback_start_error_leaves_session_idle():
    factory = Factory(fail_resume=True)
    session, _ = _session(factory)
    with pytest.raises(PlaybackStartError):
        session.play()
    assert not session.is_playing
    assert factory.last.destination.inputs == []


def test_natural_end_resets_position():
    session, factory = _session()
    session.play()
    factory.last.now = 1.0
    session.graph.source.stop()
    assert not session.is_playing
    assert session.position == 0.0


# -----------------------------------------------------------------------------
# Parameters
# -----------------------------------------------------------------------------

def test_speed_updates_live_graph_in_place():
    session, _ = _session()
    session.play()
    graph = session.graph
    assert session.set_speed(0.7) == pytest.approx(0.7)
    assert session.graph is graph
    assert graph.source.playback_rate.value == pytest.approx(0.7)


def test_wet_updates_live_graph_in_place():
    session, _ = _session()
    session.play()
    graph = session.graph
    session.set_reverb_wet(0.25)
    assert session.graph is graph
    assert graph.dry_gain.gain.value == pytest.approx(0.75)
    assert graph.wet_gain.gain.value == pytest.approx(0.25)


def test_decay_swaps_only_the_impulse_response():
    session, _ = _session()
    session.play()
    graph = session.graph
    old_buffer = graph.convolver.buffer
    session.set_reverb_decay(1.0)
    assert session.graph is graph
    assert graph.convolver.buffer is not old_buffer
    assert graph.convolver.buffer.shape == (2, SR)


def test_setters_clamp_to_slider_ranges():
    session, _ = _session()
    assert session.set_speed(5.0) == 1.2
    assert session.set_speed(0.1) == 0.5
    assert session.set_reverb_wet(-1.0) == 0.0
    assert session.set_reverb_decay(0.0) == 0.1
    assert session.set_reverb_decay(60.0) == 10.0
    assert session.params.to_dict() == {"speed": 0.5, "reverb_wet": 0.0, "reverb_decay": 10.0}


def test_params_apply_to_next_play():
    session, _ = _session()
    session.set_speed(0.6)
    session.set_reverb_wet(0.9)
    session.play()
    assert session.graph.source.playback_rate.value == pytest.approx(0.6)
    assert session.graph.wet_gain.gain.value == pytest.approx(0.9)


# -----------------------------------------------------------------------------
# Seek
# -----------------------------------------------------------------------------

def test_seek_idle_moves_offset():
    session, _ = _session()
    assert session.seek(0.5) == pytest.approx(1.0)
    assert not session.is_playing
    assert session.position == pytest.approx(1.0)


def test_seek_while_playing_restarts_graph():
    session, factory = _session()
    session.play()
    first = session.graph
    factory.last.now = 0.3
    session.seek(0.25)
    assert session.is_playing
    assert session.graph is not first
    assert first.torn_down
    assert session.graph.source.position == pytest.approx(0.5 * SR)
    factory.last.now = 0.8
    assert session.position == pytest.approx(1.0)


def test_seek_clamps():
    session, _ = _session()
    assert session.seek(-3.0) == 0.0
    assert session.seek(9.0) == pytest.approx(2.0)


# -----------------------------------------------------------------------------
# Download
# -----------------------------------------------------------------------------

def test_download_renders_and_stops_playback():
    session, _ = _session()
    session.play()
    result = asyncio.run(session.download())
    assert isinstance(result, ExportResult)
    assert result.filename == "slowed_reverb_tone.wav"
    header = parse_wav_header(result.data)
    assert header.channels == 2
    assert header.sample_rate == SR
    assert header.data_size == 2 * SR * 2 * 2
    assert not session.is_playing
    assert not session.is_rendering


def test_download_without_asset():
    session = Session(context_factory=Factory())
    with pytest.raises(RenderError):
        asyncio.run(session.download())


def test_concurrent_download_rejected():
    session, _ = _session()

    async def both():
        return await asyncio.gather(session.download(), session.download(), return_exceptions=True)

    results = asyncio.run(both())
    assert isinstance(results[0], ExportResult)
    assert isinstance(results[1], RenderError)
    assert not session.is_rendering


def test_play_ignored_while_download_renders():
    session, factory = _session()

    async def play_during_render():
        task = asyncio.create_task(session.download())
        await asyncio.sleep(0)
        assert session.is_rendering
        session.play()
        session.toggle_play()
        session.seek(0.5)
        state = (session.is_playing, session.is_rendering)
        await task
        return state

    assert asyncio.run(play_during_render()) == (False, True)
    assert not session.is_rendering
    assert factory.contexts == []
    session.play()
    assert session.is_playing


def test_stretched_download_length():
    session, _ = _session(render_length="stretched")
    session.set_speed(0.5)
    result = asyncio.run(session.download())
    assert parse_wav_header(result.data).data_size == 4 * SR * 2 * 2


# -----------------------------------------------------------------------------
# Status and shutdown
# -----------------------------------------------------------------------------

def test_status():
    session, _ = _session()
    session.play()
    status = session.status()
    assert status["file"] == "tone.wav"
    assert status["is_playing"] is True
    assert status["is_rendering"] is False
    assert status["duration"] == pytest.approx(2.0)
    assert status["params"] == {"speed": 0.85, "reverb_wet": 0.4, "reverb_decay": 2.5}


def test_close_stops_and_closes_context():
    session, factory = _session()
    session.play()
    session.close()
    assert not session.is_playing
    assert factory.last.closed


if __name__ == "__main__":
    test_load_sets_asset_and_waveform()
    test_toggle_play()
    test_pause_resume_uses_new_graph_and_keeps_position()
    test_setters_clamp_to_slider_ranges()
    test_download_renders_and_stops_playback()
    print("All session tests passed.")
