"""
Interactive session: one loaded asset, one live graph at a time, and the
download (offline render) that must not overlap live playback.

Only the orchestrating control flow touches the session; render and encode
routines get their own graph and buffers.
"""
import logging
from typing import Callable, Dict, Any, List, Optional

from slowverb.analysis.waveform import waveform_summary
from slowverb.core.errors import PlaybackStartError, RenderError
from slowverb.core.io import AudioIO
from slowverb.core.types import EffectParameters, ExportResult, SourceAudio
from slowverb.dsp.impulse import synthesize_impulse_response
from slowverb.dsp.noise import make_generator
from slowverb.export.exporter import Exporter
from slowverb.graph.builder import SignalGraph, build_graph
from slowverb.graph.context import ExecutionContext, LiveContext
from slowverb.params.canonical_defaults import ENGINE_DEFAULTS, RENDER_DEFAULTS
from slowverb.params.clamp import clamp_value
from slowverb.render.offline import OfflineRenderer
from slowverb.session.tracker import PlaybackPositionTracker

logger = logging.getLogger(__name__)

ContextFactory = Callable[[int, int], ExecutionContext]

LIVE_CHANNELS = 2


def default_context_factory(sample_rate: int, channels: int) -> ExecutionContext:
    return LiveContext(sample_rate, channels=channels, block_size=RENDER_DEFAULTS["block_size"])


class Session:
    def __init__(
        self,
        context_factory: Optional[ContextFactory] = None,
        params: Optional[EffectParameters] = None,
        seed: Optional[int] = None,
        render_length: Optional[str] = None,
    ):
        self._context_factory = context_factory or default_context_factory
        self.params = params or EffectParameters(**ENGINE_DEFAULTS)
        self.params.validate()
        self._generator = make_generator(seed)
        self._render_length = render_length

        self.source: Optional[SourceAudio] = None
        self.waveform: List[float] = []
        self._context: Optional[ExecutionContext] = None
        self._graph: Optional[SignalGraph] = None
        self._tracker: Optional[PlaybackPositionTracker] = None
        self._is_rendering = False

    # ------------------------------------------------------------------
    # Status surface
    # ------------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self._graph is not None

    @property
    def is_rendering(self) -> bool:
        return self._is_rendering

    @property
    def graph(self) -> Optional[SignalGraph]:
        return self._graph

    @property
    def position(self) -> float:
        """Playback position in seconds."""
        if self._tracker is None:
            return 0.0
        return self._tracker.position(self._now())

    @property
    def duration(self) -> float:
        return self.source.duration if self.source is not None else 0.0

    def status(self) -> Dict[str, Any]:
        return {
            "file": self.source.name if self.source is not None else None,
            "is_playing": self.is_playing,
            "is_rendering": self.is_rendering,
            "position": self.position,
            "duration": self.duration,
            "params": self.params.to_dict(),
        }

    def _now(self) -> float:
        return self._context.current_time if self._context is not None else 0.0

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, data: bytes, name: Optional[str] = None) -> SourceAudio:
        """Decode and replace the current asset. On DecodeError the old asset stays."""
        source = AudioIO.decode(data, name=name)
        self._replace_source(source)
        return source

    def load_path(self, path: str) -> SourceAudio:
        source = AudioIO.load(path)
        self._replace_source(source)
        return source

    def _replace_source(self, source: SourceAudio) -> None:
        self.stop()
        if self._context is not None and self._context.sample_rate != source.sample_rate:
            self._context.close()
            self._context = None
        self.source = source
        self.waveform = waveform_summary(source, RENDER_DEFAULTS["waveform_buckets"])
        self._tracker = PlaybackPositionTracker(source.duration)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def play(self) -> None:
        """No-op without an asset, while playing, or while a download renders."""
        if self.source is None or self.is_playing:
            return
        if self._is_rendering:
            logger.info("Render in progress; playback not started")
            return
        self._start_graph(self._tracker.offset)

    def pause(self) -> None:
        """Tear down the live graph, keeping the position as the resume offset."""
        self.stop()

    def toggle_play(self) -> None:
        if self.is_playing:
            self.pause()
        else:
            self.play()

    def stop(self) -> None:
        """Synchronous and idempotent."""
        graph, self._graph = self._graph, None
        if graph is None:
            return
        if self._tracker is not None and self._tracker.playing:
            self._tracker.pause(self._now())
        graph.teardown()
        logger.debug("Playback stopped at %.3fs", self.position)

    def seek(self, fraction: float) -> float:
        """Jump to a fraction of the track; restarts the live graph when playing."""
        if self.source is None:
            return 0.0
        was_playing = self.is_playing
        self.stop()
        offset = self._tracker.seek(fraction)
        if was_playing and not self._is_rendering:
            self._start_graph(offset)
        return offset

    def _ensure_context(self) -> ExecutionContext:
        if self._context is None:
            self._context = self._context_factory(self.source.sample_rate, LIVE_CHANNELS)
        return self._context

    def _start_graph(self, offset: float) -> None:
        graph = None
        try:
            context = self._ensure_context()
            impulse = synthesize_impulse_response(
                self.params.reverb_decay, context.sample_rate, self._generator
            )
            graph = build_graph(
                context,
                self.source,
                impulse,
                speed=self.params.speed,
                wet_level=self.params.reverb_wet,
                loop=True,
            )
            graph.ended.subscribe(lambda: self._on_graph_ended(graph))
            graph.start(offset)
            context.resume()
        except PlaybackStartError:
            if graph is not None:
                graph.teardown()
            logger.error("Playback could not start")
            raise
        except (ValueError, RuntimeError) as exc:
            if graph is not None:
                graph.teardown()
            raise PlaybackStartError(f"Playback could not start: {exc}") from exc

        self._graph = graph
        self._tracker.start(context.current_time, offset)
        logger.debug("Playback started at %.3fs", offset)

    def _on_graph_ended(self, graph: SignalGraph) -> None:
        if graph is not self._graph:
            return
        self._tracker.reset()
        self._graph = None
        graph.teardown()

    # ------------------------------------------------------------------
    # Parameters (applied in place to the live graph)
    # ------------------------------------------------------------------

    def set_speed(self, speed: float) -> float:
        value = clamp_value("speed", speed)
        self.params.speed = value
        if self._graph is not None:
            self._graph.set_speed(value)
        return value

    def set_reverb_wet(self, wet: float) -> float:
        value = clamp_value("reverb_wet", wet)
        self.params.reverb_wet = value
        if self._graph is not None:
            self._graph.set_wet_level(value)
        return value

    def set_reverb_decay(self, decay: float) -> float:
        """Regenerates only the impulse response when playing."""
        value = clamp_value("reverb_decay", decay)
        self.params.reverb_decay = value
        if self._graph is not None:
            impulse = synthesize_impulse_response(value, self._graph.context.sample_rate, self._generator)
            self._graph.set_impulse_response(impulse)
        return value

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    async def download(self) -> ExportResult:
        """Stop playback, render offline and encode. One render at a time."""
        if self.source is None:
            raise RenderError("No audio loaded")
        if self._is_rendering:
            raise RenderError("A render is already in progress")
        self.stop()
        self._is_rendering = True
        try:
            renderer = OfflineRenderer(generator=self._generator, render_length=self._render_length)
            params = EffectParameters(**self.params.to_dict())
            return await Exporter.export(self.source, params, renderer=renderer)
        finally:
            self._is_rendering = False

    def close(self) -> None:
        self.stop()
        if self._context is not None:
            self._context.close()
            self._context = None
