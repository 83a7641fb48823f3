"""
Error kinds surfaced to callers. All failures are terminal for the triggering
operation; nothing is retried.
"""


class SlowverbError(Exception):
    """Base class for errors raised by the engine."""


class DecodeError(SlowverbError):
    """Input could not be decoded (unsupported or corrupt file, bad channel count)."""


class RenderError(SlowverbError):
    """Offline render failed; no buffer or file is produced."""


class PlaybackStartError(SlowverbError):
    """Live playback could not start (device or audio context unavailable)."""
