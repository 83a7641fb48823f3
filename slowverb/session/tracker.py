"""
Playback position from a clock reference.
position = (offset + (now - started_at)) mod duration

Each pause stores the exact position as the new offset and each start takes a
fresh clock reference, so play/pause/seek cycles never accumulate deltas.
"""
from typing import Optional


def wrap_position(offset: float, elapsed: float, duration: float) -> float:
    """(offset + elapsed) mod duration, always in [0, duration)."""
    if duration <= 0:
        return 0.0
    return (float(offset) + float(elapsed)) % float(duration)


class PlaybackPositionTracker:
    def __init__(self, duration: float):
        self.duration = float(duration)
        self._offset = 0.0
        self._started_at: Optional[float] = None

    @property
    def playing(self) -> bool:
        return self._started_at is not None

    @property
    def offset(self) -> float:
        """Position captured at the last start/pause/seek."""
        return self._offset

    def start(self, now: float, offset: Optional[float] = None) -> None:
        if offset is not None:
            self._offset = wrap_position(offset, 0.0, self.duration)
        self._started_at = float(now)

    def position(self, now: float) -> float:
        if self._started_at is None:
            return self._offset
        return wrap_position(self._offset, float(now) - self._started_at, self.duration)

    def pause(self, now: float) -> float:
        """Capture the current position as the resume offset."""
        self._offset = self.position(now)
        self._started_at = None
        return self._offset

    def seek(self, fraction: float, now: Optional[float] = None) -> float:
        """Jump to fraction (clamped to [0, 1]) of the duration. Returns the new offset."""
        fraction = max(0.0, min(1.0, float(fraction)))
        self._offset = fraction * self.duration
        if self._started_at is not None and now is not None:
            self._started_at = float(now)
        return self._offset

    def reset(self) -> None:
        self._offset = 0.0
        self._started_at = None
