"""
Value helpers for the flat effect params dict ("speed", "reverb_wet", "reverb_decay").
Values arrive from JSON bodies and CLI flags, so numbers may still be strings.
"""
from typing import Any, Optional


def coerce_float(value: Any) -> Any:
    """float(value) when it parses; otherwise the value unchanged (validation rejects it later)."""
    if isinstance(value, bool):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


def clamp_if_bounds(
    value: float,
    min: Optional[float] = None,
    max: Optional[float] = None,
) -> float:
    """Clamp value to [min, max] when bounds are not None. Unparseable values pass through."""
    v = coerce_float(value)
    if not isinstance(v, float):
        return value
    if min is not None and v < min:
        return min
    if max is not None and v > max:
        return max
    return v
