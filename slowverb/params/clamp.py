"""
Clamp effect params to the control-surface ranges in PARAM_SCHEMA.
Applied to session setters and to service requests with mode=ui.
"""
from slowverb.core.params import clamp_if_bounds
from slowverb.params.schema import PARAM_SCHEMA


def clamp_params(params: dict) -> dict:
    """Return a new dict with every schema param clamped to its slider range."""
    result = params.copy()
    for name, entry in PARAM_SCHEMA.items():
        if name in result:
            result[name] = clamp_if_bounds(result[name], entry["min"], entry["max"])
    return result


def clamp_value(name: str, value: float) -> float:
    entry = PARAM_SCHEMA[name]
    return clamp_if_bounds(value, entry["min"], entry["max"])
