"""
Parameter resolution: deep-merge ENGINE_DEFAULTS / RENDER_DEFAULTS with incoming
params. Incoming params override defaults at any nesting level.
"""
from typing import Dict, Any

from slowverb.core.params import coerce_float
from slowverb.params.canonical_defaults import ENGINE_DEFAULTS, RENDER_DEFAULTS


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dicts. override values take precedence.
    Returns a new dict (does not mutate inputs).
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def resolve_params(params: dict) -> dict:
    """
    Resolve effect params: ENGINE_DEFAULTS merged with incoming params.
    None values count as missing. Numeric strings are coerced to float.
    """
    incoming = {k: v for k, v in (params or {}).items() if v is not None}
    merged = _deep_merge(ENGINE_DEFAULTS, incoming)
    for key in ENGINE_DEFAULTS:
        if isinstance(merged[key], str):
            merged[key] = coerce_float(merged[key])
    return merged


def resolve_render_settings(settings: dict) -> dict:
    """Resolve render settings (render_length, normalize_impulse, ...)."""
    incoming = {k: v for k, v in (settings or {}).items() if v is not None}
    return _deep_merge(RENDER_DEFAULTS, incoming)
