"""
Effect parameter schema, defaults and resolution.
Default values: single source is canonical_defaults.ENGINE_DEFAULTS; use resolve_params({}) for resolved defaults.
"""
from slowverb.params.schema import PARAM_SCHEMA, format_display
from slowverb.params.resolve import resolve_params, resolve_render_settings
from slowverb.params.clamp import clamp_params, clamp_value

__all__ = [
    "PARAM_SCHEMA",
    "format_display",
    "resolve_params",
    "resolve_render_settings",
    "clamp_params",
    "clamp_value",
]
