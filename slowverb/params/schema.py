"""
Control-surface schema: type, default, range, step and display format per
effect param. Ranges are the slider ranges; the engine itself accepts any
value in the param's domain (see EffectParameters.validate).
"""
from typing import Dict, Any, Literal

from slowverb.params.canonical_defaults import ENGINE_DEFAULTS

ParamType = Literal["float", "int", "bool"]
DisplayFormat = Literal["percent", "seconds"]

ParamSchemaEntry = Dict[str, Any]


def _make_param(
    param_type: ParamType,
    default: Any,
    min_val: float,
    max_val: float,
    step: float,
    display: DisplayFormat,
    label: str,
    description: str,
) -> ParamSchemaEntry:
    return {
        "type": param_type,
        "default": default,
        "min": min_val,
        "max": max_val,
        "step": step,
        "display": display,
        "label": label,
        "description": description,
    }


PARAM_SCHEMA: Dict[str, ParamSchemaEntry] = {
    "speed": _make_param(
        "float", ENGINE_DEFAULTS["speed"], 0.5, 1.2, 0.01, "percent",
        "Speed", "Playback rate multiplier (pitch moves with speed)",
    ),
    "reverb_wet": _make_param(
        "float", ENGINE_DEFAULTS["reverb_wet"], 0.0, 1.0, 0.01, "percent",
        "Reverb Wetness", "Wet path gain; dry path gain is 1 - wet",
    ),
    "reverb_decay": _make_param(
        "float", ENGINE_DEFAULTS["reverb_decay"], 0.1, 10.0, 0.1, "seconds",
        "Reverb Decay", "Impulse response length (s)",
    ),
}


def format_display(name: str, value: float) -> str:
    """Render a param value the way the control surface shows it: 85%, 2.5s."""
    entry = PARAM_SCHEMA.get(name)
    if entry is None:
        return str(value)
    if entry["display"] == "percent":
        return f"{float(value) * 100:.0f}%"
    return f"{float(value):.1f}s"
