#!/usr/bin/env python3
"""
Canonical slowed + reverb tool with debug outputs and fingerprinting.

Usage:
    python tools/render.py <subcommand> [options]

Subcommands:
    render <input>        Render an input file to slowed_reverb_<name>.wav
    waveform <input>      Print the 200-bucket waveform summary as JSON
    inspect <wav>         Print the header of a WAV file
    play <input>          Play an input file live (Ctrl+C to stop)

Options (render):
    --speed <float>        Playback rate multiplier (default: 0.85)
    --wet <float>          Reverb wet level 0-1 (default: 0.4)
    --decay <float>        Reverb decay seconds (default: 2.5)
    --seed <int>           Fixed impulse response seed (default: random)
    --render-length <str>  "source" (original length) or "stretched"
    --mode <str>           "default" or "ui" (clamps to slider ranges)
    --output-dir <path>    Output directory (default: unique timestamped dir)
    --debug                Save resolved.json with param trace
"""
import sys
import os
import json
import time
import logging
import argparse
from pathlib import Path

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tools.render_core import render_file, get_unique_output_dir
from slowverb.analysis.waveform import waveform_summary
from slowverb.core.errors import DecodeError, PlaybackStartError, RenderError
from slowverb.core.io import AudioIO
from slowverb.export.wav import parse_wav_header
from slowverb.params import format_display
from slowverb.params.canonical_defaults import RENDER_LENGTH_MODES
from slowverb.session.session import Session


def _params_from_args(args) -> dict:
    params = {}
    if args.speed is not None:
        params["speed"] = args.speed
    if args.wet is not None:
        params["reverb_wet"] = args.wet
    if args.decay is not None:
        params["reverb_decay"] = args.decay
    return params


def cmd_render(args):
    """Render one input file."""
    output_dir = Path(args.output_dir) if args.output_dir else get_unique_output_dir("render")

    try:
        rendered, debug_info = render_file(
            input_path=args.input,
            params=_params_from_args(args),
            output_dir=output_dir,
            filename=args.filename,
            seed=args.seed,
            render_length=args.render_length,
            debug=args.debug,
            mode=args.mode,
            script_name="render.py render",
        )
    except (DecodeError, RenderError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    resolved = debug_info["resolved_params"]
    print(f"\n=== Render Complete ===")
    print(f"Input: {debug_info['input']}")
    print(f"Output: {debug_info['wav_path']}")
    print(
        f"Speed: {format_display('speed', resolved['speed'])}, "
        f"Wet: {format_display('reverb_wet', resolved['reverb_wet'])}, "
        f"Decay: {format_display('reverb_decay', resolved['reverb_decay'])}"
    )
    print(f"Seed: {debug_info['seed']}")
    print(f"Length: {rendered.frames} frames ({rendered.duration:.2f}s, {debug_info['render_length']})")
    print(f"Fingerprint SHA256: {debug_info['fingerprint']['sha256'][:16]}...")
    print(f"Peak: {debug_info['fingerprint']['peak']:.4f}, RMS: {debug_info['fingerprint']['rms']:.4f}")
    if debug_info["fingerprint"]["clipped_samples"]:
        print(f"Clamped samples: {debug_info['fingerprint']['clipped_samples']}")
    if args.debug:
        print(f"Debug JSON: {debug_info['json_path']}")
    return 0


def cmd_waveform(args):
    try:
        source = AudioIO.load(args.input)
    except DecodeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(json.dumps({"duration": source.duration, "waveform": waveform_summary(source)}))
    return 0


def cmd_inspect(args):
    with open(args.wav, "rb") as f:
        data = f.read()
    try:
        header = parse_wav_header(data)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    for key, value in header._asdict().items():
        print(f"{key}: {value}")
    print(f"file_size: {len(data)}")
    return 0


def cmd_play(args):
    session = Session(seed=args.seed)
    try:
        session.load_path(args.input)
        for name, value in _params_from_args(args).items():
            getattr(session, f"set_{name}")(value)
        session.play()
    except (DecodeError, PlaybackStartError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        session.close()
        return 1

    print(f"Playing {args.input}. Press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
            print(f"\r{session.position:7.2f}s / {session.duration:.2f}s", end="", flush=True)
    except KeyboardInterrupt:
        print("\nExit.")
    finally:
        session.close()
    return 0


def main():
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(
        description="Slowed + reverb renderer with debug outputs and fingerprinting"
    )

    subparsers = parser.add_subparsers(dest="command", help="Subcommand")

    def add_effect_args(p):
        p.add_argument("--speed", type=float, default=None, help="Playback rate multiplier")
        p.add_argument("--wet", type=float, default=None, help="Reverb wet level (0-1)")
        p.add_argument("--decay", type=float, default=None, help="Reverb decay (s)")
        p.add_argument("--seed", type=int, default=None, help="Fixed seed (default: random)")

    p_render = subparsers.add_parser("render", help="Render an input file")
    p_render.add_argument("input")
    add_effect_args(p_render)
    p_render.add_argument("--render-length", choices=list(RENDER_LENGTH_MODES), default=None,
                          help="Output length: source frame count or stretched by 1/speed")
    p_render.add_argument("--mode", choices=["default", "ui"], default="default",
                          help="ui clamps params to the slider ranges")
    p_render.add_argument("--output-dir", type=str, help="Output directory (default: unique timestamped)")
    p_render.add_argument("--filename", type=str, help="Output filename")
    p_render.add_argument("--debug", action="store_true", help="Save resolved.json with param trace")

    p_wave = subparsers.add_parser("waveform", help="Print waveform summary")
    p_wave.add_argument("input")

    p_inspect = subparsers.add_parser("inspect", help="Print WAV header fields")
    p_inspect.add_argument("wav")

    p_play = subparsers.add_parser("play", help="Play an input file live")
    p_play.add_argument("input")
    add_effect_args(p_play)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "render":
        return cmd_render(args)
    elif args.command == "waveform":
        return cmd_waveform(args)
    elif args.command == "inspect":
        return cmd_inspect(args)
    elif args.command == "play":
        return cmd_play(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
