"""CLI for rendering a shuffled video.

Sources and settings come from a YAML run manifest, from flags, or both;
flags override the manifest and positional sources replace its list.

Usage:
    # Everything on the command line
    clipshuffle render a.mp4 b.mp4 c.mp4 --length 60 \
        --min-clip 10 --max-clip 30 --width 1080 --height 1920 \
        --output reel.mp4

    # From a manifest, with a fixed seed
    clipshuffle render --manifest run.yaml --seed 7 --output reel.mp4

    # Validate only (no rendering)
    clipshuffle render --manifest run.yaml --validate
"""

import argparse
import time

from .common import load_sources
from .engine import render
from .events import ConsoleObserver, EventLog
from .models import DEFAULT_FILENAME
from .run_manifest import (
    load_run_manifest,
    normalize_config,
    settings_from_config,
    validate_config,
    validate_sources,
)


# Flag attribute → (manifest section, field).
OVERRIDES = {
    "length": ("output", "length"),
    "width": ("output", "width"),
    "height": ("output", "height"),
    "fps": ("output", "fps"),
    "min_clip": ("clips", "min_length"),
    "max_clip": ("clips", "max_length"),
    "zoom_probability": ("effects", "zoom_probability"),
    "min_zoom": ("effects", "min_zoom"),
    "max_zoom": ("effects", "max_zoom"),
    "flip_probability": ("effects", "flip_probability"),
    "slots": ("engine", "slots"),
    "seed": ("engine", "seed"),
}


def add_run_arguments(parser: argparse.ArgumentParser) -> None:
    """Arguments shared by `render` and `plan`."""
    parser.add_argument(
        "sources", nargs="*",
        help="Source videos (replace the manifest's sources if given)",
    )
    parser.add_argument(
        "--manifest", default=None,
        help="Path to YAML run manifest",
    )
    parser.add_argument("--length", type=float, default=None, help="Target duration in seconds")
    parser.add_argument(
        "--min-clip", type=float, default=None,
        help="Minimum clip length, percent of each source's duration",
    )
    parser.add_argument(
        "--max-clip", type=float, default=None,
        help="Maximum clip length, percent of each source's duration",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible run")


def build_config(parsed) -> dict:
    """Merge manifest (or defaults) with CLI overrides, then validate."""
    if parsed.manifest:
        config = load_run_manifest(parsed.manifest)
    else:
        config = normalize_config({})

    if parsed.sources:
        config["sources"] = list(parsed.sources)

    for attr, (section, key) in OVERRIDES.items():
        value = getattr(parsed, attr, None)
        if value is not None:
            config[section][key] = value
    if getattr(parsed, "blend", False):
        config["effects"]["dissolve"] = "blend"
    if getattr(parsed, "realtime", False):
        config["engine"]["realtime"] = True

    validate_config(config)
    return config


def _parse_args(args=None):
    parser = argparse.ArgumentParser(
        prog="clipshuffle render",
        description="Render a randomly shuffled video from a pool of source clips.",
    )
    add_run_arguments(parser)
    parser.add_argument(
        "--output", default=DEFAULT_FILENAME,
        help=f"Output mp4 path (default: {DEFAULT_FILENAME})",
    )
    parser.add_argument("--width", type=int, default=None, help="Output width in pixels")
    parser.add_argument("--height", type=int, default=None, help="Output height in pixels")
    parser.add_argument("--fps", type=int, default=None, help="Output frame rate")
    parser.add_argument("--zoom-probability", type=float, default=None, help="Percent of clips zoomed")
    parser.add_argument("--min-zoom", type=float, default=None, help="Minimum zoom, percent (>= 100)")
    parser.add_argument("--max-zoom", type=float, default=None, help="Maximum zoom, percent")
    parser.add_argument("--flip-probability", type=float, default=None, help="Percent of clips mirrored")
    parser.add_argument("--slots", type=int, default=None, help="Number of decode slots (>= 2)")
    parser.add_argument(
        "--blend", action="store_true",
        help="Fade the incoming clip over the previous one instead of a hard overlay",
    )
    parser.add_argument(
        "--realtime", action="store_true",
        help="Pace rendering against the wall clock instead of rendering offline",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Validate settings and sources only, don't render",
    )
    parser.add_argument("--quiet", action="store_true", help="No progress output")
    parser.add_argument("--verbose", action="store_true", help="Also report encoder chunks")
    return parser, parser.parse_args(args)


def main(args=None):
    parser, parsed = _parse_args(args)

    try:
        config = build_config(parsed)
        validate_sources(config)
        settings = settings_from_config(config)
    except (ValueError, FileNotFoundError) as e:
        parser.error(str(e))

    if parsed.validate:
        sources = load_sources(config["sources"])
        print(f"Run valid: {len(sources)} sources")
        for i, src in enumerate(sources):
            print(f"  {i}: {src.name}  {src.duration:.2f}s  {src.width}x{src.height}")
        print(
            f"Output: {settings.width}x{settings.height}, {settings.fps}fps, "
            f"{settings.target_duration:.1f}s"
        )
        print("All paths verified.")
        return

    observer = EventLog() if parsed.quiet else ConsoleObserver(verbose=parsed.verbose)
    if not parsed.quiet:
        print(f"Shuffling {len(config['sources'])} sources into {settings.target_duration:.1f}s")
        print(f"Resolution: {settings.width}x{settings.height}, {settings.fps}fps")

    t0 = time.monotonic()
    artifact = render(config["sources"], settings, output=parsed.output, observer=observer)
    elapsed = time.monotonic() - t0
    if not parsed.quiet:
        print(f"\nDone: {parsed.output} ({len(artifact)} bytes, {elapsed:.1f}s wall)")


if __name__ == "__main__":
    main()
