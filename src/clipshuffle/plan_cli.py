"""CLI for a dry run — print the clip plan without rendering.

Usage:
    clipshuffle plan a.mp4 b.mp4 --length 60 --min-clip 10 --max-clip 30
    clipshuffle plan --manifest run.yaml --seed 7
"""

import argparse
import random

from .cli import add_run_arguments, build_config
from .common import load_sources
from .planner import build_sequence
from .run_manifest import validate_sources


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="clipshuffle plan",
        description="Print the randomized clip plan without rendering.",
    )
    add_run_arguments(parser)
    parsed = parser.parse_args(args)

    try:
        config = build_config(parsed)
        validate_sources(config)
    except (ValueError, FileNotFoundError) as e:
        parser.error(str(e))

    sources = load_sources(config["sources"])
    rng = random.Random(config["engine"]["seed"])
    plan = build_sequence(
        sources,
        config["output"]["length"],
        config["clips"]["min_length"],
        config["clips"]["max_length"],
        rng,
    )

    total = 0.0
    print(f"{'#':>3}  {'source':<32} {'start':>8} {'length':>8} {'total':>8}")
    for i, clip in enumerate(plan):
        total += clip.length
        print(
            f"{i:>3}  {clip.source.name[:32]:<32} "
            f"{clip.start:>7.2f}s {clip.length:>7.2f}s {total:>7.2f}s"
        )
    print(f"\n{len(plan)} clips, {total:.2f}s planned for {config['output']['length']:.2f}s target")


if __name__ == "__main__":
    main()
