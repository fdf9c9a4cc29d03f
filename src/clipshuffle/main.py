"""Subcommand dispatcher for clipshuffle.

Usage:
    clipshuffle render a.mp4 b.mp4 --length 60 --output reel.mp4
    clipshuffle render --manifest run.yaml --output reel.mp4
    clipshuffle plan   a.mp4 b.mp4 --length 60 --seed 7
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="clipshuffle",
        description="Randomized clip shuffling and frame compositing.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("render", help="Render a shuffled video")
    subparsers.add_parser("plan", help="Print the clip plan without rendering")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        # No subcommand given at all — show help and exit with error.
        parser.print_help()
        sys.exit(1)

    if parsed.command == "render":
        from .cli import main as render_main
        render_main(remaining)
    elif parsed.command == "plan":
        from .plan_cli import main as plan_main
        plan_main(remaining)


if __name__ == "__main__":
    main()
