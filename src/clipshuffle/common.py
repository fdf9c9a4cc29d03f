"""clipshuffle.common — shared utilities.

Contains: path variable resolution for manifests and source probing
(name, duration and native size of each input video).
"""

import re
from pathlib import Path

from moviepy import VideoFileClip

from .errors import DecodeError
from .models import SourceFile


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return paths[key]
    return re.sub(r"\$\{(\w+)\}", _replace, text)


# ── Source probing ─────────────────────────────────────────────────

def probe_source(path: str | Path) -> SourceFile:
    """Read a video's duration and native pixel size.

    The file is opened without audio and closed again immediately; only the
    metadata is kept. Decoding for rendering happens later, per slot.

    Raises:
        FileNotFoundError: The path does not exist.
        DecodeError: The file exists but can't be read as a video.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Source video not found: {p}")
    try:
        with VideoFileClip(str(p), audio=False) as clip:
            width, height = clip.size
            duration = float(clip.duration or 0.0)
    except (OSError, KeyError, ValueError, IndexError) as e:
        raise DecodeError(p.name, f"could not read metadata ({e})") from e
    return SourceFile(
        name=p.name, path=str(p), duration=duration, width=int(width), height=int(height),
    )


def load_sources(paths: list[str | Path | SourceFile]) -> list[SourceFile]:
    """Probe every path, in order. Already-probed SourceFiles pass through.

    Missing files are reported together, before anything is opened.
    """
    missing = [
        str(p) for p in paths
        if not isinstance(p, SourceFile) and not Path(p).exists()
    ]
    if missing:
        msg = f"Missing {len(missing)} source file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)
    return [p if isinstance(p, SourceFile) else probe_source(p) for p in paths]
