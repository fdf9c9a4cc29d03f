"""Shared test fixtures for clipshuffle tests."""

import subprocess

import numpy as np
import pytest
import imageio_ffmpeg

from clipshuffle.errors import DecodeError, PlaybackStartError
from clipshuffle.models import SourceFile

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


def _make_video(out, lavfi_source):
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", lavfi_source,
            "-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out


@pytest.fixture
def source_video(tmp_path):
    """A 3-second 320x240 test pattern at 10fps, no audio."""
    return _make_video(tmp_path / "pattern.mp4", "testsrc=s=320x240:d=3:r=10")


@pytest.fixture
def wide_video(tmp_path):
    """A 2-second 160x90 solid red clip at 10fps, no audio."""
    return _make_video(tmp_path / "red.mp4", "color=c=red:s=160x90:d=2:r=10")


# ── In-process decoder double ────────────────────────────────────


def source(name, duration=10.0, width=160, height=90, path=None):
    """Build a SourceFile without touching the disk."""
    return SourceFile(name=name, path=path or f"/fake/{name}", duration=duration,
                      width=width, height=height)


def color_for(name: str) -> tuple[int, int, int]:
    """Stable per-source solid color, so frames reveal which clip drew them."""
    seed = sum(ord(c) for c in name)
    return (seed * 37 % 256, seed * 91 % 256, seed * 53 % 256)


class FakeDecoder:
    """Decoder double returning solid frames in the source's color.

    Class-level `log` records every call across instances; `fail_open`,
    `fail_seek` and `fail_play` name sources whose step should fail.
    """

    log: list = []
    fail_open: set = set()
    fail_seek: set = set()
    fail_play: set = set()

    def __init__(self):
        self.source = None
        self.closed = False

    @classmethod
    def reset(cls):
        cls.log = []
        cls.fail_open = set()
        cls.fail_seek = set()
        cls.fail_play = set()

    async def open(self, source):
        FakeDecoder.log.append(("open", source.name))
        if source.name in FakeDecoder.fail_open:
            raise DecodeError(source.name, "metadata failed to load")
        self.source = source

    async def seek(self, t):
        FakeDecoder.log.append(("seek", self.source.name, t))
        if self.source.name in FakeDecoder.fail_seek:
            raise DecodeError(self.source.name, "seek failed")

    async def play(self):
        FakeDecoder.log.append(("play", self.source.name))
        if self.source.name in FakeDecoder.fail_play:
            raise PlaybackStartError(self.source.name, "play failed")

    def frame_at(self, t):
        return np.full((self.source.height, self.source.width, 3),
                       color_for(self.source.name), dtype=np.uint8)

    @property
    def size(self):
        return self.source.width, self.source.height

    def close(self):
        self.closed = True


@pytest.fixture
def fake_decoder():
    FakeDecoder.reset()
    yield FakeDecoder
    FakeDecoder.reset()
