"""Decoder capability — bind a source, seek, hand out frames.

A decoder acknowledges two steps asynchronously: open() returns once the
metadata is loaded, seek() once the first frame at the requested offset
has been decoded. A preload is complete only after both.

MoviepyDecoder runs the blocking moviepy calls in a worker thread so the
frame loop of the clip currently on screen keeps running while the next
clip loads.
"""

import asyncio

import numpy as np
from moviepy import VideoFileClip

from .errors import DecodeError, PlaybackStartError
from .models import SourceFile


class FrameDecoder:
    """Interface every decoder implements.

    frame_at() returns an RGB uint8 array of shape (height, width, 3) for
    a time in the source's own timeline.
    """

    source: SourceFile | None = None

    async def open(self, source: SourceFile) -> None:
        raise NotImplementedError

    async def seek(self, t: float) -> None:
        raise NotImplementedError

    async def play(self) -> None:
        raise NotImplementedError

    def frame_at(self, t: float) -> np.ndarray:
        raise NotImplementedError

    @property
    def size(self) -> tuple[int, int]:
        raise NotImplementedError

    def close(self) -> None:
        pass


class MoviepyDecoder(FrameDecoder):
    """Decoder backed by a moviepy VideoFileClip (video only)."""

    def __init__(self):
        self.source = None
        self.clip = None
        self._last_t = None

    async def open(self, source: SourceFile) -> None:
        self.close()
        self.source = source
        try:
            self.clip = await asyncio.to_thread(VideoFileClip, source.path, audio=False)
        except (OSError, KeyError, ValueError, IndexError) as e:
            self.clip = None
            raise DecodeError(source.name, f"metadata failed to load ({e})") from e

    async def seek(self, t: float) -> None:
        if self.clip is None:
            raise DecodeError(self._name, "seek before open")
        try:
            await asyncio.to_thread(self.clip.get_frame, self._clamp(t))
        except (OSError, ValueError, IndexError) as e:
            raise DecodeError(self._name, f"seek to {t:.2f}s failed ({e})") from e
        self._last_t = t

    async def play(self) -> None:
        if self.clip is None or self._last_t is None:
            raise PlaybackStartError(self._name, "decoder not ready")

    def frame_at(self, t: float) -> np.ndarray:
        try:
            frame = self.clip.get_frame(self._clamp(t))
        except (OSError, ValueError, IndexError) as e:
            raise DecodeError(self._name, f"decode at {t:.2f}s failed ({e})") from e
        return np.asarray(frame, dtype=np.uint8)

    @property
    def size(self) -> tuple[int, int]:
        w, h = self.clip.size
        return int(w), int(h)

    def close(self) -> None:
        if self.clip is not None:
            self.clip.close()
            self.clip = None
        self._last_t = None

    @property
    def _name(self) -> str:
        return self.source.name if self.source else "<unbound>"

    def _clamp(self, t: float) -> float:
        """Keep reads inside the file; past the end holds the last frame."""
        fps = self.clip.fps or 30
        last = max(0.0, self.clip.duration - 1.0 / fps)
        return min(max(0.0, t), last)
