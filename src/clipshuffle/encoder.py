"""Encoders — turn a stream of RGB frames into a media blob.

The sink adapter drives an encoder through three calls: start(on_chunk),
write(frame) per output frame, stop() -> content type. Encoded bytes are
handed back through on_chunk, in order; the encoder decides the chunk size.

FfmpegEncoder pipes raw frames into the ffmpeg binary bundled with
imageio-ffmpeg. MemoryEncoder keeps raw RGB frames in process, for dry
runs and tests.
"""

import os
import subprocess
import tempfile
from functools import lru_cache

import imageio_ffmpeg
import numpy as np

from .errors import CodecCapabilityDegradation

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()

PREFERRED_CODEC = "libx264"
PREFERRED_BITRATE = "8M"
DEFAULT_CODEC = "mpeg4"

CHUNK_SIZE = 1 << 20

CONTENT_TYPES = {
    "libx264": 'video/mp4; codecs="avc1.42E01E"',
}


@lru_cache(maxsize=None)
def available_encoders(ffmpeg_exe: str = _FFMPEG) -> frozenset[str]:
    """Names of the video encoders the ffmpeg build supports."""
    result = subprocess.run(
        [ffmpeg_exe, "-hide_banner", "-encoders"],
        capture_output=True, text=True, check=True,
    )
    names = set()
    for line in result.stdout.splitlines():
        parts = line.split()
        # Encoder rows look like " V....D libx264   H.264 / AVC ...".
        if len(parts) >= 2 and parts[0].startswith("V") and len(parts[0]) == 6:
            names.add(parts[1])
    return frozenset(names)


class FfmpegEncoder:
    """Encode frames to mp4 with ffmpeg.

    Frames are written to a temporary file; stop() streams the finished
    file back through on_chunk in CHUNK_SIZE pieces and deletes it.

    Args:
        width: Frame width in pixels.
        height: Frame height in pixels.
        fps: Output frame rate.
        codec: ffmpeg encoder name. None uses DEFAULT_CODEC.
        bitrate: Target bitrate, e.g. "8M". None lets ffmpeg decide.

    Raises:
        CodecCapabilityDegradation: The ffmpeg build lacks `codec`.
    """

    def __init__(
        self,
        width: int,
        height: int,
        fps: int,
        codec: str | None = PREFERRED_CODEC,
        bitrate: str | None = PREFERRED_BITRATE,
    ):
        self.width = width
        self.height = height
        self.fps = fps
        self.codec = codec or DEFAULT_CODEC
        self.bitrate = bitrate
        if self.codec not in available_encoders():
            raise CodecCapabilityDegradation(self.codec, "encoder not available in this ffmpeg build")
        self.content_type = CONTENT_TYPES.get(self.codec, "video/mp4")
        self._writer = None
        self._path = None
        self._on_chunk = None

    @classmethod
    def preferred(cls, width: int, height: int, fps: int) -> "FfmpegEncoder":
        return cls(width, height, fps, codec=PREFERRED_CODEC, bitrate=PREFERRED_BITRATE)

    @classmethod
    def default(cls, width: int, height: int, fps: int) -> "FfmpegEncoder":
        return cls(width, height, fps, codec=None, bitrate=None)

    def _output_params(self) -> list[str]:
        params = ["-movflags", "+faststart"]
        if self.codec == "libx264":
            params += ["-profile:v", "baseline"]
        return params

    def start(self, on_chunk) -> None:
        fd, self._path = tempfile.mkstemp(suffix=".mp4", prefix="clipshuffle-")
        os.close(fd)
        self._on_chunk = on_chunk
        try:
            self._writer = imageio_ffmpeg.write_frames(
                self._path,
                (self.width, self.height),
                fps=self.fps,
                codec=self.codec,
                bitrate=self.bitrate,
                quality=None if self.bitrate else 5,
                pix_fmt_out="yuv420p",
                macro_block_size=2,
                ffmpeg_log_level="error",
                output_params=self._output_params(),
            )
            self._writer.send(None)  # start the ffmpeg process
        except Exception:
            self._writer = None
            self._cleanup()
            raise

    def write(self, frame: np.ndarray) -> None:
        self._writer.send(np.ascontiguousarray(frame, dtype=np.uint8))

    def stop(self) -> str:
        """Finish encoding, stream the file back as chunks, return the content type."""
        try:
            self._writer.close()
            self._writer = None
            with open(self._path, "rb") as f:
                while True:
                    chunk = f.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    self._on_chunk(chunk)
        finally:
            self._cleanup()
        return self.content_type

    def abort(self) -> None:
        """Stop ffmpeg and discard whatever was encoded."""
        try:
            if self._writer is not None:
                self._writer.close()
        finally:
            self._writer = None
            self._cleanup()

    def _cleanup(self) -> None:
        if self._path and os.path.exists(self._path):
            os.unlink(self._path)
        self._path = None


class MemoryEncoder:
    """Keeps raw RGB frames; every frame is also emitted as one chunk."""

    content_type = "video/x-raw-rgb"

    def __init__(self, width: int, height: int, fps: int):
        self.width = width
        self.height = height
        self.fps = fps
        self.frames: list[np.ndarray] = []
        self._on_chunk = None
        self.stopped = False

    def start(self, on_chunk) -> None:
        self._on_chunk = on_chunk

    def write(self, frame: np.ndarray) -> None:
        frame = np.array(frame, dtype=np.uint8, copy=True)
        self.frames.append(frame)
        self._on_chunk(frame.tobytes())

    def stop(self) -> str:
        self.stopped = True
        return self.content_type

    def abort(self) -> None:
        self.frames.clear()
        self.stopped = True
