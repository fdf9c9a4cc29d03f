"""Sink adapter — fixed-rate frame capture in front of an encoder.

The compositor only calls capture(frame, t) whenever it has drawn a frame;
it knows nothing about encoding. The adapter samples the canvas at the
output frame rate: output frame k (at k / fps seconds) is the most recent
canvas drawn before that time, repeated if no newer one exists. stop(t)
pads up to t and returns the artifact, the encoder's chunks joined in
order.

If the preferred encoder configuration is rejected the adapter falls back
to the default one and reports CODEC_FALLBACK; the run continues.
"""

import numpy as np

from .errors import CodecCapabilityDegradation
from .events import EventKind, NullObserver
from .models import Artifact


class SinkAdapter:
    """Args:
        preferred: Zero-argument callable building the preferred encoder.
        fallback: Zero-argument callable building the default encoder.
        fps: Output frame rate.
        observer: Progress events.
    """

    def __init__(self, preferred, fallback, fps: int, observer=None):
        self.observer = observer or NullObserver()
        self.fps = fps
        self.degraded = False
        try:
            self.encoder = preferred()
        except CodecCapabilityDegradation as e:
            self.observer.on_event(EventKind.CODEC_FALLBACK, {"codec": e.codec, "reason": str(e)})
            self.encoder = fallback()
            self.degraded = True

        self.chunks: list[bytes] = []
        self.frames_written = 0
        self._held = None
        self._started = False

    @property
    def content_type(self) -> str:
        return self.encoder.content_type

    def start(self) -> None:
        self.encoder.start(self._on_chunk)
        self._started = True
        self.observer.on_event(EventKind.RECORDING_STARTED, {
            "width": self.encoder.width,
            "height": self.encoder.height,
            "fps": self.fps,
            "content_type": self.content_type,
        })

    def _on_chunk(self, data: bytes) -> None:
        if not data:
            return
        self.chunks.append(data)
        self.observer.on_event(EventKind.CHUNK_RECEIVED, {"size": len(data)})

    def _flush_until(self, t: float) -> None:
        """Write the held frame for every output slot that starts before t."""
        if self._held is None:
            self._held = np.zeros((self.encoder.height, self.encoder.width, 3), dtype=np.uint8)
        # Index math rather than summed intervals; the epsilon absorbs
        # float noise when t sits exactly on a frame boundary.
        while self.frames_written < t * self.fps - 1e-6:
            self.encoder.write(self._held)
            self.frames_written += 1

    def capture(self, frame: np.ndarray, t: float) -> None:
        """Record that the canvas shows `frame` from run time `t` onward."""
        if not self._started:
            raise RuntimeError("Sink not started")
        frame = np.array(frame, dtype=np.uint8, copy=True)
        if self._held is None:
            # The first drawn canvas covers the run from t=0, even when it
            # arrives late in real time.
            self._held = frame
        self._flush_until(t)
        self._held = frame

    def stop(self, t: float) -> Artifact:
        """Pad output to run time `t`, finish encoding, return the artifact."""
        if not self._started:
            raise RuntimeError("Sink not started")
        self._flush_until(t)
        content_type = self.encoder.stop()
        self._started = False
        artifact = Artifact(data=b"".join(self.chunks), content_type=content_type)
        self.observer.on_event(EventKind.RECORDING_STOPPED, {
            "frames": self.frames_written,
            "bytes": len(artifact.data),
        })
        return artifact

    def abort(self) -> None:
        """Drop everything after a fatal error. No artifact is produced.

        The encoder is always told to abort, so a start() that failed
        halfway still releases what it had set up.
        """
        self.encoder.abort()
        self._started = False
        self.chunks.clear()
