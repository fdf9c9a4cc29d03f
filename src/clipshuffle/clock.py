"""Run clocks — one start timestamp, every deadline measured from it.

Deadlines (the run's target duration, each clip's length) are always
"now minus start", never a sum of frame intervals, so rounding in the
frame loop cannot drift the output length.

WallClock paces rendering in real time. FrameClock is a virtual clock for
offline renders: each tick advances exactly one frame interval, so output
is deterministic and as fast as decoding allows.
"""

import asyncio
import time


class RunClock:
    """Base clock. Subclasses provide now() and the two waits."""

    def __init__(self, fps: int):
        self.fps = fps
        self.frame_interval = 1.0 / fps
        self._start: float | None = None

    def now(self) -> float:
        raise NotImplementedError

    def start(self) -> float:
        """Capture the run's single start timestamp."""
        self._start = self.now()
        return self._start

    @property
    def started(self) -> bool:
        return self._start is not None

    def elapsed(self, since: float | None = None) -> float:
        """Seconds since `since` (default: the run start)."""
        if since is None:
            if self._start is None:
                raise RuntimeError("Clock not started")
            since = self._start
        return self.now() - since

    async def tick(self) -> None:
        """Wait for the next frame boundary."""
        raise NotImplementedError

    async def sleep(self, seconds: float) -> None:
        """Idle wait."""
        raise NotImplementedError


class WallClock(RunClock):
    """Real-time clock on time.monotonic()."""

    def __init__(self, fps: int):
        super().__init__(fps)
        self._next_frame: float | None = None

    def now(self) -> float:
        return time.monotonic()

    async def tick(self) -> None:
        now = self.now()
        if self._next_frame is None or self._next_frame < now - self.frame_interval:
            # First tick, or rendering fell behind: don't try to catch up.
            self._next_frame = now
        self._next_frame += self.frame_interval
        await asyncio.sleep(max(0.0, self._next_frame - now))

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class FrameClock(RunClock):
    """Virtual clock advanced only by tick() and sleep().

    Both still yield to the event loop so other tasks (preloads) make
    progress between frames.
    """

    def __init__(self, fps: int, start_at: float = 0.0):
        super().__init__(fps)
        self._frame = 0
        self._extra = start_at

    def now(self) -> float:
        # Frame count times interval, not a running float sum.
        return self._frame * self.frame_interval + self._extra

    async def tick(self) -> None:
        self._frame += 1
        await asyncio.sleep(0)

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            self._extra += seconds
        await asyncio.sleep(0)
