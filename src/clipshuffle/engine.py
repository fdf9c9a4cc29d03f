"""Playback driver — one run from plan to finished artifact.

States: PLANNING -> PRELOADING -> RUNNING -> DRAINING -> FINALIZING -> DONE.
A decode or playback error at any point moves the run to FAILED, aborts
the encoder and propagates; there is no partial output and no retry.

RUNNING, per clip in slot i:
  1. Start rendering slot i as a task.
  2. Preload the next queued clip into slot (i+1) % N and await it.
  3. Await the render task, release slot i, keep its last frame as the
     background for the next clip's overlap window.
  4. Move to slot (i+1) % N. Stop when that slot has no clip or the run
     deadline has passed.

Step 2 finishing before step 3 means the next clip is always ready by the
time the current one ends, as long as a preload takes less time than a
clip plays.
"""

import asyncio
import random
from enum import Enum
from pathlib import Path

from .clock import FrameClock, WallClock
from .common import load_sources
from .compositor import Canvas, Compositor
from .decoder import MoviepyDecoder
from .encoder import FfmpegEncoder
from .events import EventKind, NullObserver
from .models import RunSettings, SourceFile
from .pipeline import SlotRing
from .planner import build_sequence
from .sink import SinkAdapter


class RunState(Enum):
    PLANNING = "planning"
    PRELOADING = "preloading"
    RUNNING = "running"
    DRAINING = "draining"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


class Engine:
    """Drive one run.

    Args:
        settings: Validated run settings.
        sink: SinkAdapter (or anything with start/capture/stop/abort).
        clock: RunClock pacing the frame loop.
        decoder_factory: Zero-argument callable returning a FrameDecoder.
        observer: Progress events.
        rng: Random generator. Defaults to random.Random(settings.seed).
    """

    def __init__(
        self,
        settings: RunSettings,
        sink,
        clock,
        decoder_factory=MoviepyDecoder,
        observer=None,
        rng: random.Random | None = None,
    ):
        settings.validate()
        self.settings = settings
        self.sink = sink
        self.clock = clock
        self.decoder_factory = decoder_factory
        self.observer = observer or NullObserver()
        self.rng = rng if rng is not None else random.Random(settings.seed)
        self.state = RunState.PLANNING
        self.plan = None
        self.results = []
        self.slot_history: list[int] = []

    async def run(self, sources: list[SourceFile]):
        """Plan, preload, render, drain and finalize. Returns the Artifact."""
        s = self.settings
        ring = SlotRing(s.slots, self.decoder_factory, self.observer)
        try:
            return await self._run(sources, ring)
        except BaseException as e:
            self.state = RunState.FAILED
            self.sink.abort()
            self.observer.on_event(EventKind.RUN_FAILED, {"error": str(e) or type(e).__name__})
            raise
        finally:
            ring.close()

    async def _run(self, sources, ring: SlotRing):
        s = self.settings

        self.state = RunState.PLANNING
        queue = build_sequence(
            sources, s.target_duration, s.min_clip_pct, s.max_clip_pct,
            self.rng, self.observer,
        )
        self.plan = list(queue)

        self.state = RunState.PRELOADING
        await ring.fill(queue)

        compositor = Compositor(
            Canvas(s.width, s.height),
            self.sink,
            self.clock,
            s.target_duration,
            s.effects,
            self.rng,
            self.observer,
            dissolve=s.dissolve,
        )

        self.sink.start()
        self.clock.start()
        self.state = RunState.RUNNING

        index = 0
        previous = None
        while self.clock.elapsed() < s.target_duration:
            slot = ring[index]
            if slot.plan is None:
                break
            self.slot_history.append(index)

            render = asyncio.create_task(compositor.render_clip(slot, previous))
            try:
                await ring.ensure_next(index, queue)
            except BaseException:
                render.cancel()
                await asyncio.gather(render, return_exceptions=True)
                raise
            previous = await render

            self.results.append(previous)
            slot.release()
            index = ring.next_index(index)

        remaining = s.target_duration - self.clock.elapsed()
        if remaining > 0:
            self.state = RunState.DRAINING
            self.observer.on_event(EventKind.DRAINING, {"remaining": remaining})
            await self.clock.sleep(remaining)

        self.state = RunState.FINALIZING
        artifact = self.sink.stop(self.clock.elapsed())
        self.state = RunState.DONE
        return artifact


def build_sink(settings: RunSettings, observer=None) -> SinkAdapter:
    """ffmpeg-backed sink: preferred H.264 configuration, default fallback."""
    w, h, fps = settings.width, settings.height, settings.fps
    return SinkAdapter(
        preferred=lambda: FfmpegEncoder.preferred(w, h, fps),
        fallback=lambda: FfmpegEncoder.default(w, h, fps),
        fps=fps,
        observer=observer,
    )


def build_clock(settings: RunSettings):
    """Real-time clock if requested, virtual frame clock otherwise."""
    if settings.realtime:
        return WallClock(settings.fps)
    return FrameClock(settings.fps)


def render(
    sources: list[str | Path | SourceFile],
    settings: RunSettings,
    output: str | Path | None = None,
    observer=None,
):
    """Run the engine synchronously with the ffmpeg sink.

    Args:
        sources: Paths (probed here) or already-probed SourceFiles.
        settings: Run settings; validated before anything is opened.
        output: If set, the artifact is also written to this path.
        observer: Progress events.

    Returns:
        The finished Artifact.
    """
    settings.validate()
    probed = load_sources(sources)

    engine = Engine(
        settings,
        build_sink(settings, observer),
        build_clock(settings),
        decoder_factory=MoviepyDecoder,
        observer=observer,
    )
    artifact = asyncio.run(engine.run(probed))
    if output is not None:
        artifact.save(output)
    return artifact
