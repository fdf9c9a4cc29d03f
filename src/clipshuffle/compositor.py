"""Compositor — per-clip transforms and the per-frame render loop.

Every clip gets a fresh transform when it starts:

  ┌──────────────── source frame ────────────────┐
  │        ┌──────── base crop ────────┐         │
  │        │    ┌─ zoom window ─┐      │         │  ← optional, static
  │        │    │               │      │         │
  │        │    └───────────────┘      │         │
  │        └───────────────────────────┘         │
  └──────────────────────────────────────────────┘

  - Base crop: the largest centered rectangle with the output aspect ratio.
    The output is always filled, never letterboxed.
  - Zoom: with zoom_probability%, a window of base/zoom at a random
    position fully inside the base crop. Fixed for the whole clip.
  - Flip: with flip_probability%, the clip is mirrored horizontally.

During the first OVERLAP_SECONDS of a clip's own timeline the previous
clip's last frame is drawn full-frame underneath. In the default
"overlay" mode the current clip is drawn fully opaque on top of it, so
the cut itself stays hard. "blend" ramps the current clip's opacity from
0 to 1 across the window instead.
"""

import random
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageOps

from .events import EventKind, NullObserver
from .models import ClipPlan, CropRect, EffectParameters, TransformConfig


OVERLAP_SECONDS = 1.0

RESAMPLE = Image.Resampling.BILINEAR


# ── Transform selection ──────────────────────────────────────────


def base_crop(src_w: int, src_h: int, out_w: int, out_h: int) -> CropRect:
    """Center crop of the source matching the output aspect ratio.

    A source wider than the output keeps its full height and loses equal
    strips left and right; otherwise it keeps its full width and loses
    strips top and bottom.
    """
    video_aspect = src_w / src_h
    out_aspect = out_w / out_h
    if video_aspect > out_aspect:
        h = float(src_h)
        w = src_h * out_aspect
        return CropRect(x=(src_w - w) / 2, y=0.0, w=w, h=h)
    w = float(src_w)
    h = src_w / out_aspect
    return CropRect(x=0.0, y=(src_h - h) / 2, w=w, h=h)


def choose_transform(
    src_w: int,
    src_h: int,
    out_w: int,
    out_h: int,
    effects: EffectParameters,
    rng: random.Random,
) -> TransformConfig:
    """Roll the zoom and flip for one clip.

    Random draws happen in a fixed order (zoom roll, zoom factor, x, y,
    flip roll) so a seeded generator reproduces the same transforms.
    """
    base = base_crop(src_w, src_h, out_w, out_h)
    crop = base
    factor = 1.0

    zoom_applied = rng.random() < effects.zoom_probability / 100
    if zoom_applied:
        span = (effects.max_zoom - effects.min_zoom) / 100
        factor = rng.random() * span + effects.min_zoom / 100
        zoom_w = base.w / factor
        zoom_h = base.h / factor
        x = base.x + rng.random() * (base.w - zoom_w)
        y = base.y + rng.random() * (base.h - zoom_h)
        crop = CropRect(x=x, y=y, w=zoom_w, h=zoom_h)

    flip_applied = rng.random() < effects.flip_probability / 100

    return TransformConfig(
        base_crop=base,
        crop=crop,
        zoom_applied=zoom_applied,
        flip_applied=flip_applied,
        zoom_factor=factor,
    )


# ── Canvas ───────────────────────────────────────────────────────


class Canvas:
    """The single output frame buffer, RGB uint8 of shape (height, width, 3).

    Only the compositor writes to it, and each frame is drawn completely
    before the sink reads it.
    """

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.pixels = np.zeros((height, width, 3), dtype=np.uint8)

    def clear(self) -> None:
        self.pixels.fill(0)

    def draw_background(self, frame: np.ndarray) -> None:
        """Stretch a whole frame over the canvas."""
        img = Image.fromarray(frame).resize((self.width, self.height), RESAMPLE)
        self.pixels[:] = np.asarray(img)

    def draw_clip(self, frame: np.ndarray, transform: TransformConfig, alpha: float = 1.0) -> None:
        """Sample the transform's crop, scale it to fill, mirror if flipped.

        alpha < 1 blends over the current canvas contents.
        """
        src_h, src_w = frame.shape[:2]
        left, top, right, bottom = transform.crop.box()
        box = (max(0.0, left), max(0.0, top), min(float(src_w), right), min(float(src_h), bottom))
        img = Image.fromarray(frame).resize((self.width, self.height), RESAMPLE, box=box)
        if transform.flip_applied:
            img = ImageOps.mirror(img)
        layer = np.asarray(img)

        if alpha >= 1.0:
            self.pixels[:] = layer
        elif alpha > 0.0:
            mixed = self.pixels.astype(np.float32) * (1.0 - alpha) + layer.astype(np.float32) * alpha
            self.pixels[:] = np.clip(mixed + 0.5, 0, 255).astype(np.uint8)

    def snapshot(self) -> np.ndarray:
        return self.pixels.copy()


def render_frame(
    canvas: Canvas,
    frame: np.ndarray,
    transform: TransformConfig,
    background: np.ndarray | None = None,
    alpha: float = 1.0,
) -> np.ndarray:
    """Draw one complete output frame: clear, background, clip."""
    canvas.clear()
    if background is not None:
        canvas.draw_background(background)
    canvas.draw_clip(frame, transform, alpha=alpha)
    return canvas.pixels


# ── Per-clip render loop ─────────────────────────────────────────


@dataclass
class ClipResult:
    """What a finished clip leaves behind for the next one."""

    plan: ClipPlan
    transform: TransformConfig
    last_frame: np.ndarray | None
    frames: int
    elapsed: float
    hit_deadline: bool = False


class Compositor:
    """Render clips from decode slots onto the canvas and into the sink.

    Args:
        canvas: Output frame buffer.
        sink: Anything with capture(frame, t).
        clock: Started RunClock shared with the driver.
        target_duration: Global deadline, seconds since the run start.
        effects: Zoom and flip settings.
        rng: Random generator for transforms.
        observer: Progress events.
        dissolve: "overlay" or "blend".
    """

    def __init__(
        self,
        canvas: Canvas,
        sink,
        clock,
        target_duration: float,
        effects: EffectParameters,
        rng: random.Random,
        observer=None,
        dissolve: str = "overlay",
    ):
        self.canvas = canvas
        self.sink = sink
        self.clock = clock
        self.target_duration = target_duration
        self.effects = effects
        self.rng = rng
        self.observer = observer or NullObserver()
        self.dissolve = dissolve

    def _overlap_alpha(self, clip_t: float) -> float:
        if self.dissolve == "blend":
            return min(1.0, clip_t / OVERLAP_SECONDS)
        return 1.0

    async def render_clip(self, slot, previous: ClipResult | None = None) -> ClipResult:
        """Render the clip bound to `slot` until its length or the run deadline.

        Per frame: check the run deadline (stop without drawing), draw,
        hand the canvas to the sink, check the clip deadline, then wait for
        the next frame tick.

        Raises:
            PlaybackStartError: The slot's decoder failed to start.
            DecodeError: A frame could not be decoded mid-clip.
        """
        plan = slot.plan
        decoder = slot.decoder
        name = plan.source.name
        src_w, src_h = decoder.size

        transform = choose_transform(
            src_w, src_h, self.canvas.width, self.canvas.height, self.effects, self.rng,
        )
        if transform.zoom_applied:
            self.observer.on_event(EventKind.ZOOM_APPLIED, {
                "source": name,
                "factor": transform.zoom_factor,
                "x": transform.crop.x,
                "y": transform.crop.y,
            })
        if transform.flip_applied:
            self.observer.on_event(EventKind.FLIP_APPLIED, {"source": name})

        await decoder.play()
        self.observer.on_event(EventKind.CLIP_STARTED, {"slot": slot.index, "source": name})

        background = previous.last_frame if previous is not None else None
        clip_start = self.clock.now()
        frames = 0
        last_frame = None
        hit_deadline = False

        while True:
            if self.clock.elapsed() >= self.target_duration:
                hit_deadline = True
                break

            clip_t = self.clock.elapsed(clip_start)
            frame = decoder.frame_at(plan.start + clip_t)

            if background is not None and clip_t < OVERLAP_SECONDS:
                render_frame(
                    self.canvas, frame, transform,
                    background=background, alpha=self._overlap_alpha(clip_t),
                )
            else:
                render_frame(self.canvas, frame, transform)

            self.sink.capture(self.canvas.pixels, self.clock.elapsed())
            last_frame = frame
            frames += 1

            if self.clock.elapsed(clip_start) >= plan.length:
                break
            await self.clock.tick()

        elapsed = self.clock.elapsed(clip_start)
        self.observer.on_event(EventKind.CLIP_COMPLETED, {
            "slot": slot.index,
            "source": name,
            "frames": frames,
            "elapsed": elapsed,
            "deadline": hit_deadline,
        })
        return ClipResult(
            plan=plan,
            transform=transform,
            last_frame=last_frame if last_frame is not None else background,
            frames=frames,
            elapsed=elapsed,
            hit_deadline=hit_deadline,
        )
