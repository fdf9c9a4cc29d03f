"""Data model for a clipshuffle run.

SourceFile, ClipPlan and TransformConfig are immutable records. A plan
entry is created by the scheduler, consumed once by a decode slot and then
dropped. A transform is derived fresh at the start of every clip.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path

from .errors import InputValidationError


DEFAULT_FILENAME = "final_video.mp4"

VALID_DISSOLVE_MODES = {"overlay", "blend"}

MIN_SLOTS = 2


@dataclass(frozen=True)
class SourceFile:
    """A decodable video asset, owned by the caller."""

    name: str
    path: str
    duration: float
    width: int
    height: int

    @property
    def aspect(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class ClipPlan:
    """One planned sub-clip: `length` seconds of `source` from `start`."""

    source: SourceFile
    start: float
    length: float

    @property
    def end(self) -> float:
        return self.start + self.length


@dataclass(frozen=True)
class CropRect:
    """A rectangle in source pixel space. Coordinates may be fractional."""

    x: float
    y: float
    w: float
    h: float

    def box(self) -> tuple[float, float, float, float]:
        """Return (left, top, right, bottom), the form Pillow expects."""
        return (self.x, self.y, self.x + self.w, self.y + self.h)

    def contains(self, other: "CropRect", eps: float = 1e-6) -> bool:
        return (
            other.x >= self.x - eps
            and other.y >= self.y - eps
            and other.x + other.w <= self.x + self.w + eps
            and other.y + other.h <= self.y + self.h + eps
        )


@dataclass(frozen=True)
class TransformConfig:
    """Per-clip visual transform, fixed for the clip's whole lifetime.

    `crop` is the rectangle actually sampled: the zoom window when a zoom
    was rolled, otherwise the base center crop.
    """

    base_crop: CropRect
    crop: CropRect
    zoom_applied: bool = False
    flip_applied: bool = False
    zoom_factor: float = 1.0


@dataclass(frozen=True)
class EffectParameters:
    """Run-wide effect settings, all percentages."""

    zoom_probability: float = 0.0
    min_zoom: float = 100.0
    max_zoom: float = 100.0
    flip_probability: float = 0.0


@dataclass(frozen=True)
class RunSettings:
    """Every parameter of one run. Call validate() before starting."""

    target_duration: float
    min_clip_pct: float
    max_clip_pct: float
    width: int
    height: int
    effects: EffectParameters = field(default_factory=EffectParameters)
    fps: int = 30
    slots: int = 4
    seed: int | None = None
    dissolve: str = "overlay"
    realtime: bool = False

    @property
    def output_aspect(self) -> float:
        return self.width / self.height

    def validate(self) -> None:
        """Raise InputValidationError on the first invalid parameter."""
        numbers = {
            "target_duration": self.target_duration,
            "min_clip_pct": self.min_clip_pct,
            "max_clip_pct": self.max_clip_pct,
            "zoom_probability": self.effects.zoom_probability,
            "min_zoom": self.effects.min_zoom,
            "max_zoom": self.effects.max_zoom,
            "flip_probability": self.effects.flip_probability,
        }
        for name, value in numbers.items():
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise InputValidationError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise InputValidationError(f"{name} must be finite, got {value!r}")

        if self.target_duration <= 0:
            raise InputValidationError(
                f"target_duration must be > 0, got {self.target_duration}"
            )
        for name in ("min_clip_pct", "max_clip_pct", "zoom_probability", "flip_probability"):
            if not 0 <= numbers[name] <= 100:
                raise InputValidationError(f"{name} must be within 0-100, got {numbers[name]}")
        if self.max_clip_pct <= 0:
            raise InputValidationError("max_clip_pct must be > 0")
        if self.min_clip_pct > self.max_clip_pct:
            raise InputValidationError(
                f"min_clip_pct ({self.min_clip_pct}) must be <= max_clip_pct ({self.max_clip_pct})"
            )
        if self.effects.min_zoom < 100:
            raise InputValidationError(
                f"min_zoom must be >= 100, got {self.effects.min_zoom}"
            )
        if self.effects.min_zoom > self.effects.max_zoom:
            raise InputValidationError(
                f"min_zoom ({self.effects.min_zoom}) must be <= max_zoom ({self.effects.max_zoom})"
            )

        for name in ("width", "height", "fps"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise InputValidationError(f"{name} must be a positive integer, got {value!r}")
        if not isinstance(self.slots, int) or self.slots < MIN_SLOTS:
            raise InputValidationError(f"slots must be an integer >= {MIN_SLOTS}, got {self.slots!r}")
        if self.dissolve not in VALID_DISSOLVE_MODES:
            raise InputValidationError(
                f"invalid dissolve '{self.dissolve}'. Valid: {sorted(VALID_DISSOLVE_MODES)}"
            )


@dataclass(frozen=True)
class Artifact:
    """A finished media blob: the encoder's chunks in order plus a content type."""

    data: bytes
    content_type: str

    def __len__(self) -> int:
        return len(self.data)

    def save(self, path: str | Path = DEFAULT_FILENAME) -> Path:
        """Write the artifact to disk, creating parent directories."""
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(self.data)
        return out
