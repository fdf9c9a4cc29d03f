"""Clip planning — random clip lengths and the ordered clip sequence.

plan_clip() draws one (length, start) pair for a source. build_sequence()
keeps drawing from randomly chosen sources until the planned lengths add
up to at least the target duration.

Source choice never repeats the previous pick when more than one source
is available. With a single source every clip comes from index 0.

Clip lengths are percentages of each source's own duration, so a 10s
source with bounds 50-80 yields clips between 5s and 8s.
"""

import random
from collections import deque

from .errors import InputValidationError
from .events import EventKind, NullObserver
from .models import ClipPlan, SourceFile


def plan_clip(
    source_duration: float,
    min_pct: float,
    max_pct: float,
    rng: random.Random,
) -> tuple[float, float]:
    """Return a random (length, start) pair for a source of the given duration.

    Length is uniform between min_pct% and max_pct% of the duration, then
    clamped to the duration itself so the start range [0, duration - length]
    is never negative. Start is uniform within that range.
    """
    min_length = (min_pct / 100) * source_duration
    max_length = (max_pct / 100) * source_duration
    length = rng.uniform(min_length, max_length)
    length = min(length, source_duration)
    start = rng.uniform(0, source_duration - length)
    # uniform() may round a hair past its upper bound.
    start = min(max(start, 0.0), source_duration - length)
    return length, start


def _pick_index(count: int, last_index: int, rng: random.Random) -> int:
    """Pick a source index uniformly, excluding the previous pick."""
    if count == 1:
        return 0
    eligible = [i for i in range(count) if i != last_index]
    return eligible[rng.randrange(len(eligible))]


def build_sequence(
    sources: list[SourceFile],
    target_duration: float,
    min_pct: float,
    max_pct: float,
    rng: random.Random,
    observer=None,
) -> deque[ClipPlan]:
    """Build the ordered clip plan for a run.

    Args:
        sources: Candidate sources. Must be non-empty, every duration > 0.
        target_duration: Seconds the plan must cover.
        min_pct: Minimum clip length, percent of the source duration.
        max_pct: Maximum clip length, percent of the source duration.
        rng: Random generator. Seed it for a reproducible plan.
        observer: Receives one CLIP_SELECTED per entry and PLAN_COMPLETE.

    Returns:
        A deque of ClipPlan, consumed front to back by the preload slots.
        Holds at least one clip; the summed length is >= target_duration.

    Raises:
        InputValidationError: Empty source list, a zero-length source or
            max_pct <= 0 (no clip could ever make progress).
    """
    observer = observer or NullObserver()

    if not sources:
        raise InputValidationError("No sources to plan from")
    for src in sources:
        if not src.duration > 0:
            raise InputValidationError(
                f"Source '{src.name}' has no usable duration ({src.duration!r})"
            )
    if max_pct <= 0:
        raise InputValidationError("max clip length must be > 0 percent")

    plan = deque()
    total = 0.0
    last_index = -1

    # At least one clip, even for a tiny target.
    while not plan or total < target_duration:
        index = _pick_index(len(sources), last_index, rng)
        src = sources[index]
        length, start = plan_clip(src.duration, min_pct, max_pct, rng)
        if length <= 0:
            # min_pct may be 0, in which case a zero-length draw is possible.
            continue
        last_index = index
        plan.append(ClipPlan(source=src, start=start, length=length))
        total += length
        observer.on_event(EventKind.CLIP_SELECTED, {
            "index": len(plan) - 1,
            "source": src.name,
            "start": start,
            "length": length,
            "total": total,
        })

    observer.on_event(EventKind.PLAN_COMPLETE, {"clips": len(plan), "total": total})
    return plan
