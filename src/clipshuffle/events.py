"""Progress events emitted during a run.

The engine never prints. It reports to an observer injected at
construction, anything with an `on_event(kind, payload)` method. Events
are purely observational: dropping them changes nothing about the output.
"""

from enum import Enum


class EventKind(Enum):
    CLIP_SELECTED = "clip_selected"
    PLAN_COMPLETE = "plan_complete"
    PRELOAD_START = "preload_start"
    PRELOAD_COMPLETE = "preload_complete"
    RECORDING_STARTED = "recording_started"
    CLIP_STARTED = "clip_started"
    ZOOM_APPLIED = "zoom_applied"
    FLIP_APPLIED = "flip_applied"
    CLIP_COMPLETED = "clip_completed"
    DRAINING = "draining"
    CHUNK_RECEIVED = "chunk_received"
    CODEC_FALLBACK = "codec_fallback"
    RECORDING_STOPPED = "recording_stopped"
    RUN_FAILED = "run_failed"


class NullObserver:
    """Discards every event."""

    def on_event(self, kind: EventKind, payload: dict) -> None:
        pass


class EventLog:
    """Append-only record of (kind, payload) pairs, in emission order."""

    def __init__(self):
        self.records: list[tuple[EventKind, dict]] = []

    def on_event(self, kind: EventKind, payload: dict) -> None:
        self.records.append((kind, dict(payload)))

    def kinds(self) -> list[EventKind]:
        return [kind for kind, _ in self.records]

    def of(self, kind: EventKind) -> list[dict]:
        """Payloads of every event of the given kind."""
        return [payload for k, payload in self.records if k == kind]


class FanOut:
    """Forward each event to several observers, in order."""

    def __init__(self, *observers):
        self.observers = observers

    def on_event(self, kind: EventKind, payload: dict) -> None:
        for observer in self.observers:
            observer.on_event(kind, payload)


# ── Console formatting ───────────────────────────────────────────
# One line per event. Unknown kinds fall back to the raw payload.

def _fmt_clip_selected(p):
    return (
        f"  PLAN   {p['source']}  start={p['start']:.2f}s  length={p['length']:.2f}s  "
        f"(total {p['total']:.2f}s)"
    )


def _fmt_preload_start(p):
    return (
        f"  LOAD   slot {p['slot']}  {p['source']}  "
        f"start={p['start']:.2f}s  length={p['length']:.2f}s"
    )


def _fmt_zoom(p):
    return (
        f"  ZOOM   {p['source']}  {p['factor'] * 100:.0f}%  "
        f"at x:{p['x']:.0f}, y:{p['y']:.0f}"
    )


_FORMATTERS = {
    EventKind.CLIP_SELECTED: _fmt_clip_selected,
    EventKind.PLAN_COMPLETE: lambda p: f"Planned {p['clips']} clips, {p['total']:.2f}s total.",
    EventKind.PRELOAD_START: _fmt_preload_start,
    EventKind.PRELOAD_COMPLETE: lambda p: f"  READY  slot {p['slot']}  {p['source']}",
    EventKind.RECORDING_STARTED: lambda p: (
        f"Recording started: {p['width']}x{p['height']}, {p['fps']}fps, "
        f"{p['content_type']}"
    ),
    EventKind.CLIP_STARTED: lambda p: f"  START  slot {p['slot']}  {p['source']}",
    EventKind.ZOOM_APPLIED: _fmt_zoom,
    EventKind.FLIP_APPLIED: lambda p: f"  FLIP   {p['source']}",
    EventKind.CLIP_COMPLETED: lambda p: (
        f"  DONE   {p['source']} — {p['frames']} frames, {p['elapsed']:.2f}s"
    ),
    EventKind.DRAINING: lambda p: f"Waiting for remaining time: {p['remaining']:.2f}s",
    EventKind.CHUNK_RECEIVED: lambda p: f"  CHUNK  {p['size']} bytes",
    EventKind.CODEC_FALLBACK: lambda p: (
        f"{p['codec']} not supported ({p['reason']}), using default settings."
    ),
    EventKind.RECORDING_STOPPED: lambda p: (
        f"Recording stopped: {p['frames']} frames, {p['bytes']} bytes."
    ),
    EventKind.RUN_FAILED: lambda p: f"Run failed: {p['error']}",
}


def format_event(kind: EventKind, payload: dict) -> str:
    formatter = _FORMATTERS.get(kind)
    if formatter is None:
        return f"{kind.value}: {payload}"
    return formatter(payload)


class ConsoleObserver:
    """Print one human-readable progress line per event.

    Chunk events are noisy for long renders, so they are only shown when
    `verbose` is set.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def on_event(self, kind: EventKind, payload: dict) -> None:
        if kind is EventKind.CHUNK_RECEIVED and not self.verbose:
            return
        print(format_event(kind, payload), flush=True)
