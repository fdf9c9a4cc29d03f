"""Preload pipeline — a fixed ring of decode slots.

Slots are indexed 0..N-1 and hold one decoder each. A slot moves
EMPTY -> LOADING -> READY when a clip is preloaded into it, and back to
EMPTY when the compositor has finished that clip. Preloading into a slot
that is not EMPTY is refused: a slot is only rebound after its previous
clip has been fully rendered, which caps decoder use at N.

Clip k always lives in slot k % N. The driver asks for clip k+1 while
clip k renders, so there is at most one clip of read-ahead once the
initial fill has been consumed.
"""

from collections import deque
from enum import Enum

from .events import EventKind, NullObserver
from .models import ClipPlan


DEFAULT_SLOTS = 4


class SlotState(Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"


class DecodeSlot:
    """One decoder plus the clip currently bound to it."""

    def __init__(self, index: int, decoder):
        self.index = index
        self.decoder = decoder
        self.state = SlotState.EMPTY
        self.plan: ClipPlan | None = None
        self.bind_count = 0

    def __repr__(self):
        source = self.plan.source.name if self.plan else None
        return f"DecodeSlot({self.index}, {self.state.value}, {source})"

    def release(self) -> None:
        """Mark the bound clip as finished so the slot can be rebound."""
        if self.state is not SlotState.READY:
            raise RuntimeError(f"Slot {self.index}: release from state {self.state.value}")
        self.plan = None
        self.state = SlotState.EMPTY


async def preload(slot: DecodeSlot, plan: ClipPlan, observer=None) -> DecodeSlot:
    """Bind `plan` to `slot`: open the source, seek to the clip start.

    Returns once both decoder acknowledgements (metadata, seek) have
    arrived. Decoder errors propagate unchanged; the slot is left EMPTY.

    Raises:
        RuntimeError: The slot still holds an unfinished clip.
    """
    observer = observer or NullObserver()
    if slot.state is not SlotState.EMPTY:
        raise RuntimeError(
            f"Slot {slot.index} is {slot.state.value}; "
            f"it can't be rebound before its clip is released"
        )

    slot.state = SlotState.LOADING
    slot.plan = plan
    observer.on_event(EventKind.PRELOAD_START, {
        "slot": slot.index,
        "source": plan.source.name,
        "start": plan.start,
        "length": plan.length,
    })
    try:
        await slot.decoder.open(plan.source)
        await slot.decoder.seek(plan.start)
    except BaseException:
        slot.plan = None
        slot.state = SlotState.EMPTY
        raise

    slot.state = SlotState.READY
    slot.bind_count += 1
    observer.on_event(EventKind.PRELOAD_COMPLETE, {
        "slot": slot.index,
        "source": plan.source.name,
    })
    return slot


class SlotRing:
    """Arena of N decode slots.

    Args:
        size: Number of slots (>= 2).
        decoder_factory: Zero-argument callable returning a new decoder.
        observer: Receives PRELOAD_START / PRELOAD_COMPLETE events.
    """

    def __init__(self, size: int, decoder_factory, observer=None):
        if size < 2:
            raise ValueError(f"Slot ring needs at least 2 slots, got {size}")
        self.slots = [DecodeSlot(i, decoder_factory()) for i in range(size)]
        self.observer = observer or NullObserver()

    def __len__(self):
        return len(self.slots)

    def __getitem__(self, index: int) -> DecodeSlot:
        return self.slots[index]

    def next_index(self, index: int) -> int:
        return (index + 1) % len(self.slots)

    async def fill(self, queue: deque[ClipPlan]) -> int:
        """Preload up to N clips from the front of the queue, in slot order.

        Returns the number of slots filled.
        """
        filled = 0
        for slot in self.slots:
            if not queue:
                break
            await preload(slot, queue.popleft(), self.observer)
            filled += 1
        return filled

    async def ensure_next(self, index: int, queue: deque[ClipPlan]) -> DecodeSlot | None:
        """Make sure the clip after the one in `index` is loaded.

        If the next slot already holds a clip (from the initial fill) there
        is nothing to do. Otherwise the next queued clip is preloaded into
        it. Returns the slot that was loaded, or None.
        """
        slot = self.slots[self.next_index(index)]
        if slot.plan is not None or not queue:
            return None
        return await preload(slot, queue.popleft(), self.observer)

    def close(self) -> None:
        for slot in self.slots:
            slot.decoder.close()
