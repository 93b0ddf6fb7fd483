"""Capacity-bounded, display-ordered log.

Display order follows the ``newest_on_top`` preference, but eviction
never does: on overflow the entry that *arrived* earliest (by timestamp,
then arrival sequence) is removed, whatever its position.  Replacing an
entry in place keeps its arrival key, so later patching never changes
which entry is evicted next.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class _Slot(Generic[T]):
    item: T
    arrived_at: datetime
    seq: int

    def sort_key(self) -> tuple[datetime, int]:
        return (self.arrived_at, self.seq)


class BoundedLog(Generic[T]):
    """Ordered collection holding at most ``capacity`` items."""

    def __init__(
        self,
        capacity: int,
        *,
        timestamp_of: Callable[[T], datetime],
        newest_on_top: bool = False,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._timestamp_of = timestamp_of
        self._newest_on_top = newest_on_top
        self._slots: list[_Slot[T]] = []
        self._next_seq = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def newest_on_top(self) -> bool:
        return self._newest_on_top

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[T]:
        return (slot.item for slot in self._slots)

    def __getitem__(self, index: int) -> T:
        return self._slots[index].item

    def items(self) -> list[T]:
        """Snapshot of the items in display order."""
        return [slot.item for slot in self._slots]

    def insert(self, item: T) -> T | None:
        """Insert *item* at the display head or tail; return the evicted item, if any."""
        slot = _Slot(item=item, arrived_at=self._timestamp_of(item), seq=self._next_seq)
        self._next_seq += 1
        if self._newest_on_top:
            self._slots.insert(0, slot)
        else:
            self._slots.append(slot)

        if len(self._slots) <= self._capacity:
            return None
        oldest = min(range(len(self._slots)), key=lambda idx: self._slots[idx].sort_key())
        return self._slots.pop(oldest).item

    def replace(self, index: int, item: T) -> T:
        """Swap the value at *index* without moving it; return the previous value."""
        slot = self._slots[index]
        previous = slot.item
        slot.item = item
        return previous

    def find_latest(self, predicate: Callable[[T], bool]) -> int | None:
        """Index of the most recently arrived item matching *predicate*."""
        best: int | None = None
        best_key: tuple[datetime, int] | None = None
        for idx, slot in enumerate(self._slots):
            if not predicate(slot.item):
                continue
            key = slot.sort_key()
            if best_key is None or key > best_key:
                best, best_key = idx, key
        return best

    def reorder(self, newest_on_top: bool) -> None:
        """Re-sort every item by arrival for the new display preference."""
        self._newest_on_top = newest_on_top
        self._slots.sort(key=_Slot.sort_key, reverse=newest_on_top)

    def clear(self) -> None:
        self._slots.clear()
