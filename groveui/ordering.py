"""OrderingStore: user-defined display order over the task collection."""

from __future__ import annotations

import logging
from typing import Literal

log = logging.getLogger(__name__)

Direction = Literal["up", "down"]


class OrderingStore:
    """Ordered list of task keys, reconciled against each fetch.

    The order is seeded once from the first non-empty fetch. Later fetches
    keep surviving keys in their current relative order, drop keys that
    disappeared, and append new keys in fetch order.

    A drag session (start_drag .. drop) holds the order still: fetches that
    arrive mid-drag are stashed and reconciled after the drop.
    """

    def __init__(self) -> None:
        self.keys: list[str] = []
        self.seeded = False
        self.dragged_index: int | None = None
        self.drag_over_index: int | None = None
        self._deferred: list[str] | None = None

    @property
    def dragging(self) -> bool:
        return self.dragged_index is not None

    def reconcile(self, fetched: list[str]) -> list[str]:
        """Merge a fresh fetch into the order. Returns the current order."""
        if self.dragging:
            self._deferred = list(fetched)
            return self.keys

        if not self.seeded:
            if fetched:
                self.keys = list(dict.fromkeys(fetched))
                self.seeded = True
            return self.keys

        present = set(fetched)
        kept = [k for k in self.keys if k in present]
        known = set(kept)
        appended = [k for k in dict.fromkeys(fetched) if k not in known]
        self.keys = kept + appended
        return self.keys

    def replace(self, keys: list[str]) -> None:
        """Replace the whole order (drag-and-drop commit)."""
        self.keys = list(keys)
        self.seeded = True

    def move(self, index: int, direction: Direction) -> bool:
        """Swap the item at index with its neighbour. False if out of range."""
        other = index - 1 if direction == "up" else index + 1
        if not (0 <= index < len(self.keys) and 0 <= other < len(self.keys)):
            return False
        self.keys[index], self.keys[other] = self.keys[other], self.keys[index]
        return True

    # -- drag session -----------------------------------------------------

    def start_drag(self, index: int) -> None:
        self.dragged_index = index
        self.drag_over_index = None

    def drag_over(self, index: int) -> None:
        if self.dragging:
            self.drag_over_index = index

    def drag_leave(self) -> None:
        self.drag_over_index = None

    def drop(self, index: int | None = None) -> bool:
        """Finish the drag, moving dragged to target. Returns True if moved.

        Target is index if given, else the last drag_over index.
        """
        source = self.dragged_index
        target = index if index is not None else self.drag_over_index
        self.dragged_index = None
        self.drag_over_index = None

        moved = False
        if (
            source is not None
            and target is not None
            and source != target
            and 0 <= source < len(self.keys)
            and 0 <= target < len(self.keys)
        ):
            keys = list(self.keys)
            key = keys.pop(source)
            keys.insert(target, key)
            self.replace(keys)
            moved = True

        deferred, self._deferred = self._deferred, None
        if deferred is not None:
            log.debug("Applying fetch deferred during drag")
            self.reconcile(deferred)
        return moved
