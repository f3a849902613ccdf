from __future__ import annotations

from typing import Any, Optional

INITIAL_CAPACITY = 16


class VisitedSet:
    """Identity set of the objects met during one traversal.

    Open addressing with linear probing. Membership is decided by ``is``,
    never by ``__eq__``/``__hash__``, so objects that compare equal are
    still told apart and no user code runs. The table doubles whenever it
    would become more than a third full.
    """

    __slots__ = ("_table", "_size")

    def __init__(self, capacity: int = INITIAL_CAPACITY) -> None:
        if capacity <= 0 or capacity & (capacity - 1):
            raise ValueError(f"capacity must be a power of two, got {capacity}")
        self._table: list[Optional[Any]] = [None] * capacity
        self._size = 0

    @staticmethod
    def _index(obj: Any, mask: int) -> int:
        address = id(obj)
        # Allocations are 16-byte aligned: the low bits never vary.
        return ((address >> 4) ^ (address >> 16)) & mask

    def add(self, obj: Any) -> bool:
        """Insert ``obj``; False when it was already present."""
        if (self._size + 1) * 3 > len(self._table):
            self._resize()

        table = self._table
        mask = len(table) - 1
        i = self._index(obj, mask)
        while True:
            item = table[i]
            if item is None:
                table[i] = obj
                self._size += 1
                return True
            if item is obj:
                return False
            i = (i + 1) & mask

    def __contains__(self, obj: Any) -> bool:
        table = self._table
        mask = len(table) - 1
        i = self._index(obj, mask)
        while True:
            item = table[i]
            if item is None:
                return False
            if item is obj:
                return True
            i = (i + 1) & mask

    def __len__(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        return len(self._table)

    def _resize(self) -> None:
        old = self._table
        table: list[Optional[Any]] = [None] * (len(old) << 1)
        mask = len(table) - 1
        for item in old:
            if item is None:
                continue
            i = self._index(item, mask)
            while table[i] is not None:
                i = (i + 1) & mask
            table[i] = item
        self._table = table
