from __future__ import annotations

import threading
import weakref
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class TypeLayoutCache(Generic[T]):
    """Per-type memo shared by concurrent measurements.

    Keys are held weakly so classes created at run time can still be
    collected. Reads take no lock; the first value stored for a type wins.
    """

    def __init__(self) -> None:
        self._entries: "weakref.WeakKeyDictionary[type, T]" = weakref.WeakKeyDictionary()
        self._lock = threading.Lock()

    def get(self, cls: type, compute: Callable[[type], T]) -> T:
        value = self._entries.get(cls)
        if value is None:
            value = compute(cls)
            with self._lock:
                value = self._entries.setdefault(cls, value)
        return value

    def __contains__(self, cls: type) -> bool:
        return cls in self._entries

    def __len__(self) -> int:
        return len(self._entries)
