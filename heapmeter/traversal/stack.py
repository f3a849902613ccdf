"""Pending-object stack of a deep measurement and the Measurable protocol."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable

from heapmeter.listeners.base import MeterListener
from heapmeter.traversal.visited import VisitedSet


class MeasurementStack:
    """Objects still to be measured.

    Every object is pushed at most once: the visited check happens on push,
    so an object reachable along many paths is measured a single time.
    """

    def __init__(self, class_filter: Callable[[type], bool], listener: MeterListener) -> None:
        self.class_filter = class_filter
        self.listener = listener
        self.visited = VisitedSet()
        self._stack: list[Any] = []

    def push_root(self, root: Any) -> None:
        self.visited.add(root)
        self._stack.append(root)
        self.listener.started(root)

    def push_object(self, parent: Any, name: str, child: Any) -> None:
        """Schedule ``child``, reached from ``parent`` through ``name``."""
        if child is None or self.class_filter(type(child)):
            return
        if self.visited.add(child):
            self._stack.append(child)
            self.listener.field_added(parent, name, child)

    def push_elements(self, array: Any, elements: Iterable[Any]) -> None:
        for index, element in enumerate(elements):
            if element is None or self.class_filter(type(element)):
                continue
            if self.visited.add(element):
                self._stack.append(element)
                self.listener.array_element_added(array, index, element)

    def pop(self) -> Any:
        return self._stack.pop()

    def __bool__(self) -> bool:
        return bool(self._stack)

    def __len__(self) -> int:
        return len(self._stack)


class Measurable(ABC):
    """Object that declares its own children.

    The traverser hands the stack to ``add_children_to`` instead of
    reflecting over the object's fields; implementations call
    ``stack.push_object(self, name, child)`` for every child to measure.
    """

    __slots__ = ()

    @abstractmethod
    def add_children_to(self, stack: MeasurementStack) -> None:
        ...
