"""
Listener printing the measured object tree.

Output for a small graph::

    root [app.Node] 96 bytes (32 bytes)
      |
      +--next [app.Node] 64 bytes (32 bytes)
        |
        +--payload [bytes] 32 bytes (32 bytes)
"""
from __future__ import annotations

import sys
from typing import Any, Optional, TextIO

from heapmeter.listeners.base import MeterListener

ONE_KB = 1024
ONE_MB = 1024 * ONE_KB
ROOT_NAME = "root"


def class_name(cls: type) -> str:
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def format_size(size: int) -> str:
    if size >= ONE_MB:
        return f"{size / ONE_MB:.2f} MB"
    if size >= ONE_KB:
        return f"{size / ONE_KB:.2f} KB"
    return f"{size} bytes"


class ObjectInfo:
    __slots__ = ("parent", "name", "class_name", "depth", "children", "size", "_total")

    def __init__(self, parent: Optional["ObjectInfo"], name: str, cls: type, depth: int) -> None:
        self.parent = parent
        self.name = name
        self.class_name = class_name(cls)
        self.depth = depth
        self.children: list[ObjectInfo] = []
        self.size = 0
        self._total: Optional[int] = None

    def add_child(self, name: str, cls: type) -> "ObjectInfo":
        child = ObjectInfo(self, name, cls, self.depth + 1)
        self.children.append(child)
        return child

    def total_size(self) -> int:
        if self._total is None:
            self._total = self.size + sum(child.total_size() for child in self.children)
        return self._total

    def label(self) -> str:
        return f"{self.name} [{self.class_name}] "

    def render(self, print_total: bool) -> str:
        lines: list[str] = []
        self._render("", True, print_total, lines)
        return "\n".join(lines)

    def _render(self, indentation: str, is_last: bool, print_total: bool, lines: list[str]) -> None:
        prefix = ""
        if self.parent is not None:
            lines.append(f"{indentation}|")
            prefix = f"{indentation}+--"

        text = prefix + self.label()
        if self.size:
            if print_total:
                text += format_size(self.total_size()) + " "
            text += f"({format_size(self.size)})"
        lines.append(text)

        child_indentation = indentation + ("  " if is_last else "|  ")
        for i, child in enumerate(self.children):
            child._render(child_indentation, i == len(self.children) - 1, print_total, lines)


class TreePrinter(MeterListener):
    """Prints the object tree of a measurement, down to ``max_depth`` levels.

    Totals are only printed when the whole tree fits in ``max_depth``.
    """

    def __init__(self, max_depth: int, out: Optional[TextIO] = None, err: Optional[TextIO] = None) -> None:
        self.max_depth = max_depth
        self.out = out
        self.err = err
        self._infos: dict[int, ObjectInfo] = {}
        # Keeps the objects behind the id() keys alive for the measurement
        self._objects: list[Any] = []
        self._root: Optional[ObjectInfo] = None
        self._missing = False

    @classmethod
    def factory(cls, max_depth: int, out: Optional[TextIO] = None):
        return lambda: cls(max_depth, out=out)

    def _track(self, obj: Any, info: ObjectInfo) -> None:
        self._infos[id(obj)] = info
        self._objects.append(obj)

    def started(self, root: Any) -> None:
        self._root = ObjectInfo(None, ROOT_NAME, type(root), 0)
        self._track(root, self._root)

    def field_added(self, parent: Any, name: str, child: Any) -> None:
        info = self._infos.get(id(parent))
        if info is not None and info.depth <= self.max_depth - 1:
            self._track(child, info.add_child(name, type(child)))
        else:
            self._missing = True

    def array_element_added(self, array: Any, index: int, element: Any) -> None:
        self.field_added(array, str(index), element)

    def object_measured(self, obj: Any, size: int) -> None:
        info = self._infos.get(id(obj))
        if info is not None:
            info.size = size

    def buffer_remaining_measured(self, buffer: Any, size: int) -> None:
        info = self._infos.get(id(buffer))
        if info is not None:
            info.size += size

    def done(self, total: int) -> None:
        if self._root is not None:
            print("\n" + self._root.render(not self._missing), file=self.out or sys.stdout)
        self._objects.clear()

    def failed_to_access_field(self, obj: Any, field_name: str, field_type: type) -> None:
        type_name = class_name(field_type)
        lines = [
            f"The value of the {field_name} field from {type_name} could not be retrieved. "
            "Dependency stack below: ",
            f"{field_name} [{type_name}] ",
        ]
        info = self._infos.get(id(obj))
        while info is not None:
            lines.append("|")
            lines.append(info.label())
            info = info.parent
        print("\n".join(lines), file=self.err or sys.stderr)
        self._objects.clear()
