"""
Classification of objects into instances and arrays.

Builtin containers are arrays of references, byte strings, ``array.array``
and ``str`` are arrays of primitives. ``dict`` is stored as an array of
key/value pairs, so it holds ``2 * len`` references.

Lengths and elements are always taken through the builtin type's own
methods, so a subclass overriding ``__len__``, ``__iter__`` or ``items``
is never called while an object is measured.
"""
from __future__ import annotations

import array
import collections
import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

# Storage of heap-resident buffer exporters
HEAP_BUFFER_TYPES = (bytes, bytearray, array.array)

REFERENCE_ARRAY_TYPES = (list, tuple, set, frozenset, collections.deque, dict)
PRIMITIVE_ARRAY_TYPES = (bytes, bytearray, array.array, str)

ARRAY_TYPES = REFERENCE_ARRAY_TYPES + PRIMITIVE_ARRAY_TYPES


class ShapeKind(Enum):
    INSTANCE = "instance"
    REFERENCE_ARRAY = "reference-array"
    PRIMITIVE_ARRAY = "primitive-array"


@dataclass(frozen=True)
class Shape:
    kind: ShapeKind
    length: int = 0
    # Bytes per element of a primitive array; None for references
    element_width: Optional[int] = None

    @property
    def is_array(self) -> bool:
        return self.kind is not ShapeKind.INSTANCE


INSTANCE = Shape(ShapeKind.INSTANCE)


def builtin_base(obj: Any) -> type:
    """The builtin array type ``obj``'s class derives from."""
    for cls in type(obj).__mro__:
        if cls in ARRAY_TYPES:
            return cls
    raise TypeError(f"{type(obj).__qualname__} is not an array type")


def builtin_len(obj: Any) -> int:
    return builtin_base(obj).__len__(obj)


def str_char_width(s: str) -> int:
    """Bytes per character of the compact representation of ``s``."""
    s = str.__str__(s)
    if s.isascii():
        return 1
    widest = max(map(ord, s))
    if widest < 0x100:
        return 1
    if widest < 0x10000:
        return 2
    return 4


def shape_of(obj: Any) -> Shape:
    if isinstance(obj, (bytes, bytearray)):
        return Shape(ShapeKind.PRIMITIVE_ARRAY, builtin_len(obj), 1)
    if isinstance(obj, str):
        return Shape(ShapeKind.PRIMITIVE_ARRAY, str.__len__(obj), str_char_width(obj))
    if isinstance(obj, array.array):
        itemsize = array.array.itemsize.__get__(obj)
        return Shape(ShapeKind.PRIMITIVE_ARRAY, array.array.__len__(obj), itemsize)
    if isinstance(obj, dict):
        return Shape(ShapeKind.REFERENCE_ARRAY, 2 * dict.__len__(obj))
    if isinstance(obj, REFERENCE_ARRAY_TYPES):
        return Shape(ShapeKind.REFERENCE_ARRAY, builtin_len(obj))
    return INSTANCE


def is_array(obj: Any) -> bool:
    return isinstance(obj, ARRAY_TYPES)


def elements(container: Any) -> Iterable[Any]:
    """Elements of a reference array in storage order."""
    if isinstance(container, dict):
        return itertools.chain.from_iterable(dict.items(container))
    return builtin_base(container).__iter__(container)


def is_shared_buffer(obj: Any) -> bool:
    return isinstance(obj, memoryview)


def buffer_capacity(view: memoryview) -> Optional[int]:
    """Byte size of the whole store behind ``view``, when it can be known."""
    backing = view.obj
    if isinstance(backing, (bytes, bytearray)):
        return builtin_len(backing)
    if isinstance(backing, array.array):
        return array.array.__len__(backing) * array.array.itemsize.__get__(backing)
    return None


def is_heap_buffer(view: memoryview) -> bool:
    """True when ``view`` is exported by a heap object the meter can size."""
    return isinstance(view.obj, HEAP_BUFFER_TYPES)
