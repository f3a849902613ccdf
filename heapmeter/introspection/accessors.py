"""
Field value accessors.

DirectAccessor reads through the member and getset descriptors of the
declaring class, the same path attribute access takes for slots, but
without ever running properties or ``__getattr__`` hooks. When a class
has replaced or deleted one of its slot descriptors the direct path is
denied and the offset accessor reads the slot straight from the object
memory of a CPython instance.
"""
from __future__ import annotations

import ctypes
import sys
import threading
import types
from abc import ABC, abstractmethod
from typing import Any, Optional

from heapmeter.introspection.fields import Field, FieldStorage, own_slot_names
from heapmeter.layout.spec import LayoutSpecification

POINTER_SIZE = ctypes.sizeof(ctypes.c_void_p)


class FieldAccessDenied(Exception):
    """Raised by an accessor that cannot read a field on its path."""


class FieldAccessor(ABC):
    name = "accessor"

    @abstractmethod
    def read(self, obj: Any, field: Field) -> Any:
        """Value of ``field`` on ``obj``; ``None`` for an unset slot."""


class DirectAccessor(FieldAccessor):
    """Reads fields through the declaring class's descriptors.

    On CPython 3.11 and later an instance dictionary that was never used is
    kept inline in the object; reading it through the ``__dict__``
    descriptor builds the dict object, so the instance afterwards holds a
    real dictionary where it held inline values before. The size reported
    is that of the dictionary.
    """

    name = "direct"

    def read(self, obj: Any, field: Field) -> Any:
        if field.reader is not None:
            return field.reader(obj)

        descriptor = vars(field.declaring_class).get(field.name)
        if not isinstance(descriptor, (types.MemberDescriptorType, types.GetSetDescriptorType)):
            raise FieldAccessDenied(f"descriptor of {field.qualified_name} is {type(descriptor).__name__}")
        try:
            return descriptor.__get__(obj, type(obj))
        except AttributeError:
            return None


class OffsetAccessor(FieldAccessor):
    """Accessor that knows where fields live inside an object."""

    name = "offset"

    # False when the runtime stores every field as a pointer, whatever its
    # declared kind, and never pads contended fields.
    places_primitives = True

    @abstractmethod
    def field_offset(self, field: Field) -> Optional[int]:
        """Byte offset of ``field`` from the object start, ``None`` when unknown."""

    def describes(self, spec: LayoutSpecification) -> bool:
        """Whether the offsets found are those of objects laid out under ``spec``."""
        return True


class CPythonSlotAccessor(OffsetAccessor):
    """Reads slots of CPython heap types by their offset in the instance.

    CPython stores the slots a class declares as object pointers starting at
    the basic size of its base, ordered by their mangled names. The instance
    dictionary pointer lives at ``__dictoffset__`` when it is not managed by
    the interpreter.
    """

    name = "cpython-slots"
    places_primitives = False

    def __init__(self) -> None:
        self._offsets: dict[type, dict[str, int]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def available() -> bool:
        return sys.implementation.name == "cpython"

    def describes(self, spec: LayoutSpecification) -> bool:
        return (spec.object_header_width == object.__basicsize__
                and spec.reference_width == POINTER_SIZE)

    def _slot_offsets(self, cls: type) -> dict[str, int]:
        offsets = self._offsets.get(cls)
        if offsets is not None:
            return offsets

        base = cls.__base__.__basicsize__ if cls.__base__ is not None else 0
        offsets = {}
        for index, name in enumerate(sorted(own_slot_names(cls))):
            offset = base + index * POINTER_SIZE
            if offset + POINTER_SIZE <= cls.__basicsize__:
                offsets[name] = offset
        with self._lock:
            return self._offsets.setdefault(cls, offsets)

    def field_offset(self, field: Field) -> Optional[int]:
        if field.storage is FieldStorage.SLOT:
            return self._slot_offsets(field.declaring_class).get(field.name)
        if field.storage is FieldStorage.INSTANCE_DICT:
            offset = field.declaring_class.__dictoffset__
            return offset if offset > 0 else None
        return None

    def read(self, obj: Any, field: Field) -> Any:
        offset = self.field_offset(field)
        if offset is None:
            raise FieldAccessDenied(f"no known offset for {field.qualified_name}")
        try:
            return ctypes.py_object.from_address(id(obj) + offset).value
        except ValueError:
            # NULL pointer: the slot was never assigned
            return None


def host_offset_accessor() -> Optional[OffsetAccessor]:
    """Offset accessor of the running interpreter, if it has one."""
    if CPythonSlotAccessor.available():
        return CPythonSlotAccessor()
    return None
