"""Field enumeration and reading for the whole class hierarchy."""
from __future__ import annotations

import logging
import threading
import weakref
from typing import Any, Optional

from heapmeter.internals.errors import raise_error
from heapmeter.introspection.accessors import (
    DirectAccessor,
    FieldAccessDenied,
    FieldAccessor,
    OffsetAccessor,
    host_offset_accessor,
)
from heapmeter.introspection.fields import Field, FieldStorage, declared_fields, hierarchy

LOG = logging.getLogger(__name__)


class FieldIntrospector:
    """Enumerates declared fields and reads their values.

    The accessor pair is chosen once, at construction; reads try the
    direct accessor first and fall back to the offset accessor.
    """

    def __init__(self, direct: FieldAccessor, fallback: Optional[OffsetAccessor] = None) -> None:
        self.direct = direct
        self.fallback = fallback
        self._declared: "weakref.WeakKeyDictionary[type, tuple[Field, ...]]" = weakref.WeakKeyDictionary()
        self._lock = threading.Lock()

    @classmethod
    def for_host(cls) -> "FieldIntrospector":
        return cls(DirectAccessor(), host_offset_accessor())

    def declared_fields(self, cls: type) -> tuple[Field, ...]:
        """Own fields of ``cls``, cached per class."""
        result = self._declared.get(cls)
        if result is None:
            result = declared_fields(cls)
            with self._lock:
                result = self._declared.setdefault(cls, result)
        return result

    def class_blocks(self, cls: type) -> list[tuple[type, tuple[Field, ...]]]:
        """Per-class field blocks, root first.

        The instance dictionary is stored once per object even though
        several classes in a diamond may each introduce it.
        """
        blocks = []
        seen_dict = False
        for klass in hierarchy(cls):
            fields = self.declared_fields(klass)
            if any(f.storage is FieldStorage.INSTANCE_DICT for f in fields):
                if seen_dict:
                    fields = tuple(f for f in fields if f.storage is not FieldStorage.INSTANCE_DICT)
                seen_dict = True
            blocks.append((klass, fields))
        return blocks

    def all_fields(self, cls: type) -> list[Field]:
        return [f for _, fields in self.class_blocks(cls) for f in fields]

    def read(self, obj: Any, field: Field) -> Any:
        """Read ``field`` from ``obj``.

        Raises:
            FieldInaccessibleError: when neither accessor can read the field.
        """
        try:
            return self.direct.read(obj, field)
        except FieldAccessDenied as denied:
            if self.fallback is None:
                raise_error("HM0201", field=field.name, owner=field.declaring_class.__qualname__,
                            reason=str(denied))
            LOG.debug("direct access denied for %s (%s), using %s accessor",
                      field.qualified_name, denied, self.fallback.name)
        try:
            return self.fallback.read(obj, field)
        except FieldAccessDenied as denied:
            raise_error("HM0201", field=field.name, owner=field.declaring_class.__qualname__,
                        reason=str(denied))
