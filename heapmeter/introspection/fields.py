"""
Declared instance fields of a class.

A class declares:
- the entries of its own ``__slots__`` (``__dict__``/``__weakref__`` excluded),
  with the kind given by the slot's annotation;
- an ``__dict__`` reference when it is the class that introduces the
  instance dictionary;
- for a few builtin types whose state is not visible as slots, the
  fields registered in BUILTIN_FIELDS.

Annotations only describe slots; class attributes and ``ClassVar``
entries are never instance fields.
"""
from __future__ import annotations

import inspect
import logging
import typing
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from heapmeter.layout.kinds import FieldKind, kind_of
from heapmeter.markers import Contended, Outer, Unmetered

LOG = logging.getLogger(__name__)

INSTANCE_DICT = "__dict__"
_SPECIAL_SLOTS = {"__dict__", "__weakref__"}


class FieldStorage(Enum):
    SLOT = "slot"
    INSTANCE_DICT = "dict"
    BUILTIN = "builtin"


@dataclass(frozen=True)
class Field:
    name: str
    declaring_class: type
    kind: FieldKind
    storage: FieldStorage
    declared_type: Any = None
    contended: Optional[Contended] = None
    unmetered: bool = False
    outer: bool = False
    reader: Optional[Callable[[Any], Any]] = None

    @property
    def is_primitive(self) -> bool:
        return self.kind.is_primitive

    @property
    def qualified_name(self) -> str:
        return f"{self.declaring_class.__qualname__}.{self.name}"

    def __repr__(self) -> str:
        return f"Field({self.qualified_name}: {self.kind.value})"


def _builtin(owner: type, name: str, kind: FieldKind,
             reader: Optional[Callable[[Any], Any]] = None) -> Field:
    return Field(name, owner, kind, FieldStorage.BUILTIN, reader=reader)


def _referent(ref: weakref.ref) -> Any:
    return ref()


def _backing_store(view: memoryview) -> Any:
    try:
        return view.obj
    except ValueError:
        # released views no longer hold their exporter
        return None


# Builtin types whose payload is not exposed as slots
BUILTIN_FIELDS: dict[type, tuple[Field, ...]] = {
    int: (_builtin(int, "value", FieldKind.LONG),),
    float: (_builtin(float, "value", FieldKind.DOUBLE),),
    complex: (
        _builtin(complex, "real", FieldKind.DOUBLE),
        _builtin(complex, "imag", FieldKind.DOUBLE),
    ),
    memoryview: (
        _builtin(memoryview, "obj", FieldKind.REFERENCE, reader=_backing_store),
        _builtin(memoryview, "nbytes", FieldKind.LONG),
        _builtin(memoryview, "itemsize", FieldKind.INT),
        _builtin(memoryview, "ndim", FieldKind.INT),
        _builtin(memoryview, "readonly", FieldKind.BOOLEAN),
    ),
    weakref.ref: (
        _builtin(weakref.ref, "referent", FieldKind.REFERENCE, reader=_referent),
        _builtin(weakref.ref, "__callback__", FieldKind.REFERENCE,
                 reader=lambda ref: ref.__callback__),
    ),
}

# Field holding the target of a non-owning reference
REFERENT_FIELD = BUILTIN_FIELDS[weakref.ref][0]


def own_slot_names(cls: type) -> tuple[str, ...]:
    """Names of the slots ``cls`` itself declares, mangled as CPython stores them."""
    slots = vars(cls).get("__slots__", ())
    if isinstance(slots, str):
        slots = (slots,)
    return tuple(mangle(cls, name) for name in slots if name not in _SPECIAL_SLOTS)


def mangle(cls: type, name: str) -> str:
    """Apply private name mangling (``__x`` inside ``C`` becomes ``_C__x``)."""
    if not name.startswith("__") or name.endswith("__"):
        return name
    owner = cls.__name__.lstrip("_")
    if not owner:
        return name
    return f"_{owner}{name}"


def introduces_instance_dict(cls: type) -> bool:
    return INSTANCE_DICT in vars(cls) and inspect.isdatadescriptor(vars(cls)[INSTANCE_DICT])


def _own_annotations(cls: type) -> dict[str, Any]:
    try:
        return inspect.get_annotations(cls, eval_str=True)
    except (NameError, SyntaxError, AttributeError, TypeError) as e:
        LOG.debug("unresolved annotations on %s (%s); kinds fall back to references",
                  cls.__qualname__, e)
        return inspect.get_annotations(cls)


def _describe(cls: type, name: str, annotation: Any) -> Field:
    metadata: tuple = ()
    base = annotation
    if typing.get_origin(annotation) is typing.Annotated:
        base = annotation.__origin__
        metadata = annotation.__metadata__

    kind = kind_of(metadata) or FieldKind.REFERENCE
    contended = next((m for m in metadata if isinstance(m, Contended)), None)
    return Field(
        name=name,
        declaring_class=cls,
        kind=kind,
        storage=FieldStorage.SLOT,
        declared_type=base if isinstance(base, type) else None,
        contended=contended,
        unmetered=any(m is Unmetered for m in metadata),
        outer=any(m is Outer for m in metadata),
    )


def declared_fields(cls: type) -> tuple[Field, ...]:
    """Instance fields declared by ``cls`` itself, in declaration order."""
    builtin = BUILTIN_FIELDS.get(cls)
    if builtin is not None:
        return builtin

    result: list[Field] = []
    slots = own_slot_names(cls)
    if slots:
        annotations = _own_annotations(cls)
        raw = vars(cls).get("__slots__", ())
        raw_names = (raw,) if isinstance(raw, str) else tuple(raw)
        for raw_name in raw_names:
            if raw_name in _SPECIAL_SLOTS:
                continue
            name = mangle(cls, raw_name)
            annotation = annotations.get(name, annotations.get(raw_name))
            if typing.get_origin(annotation) is typing.ClassVar:
                annotation = None
            result.append(_describe(cls, name, annotation))

    if introduces_instance_dict(cls):
        result.append(Field(INSTANCE_DICT, cls, FieldKind.REFERENCE, FieldStorage.INSTANCE_DICT,
                            declared_type=dict))
    return tuple(result)


def hierarchy(cls: type) -> tuple[type, ...]:
    """Classes contributing fields to ``cls``, closest to the root first."""
    return tuple(klass for klass in reversed(cls.__mro__) if klass is not object)
