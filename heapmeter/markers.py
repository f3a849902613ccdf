"""
Annotation markers understood by the meter.

Markers work both as class decorators and as ``typing.Annotated`` metadata::

    @Unmetered
    class Registry: ...

    @Contended()
    class Counter:
        __slots__ = ('hits', 'misses', 'owner', 'parent')
        hits: Annotated[Long, Contended("stats")]
        misses: Annotated[Long, Contended("stats")]
        owner: Annotated[Registry, Unmetered]
        parent: Annotated[object, Outer]
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

UNMETERED_ATTR = "__heapmeter_unmetered__"
CONTENDED_ATTR = "__heapmeter_contended__"


class _UnmeteredMarker:
    """Excludes a class (and its subclasses), or a single field, from measurement."""

    def __call__(self, cls: type) -> type:
        setattr(cls, UNMETERED_ATTR, True)
        return cls

    def __repr__(self) -> str:
        return "Unmetered"


class _OuterMarker:
    """Marks a synthetic back-reference to an enclosing instance."""

    def __repr__(self) -> str:
        return "Outer"


Unmetered = _UnmeteredMarker()
Outer = _OuterMarker()


@dataclass(frozen=True)
class Contended:
    """Requests false-sharing padding.

    On a field, ``tag`` names the contention group; fields sharing a
    non-empty tag are padded as one group, an empty tag isolates the field.
    As a class decorator the whole instance is padded.
    """
    tag: str = ""

    def __call__(self, cls: type) -> type:
        setattr(cls, CONTENDED_ATTR, self)
        return cls


def is_unmetered_class(cls: type) -> bool:
    """True when ``cls`` or any base class or mixin carries ``Unmetered``."""
    return any(vars(klass).get(UNMETERED_ATTR, False) for klass in cls.__mro__)


def class_contended(cls: type) -> Optional[Contended]:
    """Class-level contended marker declared on ``cls`` itself."""
    marker = vars(cls).get(CONTENDED_ATTR)
    return marker if isinstance(marker, Contended) else None
