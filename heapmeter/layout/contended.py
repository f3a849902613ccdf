"""
False-sharing padding rules.

Padding applies to a class only when it is enabled for the environment
and the class is trusted (defined by the interpreter or the standard
library) or padding is not restricted to trusted classes.
"""
from __future__ import annotations

import sys
from typing import Iterable, Optional

from heapmeter.internals.errors import raise_error
from heapmeter.introspection.fields import Field
from heapmeter.layout.probe import Environment
from heapmeter.markers import class_contended

# Contention tags of classes whose markers may not be readable
TRUSTED_CONTENDED_TAGS: dict[type, str] = {}


def trust_contended_tag(cls: type, tag: str) -> None:
    """Register the contention tag used by the fields of ``cls``.

    Registered classes count as trusted; their tag is used whenever the
    environment cannot read markers.
    """
    TRUSTED_CONTENDED_TAGS[cls] = tag


def is_trusted_class(cls: type) -> bool:
    if cls in TRUSTED_CONTENDED_TAGS:
        return True
    module = (getattr(cls, "__module__", None) or "").partition(".")[0]
    return module == "builtins" or module in sys.stdlib_module_names


class ContentionGroupCounter:
    """Counts contention groups: each anonymous field is its own group."""

    def __init__(self) -> None:
        self.anonymous = 0
        self.tags: set[str] = set()

    def add(self, tag: str) -> None:
        if tag == "":
            self.anonymous += 1
        else:
            self.tags.add(tag)

    def count(self) -> int:
        return self.anonymous + len(self.tags)


class ContendedPadding:
    def __init__(
        self,
        padding_width: int,
        enabled: bool = True,
        restricted: bool = True,
        tags_accessible: bool = True,
    ) -> None:
        self.padding_width = padding_width
        self.enabled = enabled
        self.restricted = restricted
        self.tags_accessible = tags_accessible

    @classmethod
    def from_environment(cls, env: Environment) -> "ContendedPadding":
        return cls(
            padding_width=env.contended_padding_width,
            enabled=env.contended_enabled,
            restricted=env.contended_restricted,
            tags_accessible=env.contended_tags_accessible,
        )

    def is_enabled_for(self, cls: type) -> bool:
        return self.enabled and (is_trusted_class(cls) or not self.restricted)

    def is_class_contended(self, cls: type) -> bool:
        return class_contended(cls) is not None and self.is_enabled_for(cls)

    def tag_of(self, field: Field) -> str:
        """Contention group tag of a contended field.

        Raises:
            UnclassifiableFieldError: when markers are not readable and the
                declaring class has no registered tag.
        """
        if self.tags_accessible:
            return field.contended.tag
        trusted = TRUSTED_CONTENDED_TAGS.get(field.declaring_class)
        if trusted is not None:
            return trusted
        raise_error("HM0301", field=field.name, owner=field.declaring_class.__qualname__)

    def count_groups(self, cls: type, fields: Iterable[Field]) -> int:
        counter: Optional[ContentionGroupCounter] = None
        for field in fields:
            if field.contended is None:
                continue
            if counter is None:
                counter = ContentionGroupCounter()
            counter.add(self.tag_of(field))
        return counter.count() if counter is not None else 0
