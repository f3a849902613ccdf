"""
Class and field filters.

Filters are built once per Meter from its configuration. Each filter is
the logical OR of small rules; a True answer means "do not measure".
"""
from __future__ import annotations

import contextvars
import enum
import importlib.abc
import importlib.machinery
import threading
import types
import weakref
from dataclasses import dataclass
from typing import Callable

from heapmeter.introspection.fields import REFERENT_FIELD, Field
from heapmeter.markers import is_unmetered_class

ClassFilter = Callable[[type], bool]
FieldFilter = Callable[[type, Field], bool]

# Objects shared by the whole interpreter: type metadata, enum constants,
# module loaders and execution contexts.
KNOWN_SINGLETON_TYPES: tuple[type, ...] = (
    type,
    enum.Enum,
    types.ModuleType,
    importlib.machinery.ModuleSpec,
    importlib.abc.Loader,
    contextvars.Context,
    bool,
    type(None),
    type(NotImplemented),
    type(Ellipsis),
)


def is_known_singleton(cls: type) -> bool:
    return issubclass(cls, KNOWN_SINGLETON_TYPES)


def any_of(*rules: Callable[..., bool]) -> Callable[..., bool]:
    """Combine rules by logical OR."""
    if len(rules) == 1:
        return rules[0]

    def combined(*args) -> bool:
        return any(rule(*args) for rule in rules)

    return combined


def _never(*args) -> bool:
    return False


class _CachedClassFilter:
    """Memoizes a class filter per class (classes never change their answer)."""

    def __init__(self, rule: ClassFilter) -> None:
        self.rule = rule
        self._answers: "weakref.WeakKeyDictionary[type, bool]" = weakref.WeakKeyDictionary()
        self._lock = threading.Lock()

    def __call__(self, cls: type) -> bool:
        answer = self._answers.get(cls)
        if answer is None:
            answer = self.rule(cls)
            with self._lock:
                self._answers.setdefault(cls, answer)
        return answer


@dataclass(frozen=True)
class Filters:
    class_filter: ClassFilter
    field_filter: FieldFilter

    def ignore_class(self, cls: type) -> bool:
        return self.class_filter(cls)

    def ignore_field(self, owner: type, field: Field) -> bool:
        return self.field_filter(owner, field)


def build_filters(
    ignore_known_singletons: bool = True,
    respect_unmetered: bool = True,
    ignore_outer_reference: bool = False,
    ignore_non_owning_references: bool = False,
) -> Filters:
    class_rules: list[ClassFilter] = []
    if ignore_known_singletons:
        class_rules.append(is_known_singleton)
    if respect_unmetered:
        class_rules.append(is_unmetered_class)
    class_filter: ClassFilter = _CachedClassFilter(any_of(*class_rules)) if class_rules else _never

    def is_primitive(owner: type, field: Field) -> bool:
        return field.is_primitive

    def has_ignored_type(owner: type, field: Field) -> bool:
        declared = field.declared_type
        return isinstance(declared, type) and class_filter(declared)

    field_rules: list[FieldFilter] = [is_primitive]
    if class_rules:
        field_rules.append(has_ignored_type)
    if respect_unmetered:
        field_rules.append(lambda owner, field: field.unmetered)
    if ignore_outer_reference:
        field_rules.append(lambda owner, field: field.outer)
    if ignore_non_owning_references:
        field_rules.append(lambda owner, field: field == REFERENT_FIELD)

    return Filters(class_filter, any_of(*field_rules))
