"""
Deep measurement of an object graph.

The walk is iterative (an explicit stack, no recursion), so graph depth
is bounded by memory rather than by the interpreter's recursion limit.
"""
from __future__ import annotations

import logging
from typing import Any

from heapmeter.config import BufferMode
from heapmeter.filters import Filters
from heapmeter.internals.errors import FieldInaccessibleError
from heapmeter.introspection.fields import Field
from heapmeter.introspection.introspector import FieldIntrospector
from heapmeter.introspection.shapes import (
    REFERENCE_ARRAY_TYPES,
    ShapeKind,
    buffer_capacity,
    elements,
    is_heap_buffer,
    is_shared_buffer,
    shape_of,
)
from heapmeter.listeners.base import ListenerFactory, noop_factory
from heapmeter.strategies.base import MeterStrategy
from heapmeter.strategies.cache import TypeLayoutCache
from heapmeter.traversal.stack import Measurable, MeasurementStack

LOG = logging.getLogger(__name__)


class GraphTraverser:
    def __init__(
        self,
        strategy: MeterStrategy,
        introspector: FieldIntrospector,
        filters: Filters,
        buffer_mode: BufferMode = BufferMode.NORMAL,
        listener_factory: ListenerFactory = noop_factory,
    ) -> None:
        self.strategy = strategy
        self.introspector = introspector
        self.filters = filters
        self.buffer_mode = buffer_mode
        self.listener_factory = listener_factory
        self._fields: TypeLayoutCache[tuple[Field, ...]] = TypeLayoutCache()

    def measurable_fields(self, cls: type) -> tuple[Field, ...]:
        """Reference fields of ``cls`` that survive the field filter."""
        return self._fields.get(cls, self._collect_fields)

    def _collect_fields(self, cls: type) -> tuple[Field, ...]:
        return tuple(f for f in self.introspector.all_fields(cls)
                     if not self.filters.ignore_field(cls, f))

    def measure_deep(self, root: Any) -> int:
        if root is None or self.filters.ignore_class(type(root)):
            return 0

        listener = self.listener_factory()
        stack = MeasurementStack(self.filters.class_filter, listener)
        stack.push_root(root)

        total = 0
        while stack:
            current = stack.pop()
            size = self.strategy.measure(current)
            listener.object_measured(current, size)
            total += size

            shape = shape_of(current)
            if shape.kind is ShapeKind.REFERENCE_ARRAY:
                stack.push_elements(current, elements(current))
                # container subclasses may carry fields of their own
                if type(current) in REFERENCE_ARRAY_TYPES:
                    continue
            elif shape.kind is ShapeKind.PRIMITIVE_ARRAY:
                continue

            if is_shared_buffer(current) and self.buffer_mode is not BufferMode.NORMAL:
                total += self._measure_buffer(current, size, stack)
                continue

            if isinstance(current, Measurable):
                current.add_children_to(stack)
            else:
                self._push_fields(current, stack)

        LOG.debug("deep size of %s: %d bytes over %d objects",
                  type(root).__qualname__, total, len(stack.visited))
        listener.done(total)
        return total

    def _measure_buffer(self, view: memoryview, size: int, stack: MeasurementStack) -> int:
        """Apply the shared-buffer mode; returns the adjustment to the total."""
        listener = stack.listener
        try:
            remaining = view.nbytes
        except ValueError:
            # released view: nothing behind it to count
            return 0

        if self.buffer_mode is BufferMode.OMIT_SHARED_OVERHEAD:
            listener.buffer_remaining_measured(view, remaining)
            return remaining

        if self.buffer_mode is BufferMode.SHALLOW_ONLY:
            return 0

        # heap-only-no-slice
        if not is_heap_buffer(view):
            return 0
        capacity = buffer_capacity(view)
        if capacity is not None and capacity > remaining:
            listener.buffer_remaining_measured(view, remaining)
            return remaining - size
        self._push_fields(view, stack)
        return 0

    def _push_fields(self, obj: Any, stack: MeasurementStack) -> None:
        for field in self.measurable_fields(type(obj)):
            try:
                value = self.introspector.read(obj, field)
            except FieldInaccessibleError:
                stack.listener.failed_to_access_field(obj, field.name, field.declared_type or object)
                raise
            stack.push_object(obj, field.name, value)
