"""
Offset-probing strategy.

Instance sizes come from where fields actually live: the end of the last
field is the highest ``offset + width`` over the declared fields. Types
the offset accessor cannot place (builtins, interpreter-managed
dictionaries) are sized by the layout-computed strategy instead.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from heapmeter.internals.errors import raise_error
from heapmeter.introspection.accessors import OffsetAccessor
from heapmeter.introspection.fields import Field
from heapmeter.introspection.introspector import FieldIntrospector
from heapmeter.layout.contended import ContendedPadding
from heapmeter.layout.kinds import field_width
from heapmeter.layout.spec import LayoutSpecification, round_to
from heapmeter.strategies.base import LayoutBasedStrategy, StrategyKind
from heapmeter.strategies.cache import TypeLayoutCache
from heapmeter.strategies.computed import LayoutComputedStrategy

LOG = logging.getLogger(__name__)


class OffsetProbingStrategy(LayoutBasedStrategy):
    kind = StrategyKind.OFFSET_PROBING

    def __init__(
        self,
        spec: LayoutSpecification,
        accessor: OffsetAccessor,
        introspector: FieldIntrospector,
        padding: ContendedPadding,
        fallback: LayoutComputedStrategy,
        post_reform: bool = True,
        cache: TypeLayoutCache[int] | None = None,
    ) -> None:
        if accessor is None:
            raise_error("HM0102", strategy=self.kind.value, capability=self.kind.capability)
        super().__init__(spec)
        self.accessor = accessor
        self.introspector = introspector
        self.padding = padding
        self.fallback = fallback
        self.post_reform = post_reform
        self.cache = cache if cache is not None else TypeLayoutCache()

    def measure_instance(self, cls: type) -> int:
        return self.cache.get(cls, self._compute)

    def _compute(self, cls: type) -> int:
        blocks = self.introspector.class_blocks(cls)
        if not self.accessor.places_primitives and self._needs_modelled_widths(blocks):
            LOG.debug("offsets of %s do not reflect its field widths, sizing it from its layout",
                      cls.__qualname__)
            return self.fallback.measure_instance(cls)
        offsets = self._offsets(blocks)
        if offsets is None:
            LOG.debug("no field offsets for %s, sizing it from its layout", cls.__qualname__)
            return self.fallback.measure_instance(cls)
        if self.post_reform:
            return self._scan_hierarchy(blocks, offsets)
        return self._scan_from_most_derived(blocks, offsets)

    def _needs_modelled_widths(self, blocks) -> bool:
        # Primitive and padded fields only have their modelled place in a
        # runtime that lays them out itself.
        for cls, fields in blocks:
            if self.padding.is_class_contended(cls):
                return True
            for f in fields:
                if f.is_primitive or f.contended is not None:
                    return True
        return False

    def _offsets(self, blocks) -> Optional[dict[Field, int]]:
        offsets: dict[Field, int] = {}
        for _, fields in blocks:
            for f in fields:
                offset = self.accessor.field_offset(f)
                if offset is None:
                    return None
                offsets[f] = offset
        return offsets

    def _field_end(self, f: Field, offsets: dict[Field, int]) -> int:
        return offsets[f] + field_width(f.kind, self.spec.reference_width)

    def _scan_hierarchy(self, blocks, offsets: dict[Field, int]) -> int:
        # Post-reform runtimes may place a subclass field in a superclass gap,
        # so every class has to be looked at.
        pad = self.padding.padding_width
        size = 0
        last_field_contended = False
        for cls, fields in reversed(blocks):
            for f in fields:
                previous = size
                size = max(size, self._field_end(f, offsets))
                if previous < size:
                    last_field_contended = f.contended is not None
            if self.padding.is_class_contended(cls):
                size += pad

        if size == 0:
            size = self.spec.object_header_width
        elif last_field_contended:
            size += pad
        return round_to(size, self.spec.alignment_quantum)

    def _scan_from_most_derived(self, blocks: Sequence, offsets: dict[Field, int]) -> int:
        # Superclass fields always precede subclass fields, so the first
        # class with fields (walking up) holds the end of the object.
        pad = self.padding.padding_width
        annotated_without_fields = 0
        for cls, fields in reversed(blocks):
            size = 0
            last_field_contended = False
            for f in fields:
                previous = size
                size = max(size, self._field_end(f, offsets))
                if previous < size:
                    last_field_contended = f.contended is not None and self.padding.is_enabled_for(cls)

            if last_field_contended:
                size += pad

            if size > 0:
                if self.padding.is_class_contended(cls):
                    size += pad
                size += annotated_without_fields * (pad << 1)
                return round_to(size, self.spec.alignment_quantum)

            if self.padding.is_class_contended(cls):
                annotated_without_fields += 1
        return round_to(self.spec.object_header_width, self.spec.alignment_quantum)
