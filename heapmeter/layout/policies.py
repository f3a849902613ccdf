"""
Object layout policies.

A policy turns the field blocks of a class hierarchy into an instance
size. Blocks are ``(class, declared fields)`` pairs ordered root first.

- PostReformPolicy: fields of all classes are packed after the header,
  gaps left by a superclass are reused.
- PreReformPolicy: every class lays its fields out in its own block; the
  blocks of superclasses are padded to the block alignment and a block of
  8-byte fields starts on an 8-byte boundary.
- EmptySlotsDisabledPolicy: the pre-reform block layout a post-reform
  runtime falls back to when it does not reuse superclass gaps.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from heapmeter.introspection.fields import Field
from heapmeter.layout.contended import ContendedPadding
from heapmeter.layout.kinds import field_width
from heapmeter.layout.probe import Environment
from heapmeter.layout.spec import LayoutSpecification, round_to

Blocks = Sequence[tuple[type, Sequence[Field]]]


class LayoutPolicy(ABC):
    name = "layout"

    def __init__(self, spec: LayoutSpecification, padding: ContendedPadding) -> None:
        self.spec = spec
        self.padding = padding

    def field_width(self, field: Field) -> int:
        return field_width(field.kind, self.spec.reference_width)

    @abstractmethod
    def instance_size(self, blocks: Blocks) -> int:
        """Aligned shallow size of an instance built from ``blocks``."""

    @abstractmethod
    def contended_padding(self, cls: type, fields: Sequence[Field]) -> int:
        """Bytes of false-sharing padding added for the block of ``cls``."""


class PostReformPolicy(LayoutPolicy):
    name = "post-reform"

    def instance_size(self, blocks: Blocks) -> int:
        size = self.spec.object_header_width
        for cls, fields in blocks:
            size += sum(self.field_width(f) for f in fields)
            size += self.contended_padding(cls, fields)
        return round_to(size, self.spec.alignment_quantum)

    def contended_padding(self, cls: type, fields: Sequence[Field]) -> int:
        if not self.padding.is_enabled_for(cls):
            return 0
        pad = self.padding.padding_width
        size = 0
        if self.padding.is_class_contended(cls):
            size += pad << 1
        size += self.padding.count_groups(cls, fields) * (pad << 1)
        return size


class PreReformPolicy(LayoutPolicy):
    name = "pre-reform"

    @property
    def block_alignment(self) -> int:
        return self.spec.superclass_field_block_padding

    def has_superclass_gap(self, size: int, block: int, eight_byte_total: int) -> bool:
        return (size & 7) > 0 and _only_8_byte_fields(block, eight_byte_total)

    def instance_size(self, blocks: Blocks) -> int:
        size = self.spec.object_header_width
        last = len(blocks) - 1
        for index, (cls, fields) in enumerate(blocks):
            block = 0
            eight_byte_total = 0
            for f in fields:
                width = self.field_width(f)
                block += width
                eight_byte_total += width & 8

            if self.has_superclass_gap(size, block, eight_byte_total):
                size = round_to(size, 8)

            block += self.contended_padding(cls, fields)
            # The most derived class does not pad its own block
            size += block if index == last else round_to(block, self.block_alignment)
        return round_to(size, self.spec.alignment_quantum)

    def contended_padding(self, cls: type, fields: Sequence[Field]) -> int:
        if not self.padding.is_enabled_for(cls):
            return 0
        pad = self.padding.padding_width
        size = 0
        if self.padding.is_class_contended(cls):
            size += pad << 1
        groups = self.padding.count_groups(cls, fields)
        if groups:
            # One leading pad per group and a single trailing pad
            size += groups * pad + pad
        return size


class EmptySlotsDisabledPolicy(PreReformPolicy):
    name = "pre-reform (empty slots disabled)"

    @property
    def block_alignment(self) -> int:
        return 4

    def has_superclass_gap(self, size: int, block: int, eight_byte_total: int) -> bool:
        return ((size & 7) > 0
                and (eight_byte_total > 0 or self.spec.reference_width == 8)
                and (size != self.spec.object_header_width
                     or _only_8_byte_fields(block, eight_byte_total)))


def _only_8_byte_fields(block: int, eight_byte_total: int) -> bool:
    return eight_byte_total != 0 and block == eight_byte_total


def policy_for(env: Environment, spec: LayoutSpecification,
               padding: ContendedPadding | None = None) -> LayoutPolicy:
    """Layout policy of the runtime described by ``env``."""
    if padding is None:
        padding = ContendedPadding.from_environment(env)
    if not env.post_reform_layout:
        return PreReformPolicy(spec, padding)
    if not env.use_empty_slots_in_supers:
        return EmptySlotsDisabledPolicy(spec, padding)
    return PostReformPolicy(spec, padding)
