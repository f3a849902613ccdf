"""Immutable memory-layout parameters and their derivation from an Environment."""
from __future__ import annotations

from dataclasses import dataclass, fields

from heapmeter.internals.errors import raise_error
from heapmeter.layout.probe import Environment


def round_to(x: int, m: int) -> int:
    """Round ``x`` up to a multiple of ``m`` (a power of two)."""
    return (x + m - 1) & -m


def is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


@dataclass(frozen=True)
class LayoutSpecification:
    """Widths, in bytes, that decide how objects are laid out."""
    object_header_width: int
    array_header_width: int
    reference_width: int
    alignment_quantum: int = 8
    superclass_field_block_padding: int = 0
    contended_padding_width: int = 128

    def __post_init__(self) -> None:
        if self.superclass_field_block_padding == 0:
            object.__setattr__(self, 'superclass_field_block_padding', self.reference_width)
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise_error("HM0406", field=f.name, reason=f"expected a positive integer, got {value!r}")
        if not is_power_of_two(self.alignment_quantum):
            raise_error("HM0406", field="alignment_quantum",
                        reason=f"{self.alignment_quantum} is not a power of two")
        if self.alignment_quantum < self.reference_width:
            raise_error("HM0406", field="alignment_quantum",
                        reason=f"{self.alignment_quantum} is smaller than the reference width {self.reference_width}")

    def array_size(self, length: int, element_width: int) -> int:
        """Size of an array of ``length`` elements of ``element_width`` bytes."""
        return round_to(self.array_header_width + length * element_width, self.alignment_quantum)

    @classmethod
    def from_environment(cls, env: Environment) -> "LayoutSpecification":
        if env.pointer_width not in (32, 64):
            raise_error("HM0401", option="pointer_width",
                        reason=f"expected 32 or 64, got {env.pointer_width}")

        if env.is_32_bit:
            header, reference, heap_word = 8, 4, 4
        elif env.narrow_references:
            header, reference, heap_word = 12, 4, 8
        else:
            header = 12 if env.narrow_class_pointers else 16
            reference, heap_word = 8, 8

        # Empty-slot reuse disabled on a post-reform runtime aligns super
        # field blocks on 4 bytes.
        if env.post_reform_layout and not env.use_empty_slots_in_supers:
            block_padding = 4
        else:
            block_padding = reference

        return cls(
            object_header_width=header,
            array_header_width=round_to(header + 4, heap_word),
            reference_width=reference,
            alignment_quantum=env.alignment_quantum,
            superclass_field_block_padding=block_padding,
            contended_padding_width=env.contended_padding_width,
        )

    def describe(self) -> str:
        return (f"header={self.object_header_width} array_header={self.array_header_width} "
                f"reference={self.reference_width} alignment={self.alignment_quantum} "
                f"block_padding={self.superclass_field_block_padding} "
                f"contended_padding={self.contended_padding_width}")
