"""
Field kinds and their storage widths.

A slot is a reference unless its annotation carries a FieldKind. The
width of each primitive kind is taken from the LLVM IR type that stores it,
so the table below is the single source of truth for primitive sizes.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Optional

from llvmlite import ir


class FieldKind(Enum):
    BOOLEAN = "boolean"
    BYTE = "byte"
    CHAR = "char"
    SHORT = "short"
    INT = "int"
    FLOAT = "float"
    LONG = "long"
    DOUBLE = "double"
    REFERENCE = "ref"

    @property
    def is_primitive(self) -> bool:
        return self is not FieldKind.REFERENCE

    @classmethod
    def from_keyword(cls, keyword: str) -> "FieldKind":
        """Map a declaration keyword to a kind; unknown keywords are references."""
        try:
            return cls(keyword)
        except ValueError:
            return cls.REFERENCE


# Storage type of every primitive kind. Booleans occupy a whole byte.
IR_TYPES: dict[FieldKind, ir.Type] = {
    FieldKind.BOOLEAN: ir.IntType(8),
    FieldKind.BYTE: ir.IntType(8),
    FieldKind.CHAR: ir.IntType(16),
    FieldKind.SHORT: ir.IntType(16),
    FieldKind.INT: ir.IntType(32),
    FieldKind.FLOAT: ir.FloatType(),
    FieldKind.LONG: ir.IntType(64),
    FieldKind.DOUBLE: ir.DoubleType(),
}


def ir_type_size(llvm_type: ir.Type) -> int:
    """Size in bytes of a scalar IR type."""
    if isinstance(llvm_type, ir.IntType):
        return llvm_type.width // 8
    if isinstance(llvm_type, ir.FloatType):
        return 4
    if isinstance(llvm_type, ir.DoubleType):
        return 8
    raise TypeError(f"no storage width for IR type {llvm_type}")


_PRIMITIVE_WIDTHS: dict[FieldKind, int] = {
    kind: ir_type_size(llvm_type) for kind, llvm_type in IR_TYPES.items()
}


def field_width(kind: FieldKind, reference_width: int) -> int:
    """Bytes occupied by a field of ``kind``."""
    if kind is FieldKind.REFERENCE:
        return reference_width
    return _PRIMITIVE_WIDTHS[kind]


def kind_of(metadata: tuple) -> Optional[FieldKind]:
    """First FieldKind found in ``Annotated`` metadata, if any."""
    for item in metadata:
        if isinstance(item, FieldKind):
            return item
    return None


# Annotation aliases for slots: ``count: Int``
Boolean = Annotated[bool, FieldKind.BOOLEAN]
Byte = Annotated[int, FieldKind.BYTE]
Char = Annotated[str, FieldKind.CHAR]
Short = Annotated[int, FieldKind.SHORT]
Int = Annotated[int, FieldKind.INT]
Float = Annotated[float, FieldKind.FLOAT]
Long = Annotated[int, FieldKind.LONG]
Double = Annotated[float, FieldKind.DOUBLE]
