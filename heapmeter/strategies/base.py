"""Shallow-size strategy interface and strategy kinds."""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from heapmeter.introspection.shapes import Shape, ShapeKind, shape_of
from heapmeter.layout.spec import LayoutSpecification


class StrategyKind(str, Enum):
    RUNTIME_NATIVE = "runtime-native"
    HYBRID = "hybrid"
    OFFSET_PROBING = "offset-probing"
    LAYOUT_COMPUTED = "layout-computed"

    @property
    def fidelity(self) -> int:
        return _FIDELITY[self]

    @property
    def capability(self) -> str:
        return _CAPABILITY[self]


_FIDELITY = {
    StrategyKind.RUNTIME_NATIVE: 3,
    StrategyKind.HYBRID: 3,
    StrategyKind.OFFSET_PROBING: 2,
    StrategyKind.LAYOUT_COMPUTED: 1,
}

_CAPABILITY = {
    StrategyKind.RUNTIME_NATIVE: "a native sizer",
    StrategyKind.HYBRID: "a native sizer",
    StrategyKind.OFFSET_PROBING: "an offset accessor",
    StrategyKind.LAYOUT_COMPUTED: "nothing",
}


class MeterStrategy(ABC):
    """Computes the shallow size of one object."""

    kind: StrategyKind

    @abstractmethod
    def measure(self, obj: Any) -> int:
        """Shallow size of ``obj`` in bytes."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value})"


def array_size(spec: LayoutSpecification, shape: Shape) -> int:
    """Size of an array of the given shape under ``spec``."""
    width = spec.reference_width if shape.kind is ShapeKind.REFERENCE_ARRAY else shape.element_width
    return spec.array_size(shape.length, width)


class LayoutBasedStrategy(MeterStrategy):
    """Strategy that sizes arrays with the layout formula.

    Subclasses only provide the size of plain instances.
    """

    def __init__(self, spec: LayoutSpecification) -> None:
        self.spec = spec

    def measure(self, obj: Any) -> int:
        shape = shape_of(obj)
        if shape.is_array:
            return self.array_size(shape)
        return self.measure_instance(type(obj))

    def array_size(self, shape: Shape) -> int:
        return array_size(self.spec, shape)

    @abstractmethod
    def measure_instance(self, cls: type) -> int:
        """Shallow size of an instance of ``cls``."""
