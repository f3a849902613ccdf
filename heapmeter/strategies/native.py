from __future__ import annotations

from typing import Any, Callable

from heapmeter.internals.errors import raise_error
from heapmeter.introspection.shapes import shape_of
from heapmeter.layout.spec import LayoutSpecification
from heapmeter.strategies.base import MeterStrategy, StrategyKind, array_size

NativeSizer = Callable[[Any], int]


class RuntimeNativeStrategy(MeterStrategy):
    """Asks the runtime for the size of every object."""

    kind = StrategyKind.RUNTIME_NATIVE

    def __init__(self, sizer: NativeSizer) -> None:
        if sizer is None:
            raise_error("HM0102", strategy=self.kind.value, capability=self.kind.capability)
        self.sizer = sizer

    def measure(self, obj: Any) -> int:
        return self.sizer(obj)


class HybridStrategy(MeterStrategy):
    """Native sizes for instances, the layout formula for arrays.

    Arrays are sized from their length, which avoids a native call for
    each of the (often many) arrays of a graph.
    """

    kind = StrategyKind.HYBRID

    def __init__(self, sizer: NativeSizer, spec: LayoutSpecification) -> None:
        if sizer is None:
            raise_error("HM0102", strategy=self.kind.value, capability=self.kind.capability)
        self.spec = spec
        self.sizer = sizer

    def measure(self, obj: Any) -> int:
        shape = shape_of(obj)
        if shape.is_array:
            return array_size(self.spec, shape)
        return self.sizer(obj)
