from __future__ import annotations

from heapmeter.introspection.introspector import FieldIntrospector
from heapmeter.layout.policies import LayoutPolicy
from heapmeter.strategies.base import LayoutBasedStrategy, StrategyKind
from heapmeter.strategies.cache import TypeLayoutCache


class LayoutComputedStrategy(LayoutBasedStrategy):
    """Sizes instances from their declared fields and a layout policy."""

    kind = StrategyKind.LAYOUT_COMPUTED

    def __init__(self, policy: LayoutPolicy, introspector: FieldIntrospector,
                 cache: TypeLayoutCache[int] | None = None) -> None:
        super().__init__(policy.spec)
        self.policy = policy
        self.introspector = introspector
        self.cache = cache if cache is not None else TypeLayoutCache()

    def measure_instance(self, cls: type) -> int:
        return self.cache.get(cls, self._compute)

    def _compute(self, cls: type) -> int:
        return self.policy.instance_size(self.introspector.class_blocks(cls))
