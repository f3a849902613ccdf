"""Strategy order validation and capability-driven selection."""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from heapmeter.internals.errors import raise_error
from heapmeter.introspection.accessors import OffsetAccessor
from heapmeter.introspection.introspector import FieldIntrospector
from heapmeter.layout.contended import ContendedPadding
from heapmeter.layout.policies import LayoutPolicy
from heapmeter.strategies.base import MeterStrategy, StrategyKind
from heapmeter.strategies.computed import LayoutComputedStrategy
from heapmeter.strategies.native import HybridStrategy, NativeSizer, RuntimeNativeStrategy
from heapmeter.strategies.offsets import OffsetProbingStrategy

LOG = logging.getLogger(__name__)

DEFAULT_ORDER = (StrategyKind.HYBRID, StrategyKind.OFFSET_PROBING, StrategyKind.LAYOUT_COMPUTED)


def parse_strategy_order(names: Iterable[str | StrategyKind]) -> tuple[StrategyKind, ...]:
    """Turn names into a validated strategy order."""
    order = []
    for name in names:
        try:
            order.append(StrategyKind(name))
        except ValueError:
            choices = ", ".join(k.value for k in StrategyKind)
            raise_error("HM0401", option="strategy-order",
                        reason=f"unknown strategy '{name}' (choose from {choices})")
    validate_strategy_order(order)
    return tuple(order)


def validate_strategy_order(order: Sequence[StrategyKind]) -> None:
    """Reject empty orders, duplicates and orders that increase in fidelity."""
    if not order:
        raise_error("HM0405")
    seen = set()
    for kind in order:
        if kind in seen:
            raise_error("HM0404", strategy=kind.value)
        seen.add(kind)
    for earlier, later in zip(order, order[1:]):
        if later.fidelity > earlier.fidelity:
            raise_error("HM0403", earlier=earlier.value, earlier_rank=earlier.fidelity,
                        later=later.value, later_rank=later.fidelity)


def select_strategy(
    order: Sequence[StrategyKind],
    policy: LayoutPolicy,
    introspector: FieldIntrospector,
    padding: ContendedPadding,
    native_sizer: Optional[NativeSizer] = None,
    offset_accessor: Optional[OffsetAccessor] = None,
    post_reform: bool = True,
) -> MeterStrategy:
    """First strategy of ``order`` whose capability the host provides.

    Raises:
        CapabilityUnavailableError: when no strategy of the order can run.
    """
    validate_strategy_order(order)
    computed = LayoutComputedStrategy(policy, introspector)
    missing = []
    for kind in order:
        if kind is StrategyKind.LAYOUT_COMPUTED:
            LOG.warning("sizes are estimated from the %s layout model (%s); "
                        "they may differ from what the runtime allocates",
                        policy.name, policy.spec.describe())
            return computed
        if kind is StrategyKind.OFFSET_PROBING:
            if offset_accessor is not None and offset_accessor.describes(policy.spec):
                return OffsetProbingStrategy(policy.spec, offset_accessor, introspector, padding,
                                             computed, post_reform=post_reform)
            if offset_accessor is not None:
                LOG.info("the %s accessor does not lay objects out as %s; not probing offsets",
                         offset_accessor.name, policy.spec.describe())
        elif native_sizer is not None:
            if kind is StrategyKind.RUNTIME_NATIVE:
                return RuntimeNativeStrategy(native_sizer)
            return HybridStrategy(native_sizer, policy.spec)
        LOG.debug("strategy %s unavailable: needs %s", kind.value, kind.capability)
        missing.append(kind.capability)

    raise_error("HM0101", order=", ".join(k.value for k in order),
                missing=" and ".join(dict.fromkeys(missing)))
