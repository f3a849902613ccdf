"""
Shallow-size strategies.

This package contains:
- base: the strategy interface, strategy kinds and fidelity ranks
- native: runtime-native and hybrid strategies around a native sizer
- offsets: the offset-probing strategy
- computed: the layout-computed strategy
- cache: per-type layout cache
- selection: strategy order validation and capability-driven selection
"""
from heapmeter.strategies.base import LayoutBasedStrategy, MeterStrategy, StrategyKind
from heapmeter.strategies.cache import TypeLayoutCache
from heapmeter.strategies.computed import LayoutComputedStrategy
from heapmeter.strategies.native import HybridStrategy, RuntimeNativeStrategy
from heapmeter.strategies.offsets import OffsetProbingStrategy
from heapmeter.strategies.selection import (
    DEFAULT_ORDER,
    parse_strategy_order,
    select_strategy,
    validate_strategy_order,
)

__all__ = [
    'MeterStrategy', 'LayoutBasedStrategy', 'StrategyKind',
    'RuntimeNativeStrategy', 'HybridStrategy', 'OffsetProbingStrategy', 'LayoutComputedStrategy',
    'TypeLayoutCache',
    'DEFAULT_ORDER', 'parse_strategy_order', 'validate_strategy_order', 'select_strategy',
]
