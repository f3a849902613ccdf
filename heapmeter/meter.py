"""
The Meter facade.

A Meter is built once (probing the host, deriving the layout
specification, choosing a strategy and building its filters) and can then
be shared freely: every measurement keeps its state local to the call.

    >>> meter = Meter(native_sizer=sys.getsizeof)
    >>> meter.measure_deep(graph)
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from heapmeter.config import MeterConfig
from heapmeter.filters import Filters, build_filters
from heapmeter.introspection.accessors import DirectAccessor, OffsetAccessor, host_offset_accessor
from heapmeter.introspection.introspector import FieldIntrospector
from heapmeter.introspection.shapes import is_array
from heapmeter.layout.contended import ContendedPadding
from heapmeter.layout.policies import LayoutPolicy, policy_for
from heapmeter.layout.probe import Environment, probe_environment
from heapmeter.layout.spec import LayoutSpecification
from heapmeter.listeners.base import ListenerFactory, noop_factory
from heapmeter.listeners.tree_printer import TreePrinter
from heapmeter.strategies.base import MeterStrategy
from heapmeter.strategies.native import NativeSizer
from heapmeter.strategies.selection import select_strategy
from heapmeter.traversal.traverser import GraphTraverser

LOG = logging.getLogger(__name__)

# Default for ``offset_accessor``: use the host's accessor when it has one
HOST = object()


class Meter:
    def __init__(
        self,
        config: Optional[MeterConfig] = None,
        *,
        environment: Optional[Environment] = None,
        spec: Optional[LayoutSpecification] = None,
        native_sizer: Optional[NativeSizer] = None,
        offset_accessor: Any = HOST,
        listener_factory: Optional[ListenerFactory] = None,
    ) -> None:
        self.config = config if config is not None else MeterConfig()
        if environment is None:
            environment = probe_environment(self.config.layout)
        self.environment = environment
        self.spec = spec if spec is not None else LayoutSpecification.from_environment(environment)

        if environment.post_reform_layout and not environment.use_empty_slots_in_supers:
            LOG.warning("empty-slot reuse is disabled on a post-reform layout; "
                        "instance sizes may not be reproduced exactly")

        if offset_accessor is HOST:
            offset_accessor = host_offset_accessor()
        self.offset_accessor: Optional[OffsetAccessor] = offset_accessor

        self.introspector = FieldIntrospector(DirectAccessor(), offset_accessor)
        self.padding = ContendedPadding(
            padding_width=self.spec.contended_padding_width,
            enabled=environment.contended_enabled,
            restricted=environment.contended_restricted,
            tags_accessible=environment.contended_tags_accessible,
        )
        self.policy: LayoutPolicy = policy_for(environment, self.spec, self.padding)
        self.strategy: MeterStrategy = select_strategy(
            self.config.strategy_order,
            self.policy,
            self.introspector,
            self.padding,
            native_sizer=native_sizer,
            offset_accessor=offset_accessor,
            post_reform=environment.post_reform_layout,
        )
        self.filters: Filters = build_filters(
            ignore_known_singletons=self.config.ignore_known_singletons,
            respect_unmetered=self.config.respect_unmetered_annotation,
            ignore_outer_reference=self.config.ignore_outer_reference,
            ignore_non_owning_references=self.config.ignore_non_owning_references,
        )

        if listener_factory is None:
            if self.config.debug_depth is not None:
                listener_factory = TreePrinter.factory(self.config.debug_depth)
            else:
                listener_factory = noop_factory
        self.traverser = GraphTraverser(
            self.strategy,
            self.introspector,
            self.filters,
            buffer_mode=self.config.shared_buffer_mode,
            listener_factory=listener_factory,
        )
        LOG.info("heapmeter using the %s strategy with the %s layout (%s)",
                 self.strategy.kind.value, self.policy.name, self.spec.describe())

    def measure(self, obj: Any) -> int:
        """Shallow size of ``obj``; 0 for ``None``."""
        if obj is None:
            return 0
        return self.strategy.measure(obj)

    def measure_deep(self, obj: Any) -> int:
        """Size of ``obj`` and of everything it transitively references.

        Every object is counted once however many paths reach it. Returns 0
        for ``None`` and for objects whose class is filtered out.

        Raises:
            FieldInaccessibleError: when a reference field cannot be read.
            UnclassifiableFieldError: when a contention group is unknown.
        """
        return self.traverser.measure_deep(obj)

    def measure_array(self, array: Any) -> int:
        """Shallow size of a primitive or reference array."""
        if not is_array(array):
            raise TypeError(f"{type(array).__qualname__} is not an array type")
        return self.strategy.measure(array)

    def __repr__(self) -> str:
        return f"Meter(strategy={self.strategy.kind.value}, policy={self.policy.name})"
