"""
Measurement listeners.

This package contains:
- base: the MeterListener hooks and the no-op default
- tree_printer: a listener rendering the measured object tree
"""
from heapmeter.listeners.base import (
    NOOP_LISTENER,
    ListenerFactory,
    MeterListener,
    NoopListener,
    noop_factory,
)
from heapmeter.listeners.tree_printer import TreePrinter

__all__ = [
    'MeterListener', 'NoopListener', 'NOOP_LISTENER', 'ListenerFactory', 'noop_factory',
    'TreePrinter',
]
