"""
Object graph traversal.

This package contains:
- visited: identity set of the objects already scheduled
- stack: the pending-object stack and the Measurable protocol
- traverser: the deep measurement loop
"""
from heapmeter.traversal.stack import Measurable, MeasurementStack
from heapmeter.traversal.traverser import GraphTraverser
from heapmeter.traversal.visited import VisitedSet

__all__ = ['VisitedSet', 'MeasurementStack', 'Measurable', 'GraphTraverser']
