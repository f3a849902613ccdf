"""
Object and class introspection.

This package contains:
- fields: declared instance fields of a class and the builtin field registry
- accessors: direct (descriptor) and offset-based field readers
- shapes: classification of objects into instances, arrays and buffers
- introspector: hierarchy walk and field reading with accessor fallback
"""
from heapmeter.introspection.accessors import (
    CPythonSlotAccessor,
    DirectAccessor,
    FieldAccessDenied,
    FieldAccessor,
    OffsetAccessor,
    host_offset_accessor,
)
from heapmeter.introspection.fields import (
    BUILTIN_FIELDS,
    REFERENT_FIELD,
    Field,
    FieldStorage,
    declared_fields,
    hierarchy,
)
from heapmeter.introspection.introspector import FieldIntrospector
from heapmeter.introspection.shapes import Shape, ShapeKind, shape_of

__all__ = [
    'Field', 'FieldStorage', 'BUILTIN_FIELDS', 'REFERENT_FIELD', 'declared_fields', 'hierarchy',
    'FieldAccessor', 'DirectAccessor', 'OffsetAccessor', 'CPythonSlotAccessor',
    'FieldAccessDenied', 'host_offset_accessor',
    'FieldIntrospector',
    'Shape', 'ShapeKind', 'shape_of',
]
