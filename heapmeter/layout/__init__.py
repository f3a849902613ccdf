"""
Memory layout model.

This package contains:
- kinds: primitive field kinds and their widths
- probe: host environment probing and overrides
- spec: the immutable LayoutSpecification
- contended: false-sharing padding rules
- policies: pre-reform, post-reform and empty-slots-disabled field layouts

Only the modules without introspection dependencies are re-exported here;
contended and policies are imported by their full path.
"""
from heapmeter.layout.kinds import FieldKind, field_width
from heapmeter.layout.probe import Environment, probe_environment, triple_pointer_width
from heapmeter.layout.spec import LayoutSpecification, round_to

__all__ = [
    'FieldKind', 'field_width',
    'Environment', 'probe_environment', 'triple_pointer_width',
    'LayoutSpecification', 'round_to',
]
