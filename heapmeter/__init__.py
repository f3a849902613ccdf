"""heapmeter - shallow and deep memory measurement of Python object graphs.

The public surface lives in this module:
- Meter: the facade that measures objects (shallow, deep, arrays)
- MeterConfig / load_config: configuration surface
- Field-kind and annotation markers used to describe measured classes
"""
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("heapmeter")
    __dev__ = False
except PackageNotFoundError:
    # Development mode - read from pyproject.toml
    import tomllib
    from pathlib import Path
    try:
        pyproject = Path(__file__).parent.parent / "pyproject.toml"
        with open(pyproject, "rb") as f:
            __version__ = tomllib.load(f).get("project", {}).get("version", "unknown")
    except (OSError, tomllib.TOMLDecodeError):
        __version__ = "unknown"
    __dev__ = True

from heapmeter.config import BufferMode, MeterConfig, load_config
from heapmeter.internals.errors import (
    CapabilityUnavailableError,
    FieldInaccessibleError,
    InvalidConfigurationError,
    MeterError,
    UnclassifiableFieldError,
)
from heapmeter.layout.kinds import (
    Boolean, Byte, Char, Double, FieldKind, Float, Int, Long, Short,
)
from heapmeter.layout.probe import Environment, probe_environment
from heapmeter.layout.spec import LayoutSpecification
from heapmeter.listeners import MeterListener, NoopListener, TreePrinter
from heapmeter.markers import Contended, Outer, Unmetered
from heapmeter.meter import Meter
from heapmeter.strategies import StrategyKind
from heapmeter.traversal.stack import Measurable, MeasurementStack

__all__ = [
    '__version__',
    # Facade and configuration
    'Meter', 'MeterConfig', 'BufferMode', 'StrategyKind', 'load_config',
    # Layout model
    'Environment', 'probe_environment', 'LayoutSpecification',
    # Field kinds and markers
    'FieldKind', 'Boolean', 'Byte', 'Char', 'Short', 'Int', 'Float', 'Long', 'Double',
    'Contended', 'Outer', 'Unmetered',
    # Traversal extension points
    'Measurable', 'MeasurementStack', 'MeterListener', 'NoopListener', 'TreePrinter',
    # Errors
    'MeterError', 'CapabilityUnavailableError', 'FieldInaccessibleError',
    'UnclassifiableFieldError', 'InvalidConfigurationError',
]
