# heapmeter/internals/errors.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, NoReturn, Type


class Category(str, Enum):
    CAPABILITY = "capability"
    ACCESS     = "access"
    LAYOUT     = "layout"
    CONFIG     = "config"


@dataclass(frozen=True)
class ErrorMessage:
    code: str
    text: str
    category: Category
    doc: str = ""


class MeterError(Exception):
    """Base class of every error raised by heapmeter.

    Carries the catalogue code so callers can match on it without parsing
    the message.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code


class CapabilityUnavailableError(MeterError):
    """No configured strategy has its host capability available."""


class FieldInaccessibleError(MeterError):
    """A reference field could not be read through any access path."""


class UnclassifiableFieldError(MeterError):
    """A contended tag could not be determined for a field."""


class InvalidConfigurationError(MeterError, ValueError):
    """Configuration or layout values violate a documented rule."""


_EXCEPTIONS: Dict[Category, Type[MeterError]] = {
    Category.CAPABILITY: CapabilityUnavailableError,
    Category.ACCESS: FieldInaccessibleError,
    Category.LAYOUT: UnclassifiableFieldError,
    Category.CONFIG: InvalidConfigurationError,
}

REGISTRY: Dict[str, ErrorMessage] = {}

class _ErrorCatalog:
    def __init__(self, backing: Dict[str, ErrorMessage]) -> None:
        self._registry = backing

    def __getattr__(self, name: str) -> ErrorMessage:
        try:
            return self._registry[name]
        except KeyError as e:
            raise AttributeError(name) from e

    def __getitem__(self, code: str) -> ErrorMessage:
        return self._registry[code]


ERR = _ErrorCatalog(REGISTRY)

def make_error(code: str, **kwargs) -> MeterError:
    """Build the exception bound to the category of ``code``."""
    msg = _get(code)
    return _EXCEPTIONS[msg.category](code, _fmt(code, **kwargs))

def raise_error(code: str, **kwargs) -> NoReturn:
    """Raise the exception for a catalogue code.

    Args:
        code: Error code (e.g., "HM0401")
        **kwargs: Format parameters for the error message

    Raises:
        MeterError: the subclass bound to the code's category
    """
    raise make_error(code, **kwargs)


#
# --- Helpers
#

def _add(msg: ErrorMessage) -> None:
    if msg.code in REGISTRY:
        raise ValueError(f"duplicate error code {REGISTRY[msg.code]} in {msg}")
    REGISTRY[msg.code] = msg

def _get(code: str) -> ErrorMessage:
    try:
        return REGISTRY[code]
    except KeyError:
        raise KeyError(f"unknown error code: {code}")

def _fmt(code: str, **kwargs) -> str:
    msg = _get(code)
    try:
        return msg.text.format(**kwargs)
    except KeyError as key_error:
        missing = key_error.args[0]
        raise KeyError(f"missing text key '{missing}' for {code} "
                       f"(needed by: {msg.text!r})") from None

#
# --- Registry population
#

# Host capabilities - HM01xx range
_add(ErrorMessage("HM0101",
    "no measurement strategy available from {order}: missing {missing}",
    Category.CAPABILITY, "Every strategy of the configured order needs a capability the host lacks."))

_add(ErrorMessage("HM0102",
    "the {strategy} strategy needs {capability}",
    Category.CAPABILITY, "A strategy was constructed without the capability it wraps."))

# Field access - HM02xx range
_add(ErrorMessage("HM0201",
    "cannot read field '{field}' of {owner}: {reason}",
    Category.ACCESS, "Neither direct nor offset-based access could read a reference field."))

# Layout classification - HM03xx range
_add(ErrorMessage("HM0301",
    "cannot classify field '{field}' of {owner}: contended tag is not readable",
    Category.LAYOUT, "The contention group of a field is unknown and the class has no trusted tag."))

# Configuration - HM04xx range
_add(ErrorMessage("HM0401",
    "invalid value for '{option}': {reason}",
    Category.CONFIG, "An option has a value outside its documented domain."))

_add(ErrorMessage("HM0402",
    "unknown configuration key '{option}'",
    Category.CONFIG, "The configuration surface does not define this key."))

_add(ErrorMessage("HM0403",
    "strategy '{later}' (fidelity {later_rank}) cannot follow '{earlier}' (fidelity {earlier_rank})",
    Category.CONFIG, "A strategy order must never increase in fidelity."))

_add(ErrorMessage("HM0404",
    "strategy order lists '{strategy}' more than once",
    Category.CONFIG, "Each strategy may appear at most once in a strategy order."))

_add(ErrorMessage("HM0405",
    "strategy order must not be empty",
    Category.CONFIG, "At least one strategy is needed to measure anything."))

_add(ErrorMessage("HM0406",
    "layout specification field '{field}' is invalid: {reason}",
    Category.CONFIG, "Layout widths must be positive and the alignment a power of two no smaller than a reference."))

_add(ErrorMessage("HM0407",
    "cannot read configuration file '{path}': {reason}",
    Category.CONFIG, "The configuration file is missing or is not valid TOML."))
