"""
Host environment probing.

Determines the facts a layout specification is derived from: the pointer
width of the target, whether references are narrowed, the object
alignment, which field-layout generation the runtime follows and how
false-sharing padding is configured. Facts not observable from the
interpreter default to the values of the running CPython host and can be
overridden through ``HEAPMETER_*`` environment variables or a ``[layout]``
configuration table.
"""
from __future__ import annotations

import dataclasses
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from llvmlite import binding as llvm

from heapmeter.internals.errors import raise_error

LOG = logging.getLogger(__name__)

ENV_PREFIX = "HEAPMETER_"

# Architectures whose pointers are 32 bits wide
_ARCH_32 = {
    'i386', 'i486', 'i586', 'i686', 'x86', 'arm', 'armv6', 'armv7', 'armv7a',
    'thumbv7', 'mips', 'mipsel', 'powerpc', 'ppc', 'riscv32', 'wasm32', 'sparc',
}


def triple_pointer_width(triple: str) -> int:
    """Pointer width in bits implied by the architecture of an LLVM triple.

    Examples:
        x86_64-pc-linux-gnu -> 64
        i686-pc-windows-msvc -> 32
    """
    arch = triple.split('-', 1)[0]
    return 32 if arch in _ARCH_32 else 64


@dataclass(frozen=True)
class Environment:
    """Facts about the runtime whose layout is being modelled."""
    pointer_width: int = 64
    narrow_references: bool = False
    narrow_class_pointers: bool = False
    alignment_quantum: int = 8
    post_reform_layout: bool = True
    use_empty_slots_in_supers: bool = True
    contended_enabled: bool = True
    contended_restricted: bool = True
    contended_tags_accessible: bool = True
    contended_padding_width: int = 128

    @property
    def is_32_bit(self) -> bool:
        return self.pointer_width == 32

    def with_overrides(self, overrides: Mapping[str, Any]) -> "Environment":
        """Return a copy with ``overrides`` applied (keys may use dashes)."""
        changes: dict[str, Any] = {}
        known = {f.name: f for f in dataclasses.fields(self)}
        for key, raw in overrides.items():
            name = key.replace('-', '_')
            if name not in known:
                raise_error("HM0402", option=key)
            changes[name] = _coerce(key, raw, known[name].type)
        return dataclasses.replace(self, **changes)


def _coerce(option: str, raw: Any, annotation: str) -> Any:
    if annotation == "bool":
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str) and raw.strip().lower() in _TRUE:
            return True
        if isinstance(raw, str) and raw.strip().lower() in _FALSE:
            return False
        raise_error("HM0401", option=option, reason=f"expected a boolean, got {raw!r}")
    if isinstance(raw, bool):
        raise_error("HM0401", option=option, reason=f"expected an integer, got {raw!r}")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise_error("HM0401", option=option, reason=f"expected an integer, got {raw!r}")


_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off'}


def environment_overrides(environ: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """Collect ``HEAPMETER_<FIELD>`` variables as environment overrides."""
    if environ is None:
        environ = os.environ
    known = {f.name for f in dataclasses.fields(Environment)}
    overrides: dict[str, str] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in known:
            overrides[name] = value
    return overrides


def probe_environment(
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Environment:
    """Probe the host and apply configuration, then variable, overrides."""
    triple = llvm.get_default_triple()
    pointer_width = triple_pointer_width(triple)
    if (sys.maxsize > 2**32) != (pointer_width == 64):
        # A 32-bit interpreter on a 64-bit target (or the reverse) lays objects
        # out with its own pointer size.
        pointer_width = 64 if sys.maxsize > 2**32 else 32
        LOG.debug("target %s disagrees with interpreter word size, using %d-bit",
                  triple, pointer_width)

    env = Environment(pointer_width=pointer_width)
    if overrides:
        env = env.with_overrides(overrides)
    from_variables = environment_overrides(environ)
    if from_variables:
        env = env.with_overrides(from_variables)

    LOG.debug("probed environment on %s: %s", triple, env)
    return env
