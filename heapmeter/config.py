"""Meter configuration (``heapmeter.toml`` or ``[tool.heapmeter]``) loading and validation."""
from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

from heapmeter.internals.errors import raise_error
from heapmeter.strategies.base import StrategyKind
from heapmeter.strategies.selection import DEFAULT_ORDER, parse_strategy_order

CONFIG_NAME = "heapmeter.toml"
PYPROJECT_NAME = "pyproject.toml"


class BufferMode(str, Enum):
    NORMAL = "normal"
    OMIT_SHARED_OVERHEAD = "omit-shared-overhead"
    SHALLOW_ONLY = "shallow-only"
    HEAP_ONLY_NO_SLICE = "heap-only-no-slice"


@dataclass(frozen=True)
class MeterConfig:
    strategy_order: tuple[StrategyKind, ...] = DEFAULT_ORDER
    ignore_known_singletons: bool = True
    ignore_outer_reference: bool = False
    ignore_non_owning_references: bool = False
    shared_buffer_mode: BufferMode = BufferMode.NORMAL
    respect_unmetered_annotation: bool = True
    debug_depth: Optional[int] = None
    # Environment overrides applied on top of the probed host values
    layout: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        object.__setattr__(self, "strategy_order", parse_strategy_order(self.strategy_order))
        try:
            object.__setattr__(self, "shared_buffer_mode", BufferMode(self.shared_buffer_mode))
        except ValueError:
            choices = ", ".join(m.value for m in BufferMode)
            raise_error("HM0401", option="shared-buffer-mode",
                        reason=f"'{self.shared_buffer_mode}' is not one of {choices}")
        for name in ("ignore_known_singletons", "ignore_outer_reference",
                     "ignore_non_owning_references", "respect_unmetered_annotation"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise_error("HM0401", option=name.replace("_", "-"),
                            reason=f"expected a boolean, got {value!r}")
        if self.debug_depth is not None and (
                isinstance(self.debug_depth, bool) or not isinstance(self.debug_depth, int)
                or self.debug_depth <= 0):
            raise_error("HM0401", option="debug-depth",
                        reason=f"expected a positive integer, got {self.debug_depth!r}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MeterConfig":
        """Build a configuration from hyphenated keys, as found in TOML."""
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = key.replace("-", "_")
            if name not in _FIELDS:
                raise_error("HM0402", option=key)
            if name == "strategy_order":
                if isinstance(value, str):
                    value = [part.strip() for part in value.split(",") if part.strip()]
                value = tuple(value)
            elif name == "layout" and not isinstance(value, Mapping):
                raise_error("HM0401", option=key, reason="expected a table")
            kwargs[name] = value
        return cls(**kwargs)


_FIELDS = {f.name for f in fields(MeterConfig)}


def load_config(path: Path | str | None = None) -> MeterConfig:
    """Load the configuration from ``path``.

    ``path`` may name a ``heapmeter.toml`` (settings at top level), a
    ``pyproject.toml`` (settings under ``[tool.heapmeter]``) or a directory
    holding either; the default is the current directory. A directory with
    no configuration yields the defaults.
    """
    if path is None:
        path = Path.cwd()
    path = Path(path)
    if path.is_dir():
        for name in (CONFIG_NAME, PYPROJECT_NAME):
            if (path / name).exists():
                path = path / name
                break
        else:
            return MeterConfig()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise_error("HM0407", path=str(path), reason=str(e))

    if path.name == PYPROJECT_NAME:
        data = data.get("tool", {}).get("heapmeter", {})
    return MeterConfig.from_mapping(data)
