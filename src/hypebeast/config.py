"""Compiler options and their loading from TOML files.

Options can be given directly as a :class:`CompilerOptions` or read from
either the ``[tool.hypebeast]`` table of a ``pyproject.toml`` or the top
level of a ``hypebeast.toml``::

    [tool.hypebeast]
    strategy = "format"        # or "buffer"
    convention = "named"       # or "positional"
    children_field = "children"
    void_elements = ["br", "img"]
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from hypebeast.errors import ConfigError
from hypebeast.nodes import VOID_ELEMENTS

CONFIG_FILENAMES = ("hypebeast.toml", "pyproject.toml")


class Strategy(Enum):
    """How generated code assembles the output string."""

    BUFFER_APPEND = "buffer"
    FORMAT_STRING = "format"


class Convention(Enum):
    """How component inputs are passed to the component callable."""

    POSITIONAL = "positional"
    NAMED = "named"


@dataclass(frozen=True)
class CompilerOptions:
    strategy: Strategy = Strategy.BUFFER_APPEND
    convention: Convention = Convention.POSITIONAL
    children_field: str = "children"
    void_elements: frozenset[str] = field(default=VOID_ELEMENTS)

    def __post_init__(self) -> None:
        if not self.children_field.isidentifier():
            raise ConfigError(
                f"children_field must be an identifier, got {self.children_field!r}"
            )

    def derive(self, **overrides: Any) -> CompilerOptions:
        """Return a copy with selected fields overridden.

        Enum fields also accept their string spelling.
        """
        if "strategy" in overrides:
            overrides["strategy"] = _as_enum(Strategy, overrides["strategy"], name="strategy")
        if "convention" in overrides:
            overrides["convention"] = _as_enum(
                Convention, overrides["convention"], name="convention"
            )
        return replace(self, **overrides)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _as_enum(enum_cls: type[Enum], value: Any, *, name: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ConfigError(f"Expected {name} to be a string.")
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"Unknown {name} {value!r} (expected one of: {choices}).") from None


def _as_str(value: Any, *, name: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"Expected {name} to be a string.")
    return value


def _as_str_set(value: Any, *, name: str) -> frozenset[str]:
    if not isinstance(value, list) or any(not isinstance(x, str) for x in value):
        raise ConfigError(f"Expected {name} to be a list of strings.")
    return frozenset(value)


def options_from_mapping(data: dict[str, Any]) -> CompilerOptions:
    """Build options from a parsed TOML table."""
    known = {"strategy", "convention", "children_field", "void_elements"}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown option(s): {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    if "strategy" in data:
        kwargs["strategy"] = _as_enum(Strategy, data["strategy"], name="strategy")
    if "convention" in data:
        kwargs["convention"] = _as_enum(Convention, data["convention"], name="convention")
    if "children_field" in data:
        kwargs["children_field"] = _as_str(data["children_field"], name="children_field")
    if "void_elements" in data:
        kwargs["void_elements"] = _as_str_set(data["void_elements"], name="void_elements")
    return CompilerOptions(**kwargs)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def find_config(start: Path) -> Optional[Path]:
    """Walk upward from *start* looking for a hypebeast configuration file.

    A ``pyproject.toml`` only counts when it has a ``[tool.hypebeast]``
    table.
    """
    cur = start.parent if start.is_file() else start
    cur = cur.resolve()
    while True:
        for filename in CONFIG_FILENAMES:
            candidate = cur / filename
            if candidate.is_file() and _has_options(candidate):
                return candidate
        if cur.parent == cur:
            return None
        cur = cur.parent


def _has_options(path: Path) -> bool:
    if path.name != "pyproject.toml":
        return True
    try:
        return "hypebeast" in _read_toml(path).get("tool", {})
    except ConfigError:
        return False


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc


def load_options(path: Path) -> CompilerOptions:
    """Read options from *path* (``pyproject.toml`` or ``hypebeast.toml``)."""
    data = _read_toml(path)
    if path.name == "pyproject.toml":
        table = data.get("tool", {}).get("hypebeast", {})
    else:
        table = data
    if not isinstance(table, dict):
        raise ConfigError("Expected [tool.hypebeast] to be a table.")
    return options_from_mapping(table)
