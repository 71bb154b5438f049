"""Render capability and HTML escaping runtime.

Every value that ends up in template output goes through :func:`render_into`,
which appends the value's HTML text to a *sink* (a plain ``list[str]`` used
as a growable buffer).  The rules are:

* ``str`` is escaped with :func:`escape` (five special characters);
* ``int`` and ``float`` are formatted as decimals and never escaped;
* :class:`Component` (already rendered HTML), any :class:`Renderable` and any
  object implementing ``__html__`` are appended verbatim;
* ``list``, ``tuple`` and iterators render each item in order;
* anything else raises :class:`~hypebeast.errors.UnsupportedValue`.

New value kinds are added with :func:`register`, without touching this
module.
"""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal
from functools import singledispatch
from typing import Any

from hypebeast.errors import UnsupportedValue

# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------

_SPECIAL_RE = re.compile(r"[<>&\"']")

_ESCAPE_TABLE = str.maketrans({
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    '"': "&quot;",
    "'": "&#39;",
})


def escape(text: str) -> str:
    """Escape the five HTML-special characters in *text*.

    Returns *text* itself (no copy) when nothing needs escaping.
    """
    match = _SPECIAL_RE.search(text)
    if match is None:
        return text
    start = match.start()
    return text[:start] + text[start:].translate(_ESCAPE_TABLE)


# ---------------------------------------------------------------------------
# Numeric formatting
# ---------------------------------------------------------------------------

def format_int(value: int) -> str:
    # int.__repr__ ignores IntEnum / int subclass __str__ overrides
    return int.__repr__(value)


def format_float(value: float) -> str:
    """Format *value* as plain decimal text.

    Integral values drop the trailing ``.0`` and exponent notation is
    expanded, so ``1.0`` renders as ``1`` and ``1e20`` as
    ``100000000000000000000``.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = float.__repr__(value)
    if "e" in text:
        text = format(Decimal(text), "f")
    if text.endswith(".0"):
        text = text[:-2]
    return text


# ---------------------------------------------------------------------------
# Renderable values
# ---------------------------------------------------------------------------

class Renderable(ABC):
    """Base class for user-defined values that know how to render themselves."""

    @abstractmethod
    def render(self, sink: list[str]) -> None:
        """Append this value's HTML to *sink*."""

    def render_to_string(self) -> str:
        sink: list[str] = []
        self.render(sink)
        return "".join(sink)

    def __html__(self) -> str:
        return self.render_to_string()


@dataclass(frozen=True)
class Component(Renderable):
    """An already rendered piece of trusted HTML.

    This is what compiled templates return.  It is appended verbatim when
    rendered, which is how templates nest inside each other without being
    escaped twice.
    """

    html: str = ""

    def render(self, sink: list[str]) -> None:
        sink.append(self.html)

    def render_to_string(self) -> str:
        return self.html

    def __str__(self) -> str:
        return self.html

    def __html__(self) -> str:
        return self.html


def raw(text: str) -> Component:
    """Mark *text* as trusted HTML so it is emitted without escaping."""
    return Component(text)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

@singledispatch
def _render_value(value: Any, sink: list[str]) -> None:
    raise UnsupportedValue(
        f"cannot render value of type {type(value).__name__!r}"
    )


@_render_value.register
def _(value: str, sink: list[str]) -> None:
    sink.append(escape(value))


@_render_value.register
def _(value: bool, sink: list[str]) -> None:
    raise UnsupportedValue("cannot render value of type 'bool'")


@_render_value.register
def _(value: int, sink: list[str]) -> None:
    sink.append(format_int(value))


@_render_value.register
def _(value: float, sink: list[str]) -> None:
    sink.append(format_float(value))


@_render_value.register(list)
@_render_value.register(tuple)
@_render_value.register(Iterator)
def _(value: Any, sink: list[str]) -> None:
    for item in value:
        render_into(item, sink)


register = _render_value.register


def render_into(value: Any, sink: list[str]) -> None:
    """Append the HTML representation of *value* to *sink*."""
    if isinstance(value, Renderable):
        value.render(sink)
        return
    html = getattr(value, "__html__", None)
    if html is not None:
        sink.append(html())
        return
    _render_value(value, sink)


def render_to_string(value: Any) -> str:
    """Return the HTML representation of *value* as a new string."""
    if type(value) is str:
        return escape(value)
    sink: list[str] = []
    render_into(value, sink)
    return "".join(sink)
