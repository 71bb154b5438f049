"""Template node tree consumed by the compiler.

A parser (see :mod:`hypebeast.parser`) produces a tuple of these nodes for
one template; the compiler walks it once and throws it away.  All nodes are
frozen dataclasses, so a tree is a plain immutable value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Union


class NodeType(Enum):
    COMMENT = "comment"
    DOCTYPE = "doctype"
    FRAGMENT = "fragment"
    ELEMENT = "element"
    BLOCK = "block"
    TEXT = "text"
    RAW_TEXT = "raw_text"


# Always self-closed, whatever the markup says.
VOID_ELEMENTS: frozenset[str] = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input", "link",
    "meta", "source", "track", "wbr",
})


@dataclass(frozen=True)
class Expression:
    """Reference to a dynamic value: Python expression source text."""

    source: str


@dataclass(frozen=True)
class Attribute:
    key: str
    # str: static literal, Expression: dynamic, None: bare flag attribute
    value: Union[str, Expression, None] = None

    @property
    def is_flag(self) -> bool:
        return self.value is None

    @property
    def is_dynamic(self) -> bool:
        return isinstance(self.value, Expression)


@dataclass(frozen=True)
class Node:
    type: ClassVar[NodeType]


@dataclass(frozen=True)
class Comment(Node):
    type: ClassVar[NodeType] = NodeType.COMMENT
    text: str = ""


@dataclass(frozen=True)
class Doctype(Node):
    type: ClassVar[NodeType] = NodeType.DOCTYPE
    raw: str = ""


@dataclass(frozen=True)
class Fragment(Node):
    type: ClassVar[NodeType] = NodeType.FRAGMENT
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Element(Node):
    type: ClassVar[NodeType] = NodeType.ELEMENT
    name: str = ""
    attributes: tuple[Attribute, ...] = ()
    children: tuple[Node, ...] = ()
    # Closing tag name as written, None when the element was never closed
    close_tag: Optional[str] = None

    @property
    def has_explicit_close_tag(self) -> bool:
        return self.close_tag is not None


@dataclass(frozen=True)
class Block(Node):
    type: ClassVar[NodeType] = NodeType.BLOCK
    expr: Expression = field(default_factory=lambda: Expression(""))


@dataclass(frozen=True)
class Text(Node):
    type: ClassVar[NodeType] = NodeType.TEXT
    value: str = ""


@dataclass(frozen=True)
class RawText(Node):
    type: ClassVar[NodeType] = NodeType.RAW_TEXT
    value: str = ""


# ---------------------------------------------------------------------------
# Name classification
# ---------------------------------------------------------------------------

class NameKind(Enum):
    TAG = "tag"
    COMPONENT = "component"
    UNSUPPORTED = "unsupported"


def classify_name(name: str) -> NameKind:
    """Decide whether an element name is a markup tag or a component call.

    A single identifier starting with an uppercase letter is a component;
    any other single identifier is a tag.  Dotted, dashed or otherwise
    punctuated names are not classified.
    """
    if not name.isidentifier():
        return NameKind.UNSUPPORTED
    if name[0].isupper():
        return NameKind.COMPONENT
    return NameKind.TAG
