"""Tree walk that turns a node tree into the compiler's intermediate form.

The intermediate representation is a flat list of *segments*: a
:class:`Literal` holds static HTML that is already escaped, a
:class:`Dynamic` holds a value that is only known at render time.  Component
invocations become a single :class:`Dynamic` wrapping a
:class:`ComponentCall`, whose children are compiled to their own nested
segment list.

After the walk, :func:`fuse` merges neighbouring literals so that the code
generator emits one append per run of static text.
"""

from __future__ import annotations

import keyword
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

from hypebeast.errors import UnsupportedConstruct
from hypebeast.nodes import (
    VOID_ELEMENTS,
    Attribute,
    Block,
    Comment,
    Doctype,
    Element,
    Expression,
    Fragment,
    NameKind,
    Node,
    RawText,
    Text,
    classify_name,
)
from hypebeast.runtime import escape

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Segments
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class ComponentInput:
    """One named input of a component call, as Python expression source."""

    name: str
    source: str


@dataclass(frozen=True)
class ComponentCall:
    name: str
    inputs: tuple[ComponentInput, ...] = ()
    # None when the invocation has no children at all
    children: Optional[tuple[Segment, ...]] = None

    @property
    def static_children(self) -> Optional[str]:
        """Children text when they fused to one literal, else ``None``."""
        if self.children is not None and len(self.children) == 1:
            only = self.children[0]
            if isinstance(only, Literal):
                return only.text
        return None


@dataclass(frozen=True)
class Dynamic:
    value: Union[Expression, ComponentCall]


Segment = Union[Literal, Dynamic]


def fuse(segments: Iterable[Segment]) -> list[Segment]:
    """Merge adjacent literals and drop empty ones."""
    fused: list[Segment] = []
    pending: list[str] = []
    for segment in segments:
        if isinstance(segment, Literal):
            if segment.text:
                pending.append(segment.text)
            continue
        if pending:
            fused.append(Literal("".join(pending)))
            pending = []
        fused.append(segment)
    if pending:
        fused.append(Literal("".join(pending)))
    return fused


def static_length(segments: Sequence[Segment]) -> int:
    """Total length of the literal text in *segments*."""
    return sum(len(s.text) for s in segments if isinstance(s, Literal))


# ---------------------------------------------------------------------------
# Emitter
# ---------------------------------------------------------------------------

class Emitter:
    """Walk nodes in document order and emit segments."""

    def __init__(self, void_elements: frozenset[str] = VOID_ELEMENTS) -> None:
        self.void_elements = void_elements

    # -- public API ---------------------------------------------------------

    def emit(self, nodes: Iterable[Node]) -> list[Segment]:
        """Return the fused segment list for *nodes*."""
        out: list[Segment] = []
        for node in nodes:
            self._emit_node(node, out)
        return fuse(out)

    # -- dispatch -----------------------------------------------------------

    def _emit_node(self, node: Node, out: list[Segment]) -> None:
        handler = getattr(self, f"_emit_{node.type.value}", None)
        if handler is None:
            raise UnsupportedConstruct(f"unsupported node: {node!r}")
        handler(node, out)

    def _emit_children(self, nodes: Iterable[Node], out: list[Segment]) -> None:
        for child in nodes:
            self._emit_node(child, out)

    # -- per-node emitters --------------------------------------------------

    def _emit_comment(self, node: Comment, out: list[Segment]) -> None:
        out.append(Literal("<!--" + escape(node.text) + "-->"))

    def _emit_doctype(self, node: Doctype, out: list[Segment]) -> None:
        out.append(Literal("<!DOCTYPE " + node.raw + ">"))

    def _emit_fragment(self, node: Fragment, out: list[Segment]) -> None:
        self._emit_children(node.children, out)

    def _emit_text(self, node: Text, out: list[Segment]) -> None:
        out.append(Literal(escape(node.value)))

    def _emit_raw_text(self, node: RawText, out: list[Segment]) -> None:
        out.append(Literal(node.value))

    def _emit_block(self, node: Block, out: list[Segment]) -> None:
        out.append(Dynamic(node.expr))

    def _emit_element(self, node: Element, out: list[Segment]) -> None:
        kind = classify_name(node.name)
        if kind is NameKind.COMPONENT:
            out.append(Dynamic(self._component_call(node)))
        elif kind is NameKind.TAG:
            self._emit_tag(node, out)
        else:
            raise UnsupportedConstruct(
                f"element name {node.name!r} is not a single identifier"
            )

    # -- markup tags --------------------------------------------------------

    def _emit_tag(self, node: Element, out: list[Segment]) -> None:
        out.append(Literal("<" + node.name))
        for attr in node.attributes:
            self._emit_attribute(node, attr, out)

        if node.name in self.void_elements:
            out.append(Literal("/>"))
            return

        if not node.children:
            if node.close_tag is None:
                out.append(Literal("/>"))
            else:
                out.append(Literal("></" + node.close_tag + ">"))
            return

        out.append(Literal(">"))
        self._emit_children(node.children, out)
        if node.close_tag is None:
            # Unclosed element with children: tolerated, closed as "/>"
            out.append(Literal("/>"))
        else:
            out.append(Literal("</" + node.close_tag + ">"))

    def _emit_attribute(
        self, node: Element, attr: Attribute, out: list[Segment]
    ) -> None:
        if attr.is_flag:
            raise UnsupportedConstruct(
                f"flag attribute {attr.key!r} on <{node.name}> has no value"
            )
        if isinstance(attr.value, Expression):
            out.append(Literal(" " + attr.key + '="'))
            out.append(Dynamic(attr.value))
            out.append(Literal('"'))
        else:
            out.append(Literal(" " + attr.key + '="' + escape(attr.value) + '"'))

    # -- components ---------------------------------------------------------

    def _component_call(self, node: Element) -> ComponentCall:
        if keyword.iskeyword(node.name):
            raise UnsupportedConstruct(f"component name {node.name!r} is a keyword")
        inputs: list[ComponentInput] = []
        for attr in node.attributes:
            if attr.is_flag:
                raise UnsupportedConstruct(
                    f"flag attribute {attr.key!r} on component {node.name!r}"
                )
            if isinstance(attr.value, Expression):
                source = attr.value.source
            else:
                source = repr(attr.value)
            inputs.append(ComponentInput(attr.key, source))

        children: Optional[tuple[Segment, ...]] = None
        if node.children:
            nested = self.emit(node.children)
            # Children that produce no output are not passed at all
            children = tuple(nested) or None
            logger.debug(
                "component %s: %d nested segment(s)", node.name, len(nested)
            )
        return ComponentCall(node.name, tuple(inputs), children)
