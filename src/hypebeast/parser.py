"""Template source parser that produces the node tree for the compiler.

Uses the standard library :class:`html.parser.HTMLParser` for the markup
structure.  Before the markup is parsed, every ``{expression}`` is replaced
by a private-use placeholder so that expression text (which may contain
``<``, ``>`` or quotes) never reaches the HTML tokenizer.

Template syntax on top of HTML:

* ``{expr}`` in text or as a whole attribute value embeds a Python
  expression; ``{{`` and ``}}`` are literal braces;
* ``<>`` ... ``</>`` is a fragment;
* tags whose name starts with an uppercase letter are component calls;
* ``"quoted text"`` between tags is a string literal, so
  ``<b>"  spaced  "</b>`` keeps its spaces.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Optional

from hypebeast.errors import TemplateSyntaxError, UnsupportedConstruct
from hypebeast.nodes import (
    VOID_ELEMENTS,
    Attribute,
    Block,
    Comment,
    Doctype,
    Element,
    Expression,
    Fragment,
    Node,
    RawText,
    Text,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------

_PH_OPEN = "\ue000"
_PH_CLOSE = "\ue001"
_PLACEHOLDER_RE = re.compile(f"{_PH_OPEN}(\\d+){_PH_CLOSE}")
_FULL_PLACEHOLDER_RE = re.compile(f"^{_PH_OPEN}(\\d+){_PH_CLOSE}$")

_FRAGMENT_TAG = "hb:fragment"
_RAW_TEXT_ELEMENTS = ("script", "style")

_SCAN_RE = re.compile(r"\{\{|\}\}|\{|<!--|</>|<>|<(script|style)\b", re.IGNORECASE)
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")

_TAG_NAME_RE = re.compile(r"<\s*([^\s/>]+)")
_ATTR_RE = re.compile(
    r"""
    ([^\s/>"'=][^\s/>=]*)                   # key
    (?:\s*=\s*
        ('[^']*'|"[^"]*"|(?:[^\s>/]|/(?!>))*)  # value
    )?
    """,
    re.VERBOSE,
)


def _find_closing_brace(source: str, start: int) -> int:
    """Index of the ``}`` closing the expression that begins at *start*."""
    depth = 0
    i = start
    n = len(source)
    while i < n:
        ch = source[i]
        if ch in "'\"":
            quote = source[i:i + 3] if source[i:i + 3] == ch * 3 else ch
            i += len(quote)
            while i < n and not source.startswith(quote, i):
                i += 2 if source[i] == "\\" else 1
            i += len(quote)
            continue
        if ch in "{[(":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch == "}":
            if depth == 0:
                return i
            depth -= 1
        i += 1
    raise TemplateSyntaxError(f"unterminated expression starting at offset {start - 1}")


def _find_tag_end(source: str, start: int) -> int:
    """Index just past the ``>`` ending the start tag that begins before *start*."""
    i = start
    n = len(source)
    while i < n:
        ch = source[i]
        if ch in "'\"":
            close = source.find(ch, i + 1)
            i = n if close == -1 else close + 1
            continue
        if ch == "{":
            i = _find_closing_brace(source, i + 1) + 1
            continue
        if ch == ">":
            return i + 1
        i += 1
    return n


def protect_expressions(source: str) -> tuple[str, list[str]]:
    """Swap each ``{expr}`` in *source* for a placeholder.

    Returns the rewritten source and the expressions in placeholder order.
    Comments and the bodies of ``<script>``/``<style>`` are left untouched.
    """
    for marker in (_PH_OPEN, _PH_CLOSE):
        offset = source.find(marker)
        if offset != -1:
            raise TemplateSyntaxError(
                f"reserved character U+{ord(marker):04X} at offset {offset}"
            )
    out: list[str] = []
    expressions: list[str] = []

    def scan(text: str) -> None:
        pos = 0
        while True:
            m = _SCAN_RE.search(text, pos)
            if m is None:
                out.append(text[pos:])
                return
            out.append(text[pos:m.start()])
            token = m.group(0)
            pos = m.end()
            if token == "{{":
                out.append("{")
            elif token == "}}":
                out.append("}")
            elif token == "{":
                end = _find_closing_brace(text, pos)
                expressions.append(text[pos:end].strip())
                out.append(f"{_PH_OPEN}{len(expressions) - 1}{_PH_CLOSE}")
                pos = end + 1
            elif token == "<!--":
                end = text.find("-->", pos)
                pos = len(text) if end == -1 else end + 3
                out.append(text[m.start():pos])
            elif token == "<>":
                out.append(f"<{_FRAGMENT_TAG}>")
            elif token == "</>":
                out.append(f"</{_FRAGMENT_TAG}>")
            else:
                # <script>/<style>: expressions allowed in the start tag only
                tag_end = _find_tag_end(text, pos)
                out.append(text[m.start():pos])
                scan(text[pos:tag_end])
                close = re.compile(rf"</{m.group(1)}\s*>", re.IGNORECASE).search(text, tag_end)
                pos = len(text) if close is None else close.start()
                out.append(text[tag_end:pos])

    scan(source)
    return "".join(out), expressions


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def normalise_text(text: str) -> str:
    """Apply the template whitespace rule to one run of text.

    Runs spanning several lines are trimmed line by line, blank lines are
    dropped and the rest joined with single spaces.  A run that is one
    double-quoted string has its quotes removed.
    """
    if "\n" in text or "\r" in text:
        lines = _LINE_BREAK_RE.split(text)
        kept: list[str] = []
        last = len(lines) - 1
        for idx, line in enumerate(lines):
            if idx > 0:
                line = line.lstrip()
            if idx < last:
                line = line.rstrip()
            if line.strip():
                kept.append(line)
        text = " ".join(kept)
    stripped = text.strip()
    if len(stripped) >= 2 and stripped[0] == stripped[-1] == '"' and '"' not in stripped[1:-1]:
        return stripped[1:-1]
    return text


# ---------------------------------------------------------------------------
# Tree builder
# ---------------------------------------------------------------------------

@dataclass
class _Frame:
    name: str
    attributes: tuple[Attribute, ...] = ()
    children: list[Node] = field(default_factory=list)

    @property
    def is_fragment(self) -> bool:
        return self.name == _FRAGMENT_TAG


class _TreeBuilder(HTMLParser):
    def __init__(self, expressions: list[str], void_elements: frozenset[str]) -> None:
        super().__init__(convert_charrefs=True)
        self._expressions = expressions
        self._void = void_elements
        self._root = _Frame(name="")
        self._stack: list[_Frame] = [self._root]
        self._text: list[str] = []

    # -- results ------------------------------------------------------------

    def finish(self) -> tuple[Node, ...]:
        self.close()
        self._flush_text()
        while len(self._stack) > 1:
            frame = self._stack.pop()
            logger.debug("element <%s> was never closed", frame.name)
            self._current.children.append(self._build(frame, close_tag=None))
        return tuple(self._root.children)

    @property
    def _current(self) -> _Frame:
        return self._stack[-1]

    def _where(self) -> str:
        line, col = self.getpos()
        return f"line {line}, column {col + 1}"

    # -- HTMLParser callbacks ---------------------------------------------

    def handle_starttag(self, tag: str, attrs: list) -> None:
        self._flush_text()
        name, attributes = self._read_start_tag()
        # An unquoted value swallows the "/" of "/>", so check the raw text too
        if name in self._void or self._self_closing():
            self._current.children.append(Element(name, attributes))
            return
        self._stack.append(_Frame(name, attributes))

    def handle_startendtag(self, tag: str, attrs: list) -> None:
        self._flush_text()
        name, attributes = self._read_start_tag()
        self._current.children.append(Element(name, attributes))

    def handle_endtag(self, tag: str) -> None:
        self._flush_text()
        frame = self._current
        if tag in self._void and frame.name.lower() != tag:
            # </img> and friends close nothing
            return
        if frame is self._root or frame.name.lower() != tag:
            expected = f"</{frame.name}>" if frame is not self._root else "no closing tag"
            raise TemplateSyntaxError(
                f"unexpected </{tag}> at {self._where()}, expected {expected}"
            )
        self._stack.pop()
        self._current.children.append(self._build(frame, close_tag=frame.name))

    def handle_data(self, data: str) -> None:
        if self._current.name.lower() in _RAW_TEXT_ELEMENTS:
            children = self._current.children
            if children and isinstance(children[-1], RawText):
                children[-1] = RawText(children[-1].value + data)
            else:
                children.append(RawText(data))
            return
        self._text.append(data)

    def handle_comment(self, data: str) -> None:
        self._flush_text()
        self._current.children.append(Comment(data))

    def handle_decl(self, decl: str) -> None:
        self._flush_text()
        if decl[:7].upper() != "DOCTYPE":
            raise UnsupportedConstruct(f"declaration <!{decl}> at {self._where()}")
        self._current.children.append(Doctype(decl[7:].strip()))

    def handle_pi(self, data: str) -> None:
        raise UnsupportedConstruct(f"processing instruction <?{data}> at {self._where()}")

    def unknown_decl(self, data: str) -> None:
        raise UnsupportedConstruct(f"declaration <![{data}]> at {self._where()}")

    # -- helpers ------------------------------------------------------------

    def _build(self, frame: _Frame, close_tag: Optional[str]) -> Node:
        if frame.is_fragment:
            return Fragment(tuple(frame.children))
        return Element(frame.name, frame.attributes, tuple(frame.children), close_tag)

    def _flush_text(self) -> None:
        if not self._text:
            return
        text = "".join(self._text)
        self._text = []
        pieces = _PLACEHOLDER_RE.split(text)
        # split() alternates text, placeholder index, text, ...
        for idx, piece in enumerate(pieces):
            if idx % 2:
                self._current.children.append(Block(self._expression(piece)))
                continue
            piece = normalise_text(piece)
            if piece:
                self._current.children.append(Text(piece))

    def _expression(self, index: str) -> Expression:
        return Expression(self._expressions[int(index)])

    def _read_start_tag(self) -> tuple[str, tuple[Attribute, ...]]:
        """Re-read the raw start tag to keep name and attribute case."""
        raw = self.get_starttag_text() or ""
        m = _TAG_NAME_RE.match(raw)
        if m is None:
            raise TemplateSyntaxError(f"malformed start tag {raw!r} at {self._where()}")
        name = m.group(1)
        body = raw[m.end():]
        if body.endswith(">"):
            body = body[:-1]
        if body.endswith("/"):
            body = body[:-1]
        attributes = tuple(
            self._attribute(am.group(1), am.group(2)) for am in _ATTR_RE.finditer(body)
        )
        return name, attributes

    def _attribute(self, key: str, value: Optional[str]) -> Attribute:
        if _PLACEHOLDER_RE.search(key):
            raise UnsupportedConstruct(f"attribute blocks are not supported ({self._where()})")
        if value is None:
            return Attribute(key, None)
        if len(value) >= 2 and value[0] in "'\"" and value[-1] == value[0]:
            value = value[1:-1]
        full = _FULL_PLACEHOLDER_RE.match(value)
        if full:
            return Attribute(key, self._expression(full.group(1)))
        if _PLACEHOLDER_RE.search(value):
            raise TemplateSyntaxError(
                f"attribute {key!r} mixes text and expressions at {self._where()}"
            )
        return Attribute(key, html.unescape(value))

    def _self_closing(self) -> bool:
        return (self.get_starttag_text() or "").rstrip().endswith("/>")


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class TemplateParser:
    """Parse template source text into a tuple of :class:`~hypebeast.nodes.Node`."""

    def __init__(self, void_elements: frozenset[str] = VOID_ELEMENTS) -> None:
        self.void_elements = void_elements

    # -- public API ---------------------------------------------------------

    def parse(self, source: str) -> tuple[Node, ...]:
        """Return the top-level nodes of *source*."""
        protected, expressions = protect_expressions(source)
        builder = _TreeBuilder(expressions, self.void_elements)
        builder.feed(protected)
        return builder.finish()


def parse(source: str) -> tuple[Node, ...]:
    """Parse *source* with the default void-element set."""
    return TemplateParser().parse(source)


