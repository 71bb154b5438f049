"""High-level template compilation orchestrator.

Ties together the parser, the emitter and a code generation backend into a
single public API for turning template source into a render procedure.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

from hypebeast.codegen import RenderFunction, backend_for
from hypebeast.config import CompilerOptions
from hypebeast.emitter import Emitter, Literal, Segment, static_length
from hypebeast.nodes import Expression, Node
from hypebeast.parser import TemplateParser
from hypebeast.runtime import Component

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Template:
    """A compiled template.

    Calling it with keyword context returns a :class:`Component`; the
    buffer-append entry point :meth:`render` writes into a caller-owned
    ``list[str]`` instead.  Both give the same HTML.
    """

    render_function: RenderFunction = field(repr=False)
    source: str = field(repr=False)
    segments: tuple[Segment, ...] = field(repr=False)
    options: CompilerOptions
    name: str = "<template>"
    size_hint: int = 0

    def render(self, sink: list[str], /, **context: Any) -> None:
        """Append the rendered HTML to *sink*."""
        self.render_function(sink, context)

    def render_to_string(self, /, **context: Any) -> str:
        sink: list[str] = []
        self.render_function(sink, context)
        return "".join(sink)

    def __call__(self, /, **context: Any) -> Component:
        return Component(self.render_to_string(**context))


class Compiler:
    """Compile template source to :class:`Template` objects.

    Usage::

        compiler = Compiler()
        page = compiler.compile("<div>{x}</div>")
        page.render_to_string(x=1)       # '<div>1</div>'

        # or from a file, with components in scope
        page = compiler.compile_file("page.html", namespace={"Card": Card})

    Every name a template reads is looked up once, before anything is
    rendered, so ``{a if c else b}`` raises
    :class:`~hypebeast.errors.UndefinedName` when ``b`` is missing even if
    that branch is never taken.  Pass ``b=None`` (or put it in the
    namespace) for optional values.
    """

    def __init__(self, options: Optional[CompilerOptions] = None) -> None:
        self.options = options or CompilerOptions()
        self.parser = TemplateParser(self.options.void_elements)
        self.emitter = Emitter(self.options.void_elements)

    def compile(
        self,
        source: str,
        namespace: Optional[Mapping[str, Any]] = None,
        *,
        name: str = "<template>",
    ) -> Template:
        """Parse and compile template *source*.

        Args:
            source: Template source text.
            namespace: Names (typically components) visible to expressions
                when the render context does not provide them.
            name: Label used in generated code and error messages.

        Returns:
            The compiled :class:`Template`.
        """
        nodes = self.parser.parse(source)
        return self.compile_nodes(nodes, namespace, name=name, size_hint=len(source))

    def compile_nodes(
        self,
        nodes: Iterable[Node],
        namespace: Optional[Mapping[str, Any]] = None,
        *,
        name: str = "<template>",
        size_hint: int = 0,
    ) -> Template:
        """Compile an already parsed node tree."""
        nodes = tuple(nodes)
        segments = self.emitter.emit(nodes)
        # Fresh backend per build, it numbers nested buffers
        render_function, source = backend_for(self.options).build(
            segments, namespace, filename=f"<hypebeast {name}>"
        )
        logger.debug(
            "compiled %s: %d node(s), %d segment(s), strategy=%s, convention=%s",
            name,
            len(nodes),
            len(segments),
            self.options.strategy.value,
            self.options.convention.value,
        )
        return Template(
            render_function=render_function,
            source=source,
            segments=tuple(segments),
            options=self.options,
            name=name,
            size_hint=size_hint or static_length(segments),
        )

    def compile_file(
        self,
        path: str | Path,
        namespace: Optional[Mapping[str, Any]] = None,
        *,
        encoding: str = "utf-8",
    ) -> Template:
        """Read and compile a template file."""
        path = Path(path)
        return self.compile(path.read_text(encoding=encoding), namespace, name=path.name)

    def render_file(
        self,
        input_path: str | Path,
        output_path: str | Path,
        context: Optional[Mapping[str, Any]] = None,
        *,
        namespace: Optional[Mapping[str, Any]] = None,
        encoding: str = "utf-8",
    ) -> str:
        """Compile *input_path*, render it with *context* and write the HTML.

        Returns:
            The rendered HTML.
        """
        output_path = Path(output_path)
        template = self.compile_file(input_path, namespace, encoding=encoding)
        result = template.render_to_string(**dict(context or {}))

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(result, encoding=encoding)
        return result


@functools.lru_cache(maxsize=256)
def _cached_template(source: str, options: CompilerOptions) -> Template:
    return Compiler(options).compile(source)


def html(source: str, /, options: Optional[CompilerOptions] = None, **context: Any) -> Component:
    """Compile *source* (memoised) and render it with *context*.

    Components and helpers must be passed in *context*::

        html("<Hello name={n}/>", Hello=Hello, n="world")
    """
    template = _cached_template(source, options or CompilerOptions())
    return template(**context)


def segment_summary(segments: Sequence[Segment]) -> list[dict[str, Any]]:
    """JSON-friendly description of *segments*, for tooling."""
    summary: list[dict[str, Any]] = []
    for segment in segments:
        if isinstance(segment, Literal):
            summary.append({"kind": "literal", "text": segment.text})
            continue
        value = segment.value
        if isinstance(value, Expression):
            summary.append({"kind": "dynamic", "expression": value.source})
        else:
            summary.append({
                "kind": "component",
                "name": value.name,
                "inputs": {item.name: item.source for item in value.inputs},
                "children": (
                    segment_summary(value.children) if value.children is not None else None
                ),
            })
    return summary
