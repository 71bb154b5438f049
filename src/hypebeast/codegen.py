"""Code generation: fused segments to a Python render function.

Two backends share the same input:

:class:`BufferAppendBackend`
    appends every literal and renders every dynamic value straight into the
    caller's buffer.  Component children get a fresh nested buffer.

:class:`FormatStringBackend`
    builds one ``str.format`` template per segment list and substitutes the
    rendered dynamic values positionally.

Both generate a function ``_hb_render(_hb_buf, _hb_ctx)`` whose first lines
bind every free name used by the template's expressions, looked up in the
render context, then the compile-time namespace, then builtins.
"""

from __future__ import annotations

import ast
import builtins
import functools
import keyword
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from hypebeast.config import CompilerOptions, Convention, Strategy
from hypebeast.emitter import ComponentCall, Dynamic, Literal, Segment
from hypebeast.errors import TemplateSyntaxError, UndefinedName, UnsupportedConstruct
from hypebeast.nodes import Expression
from hypebeast.runtime import Component, render_into, render_to_string

RenderFunction = Callable[[list, Mapping[str, Any]], None]

FUNCTION_NAME = "_hb_render"
RESERVED_PREFIX = "_hb_"

_MISSING = object()


# ---------------------------------------------------------------------------
# Source building
# ---------------------------------------------------------------------------

class CodeBuilder:
    """Accumulate indented lines of Python source."""

    INDENT_STEP = 4

    def __init__(self, indent: int = 0) -> None:
        self.lines: list[str] = []
        self.indent_level = indent

    def add_line(self, line: str) -> None:
        self.lines.append(" " * self.indent_level + line)

    def indent(self) -> None:
        self.indent_level += self.INDENT_STEP

    def dedent(self) -> None:
        self.indent_level -= self.INDENT_STEP

    def __str__(self) -> str:
        return "\n".join(self.lines) + "\n"


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@functools.lru_cache(maxsize=1024)
def _parse_expression(source: str) -> ast.expr:
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as exc:
        raise TemplateSyntaxError(f"invalid expression {source!r}: {exc.msg}") from None
    return tree.body


def expression_code(source: str) -> str:
    """Validate *source* and return it normalised, wrapped in parentheses."""
    return "(" + ast.unparse(_parse_expression(source)) + ")"


class _NameScanner(ast.NodeVisitor):
    """Collect the names an expression reads from its enclosing scope.

    Lambda parameters and comprehension targets are only bound inside their
    own subtree; the first ``for`` iterable of a comprehension is evaluated
    outside it.
    """

    def __init__(self) -> None:
        self.loaded: set[str] = set()
        # := targets, which bind in the enclosing scope
        self.assigned: set[str] = set()
        self._scopes: list[set[str]] = []

    def _is_local(self, name: str) -> bool:
        return any(name in scope for scope in self._scopes)

    def visit_Name(self, node: ast.Name) -> None:
        if isinstance(node.ctx, ast.Load) and not self._is_local(node.id):
            self.loaded.add(node.id)

    def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
        self.assigned.add(node.target.id)
        self.visit(node.value)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        args = node.args
        # defaults are evaluated where the lambda is defined
        for default in [*args.defaults, *args.kw_defaults]:
            if default is not None:
                self.visit(default)
        params = {a.arg for a in [*args.posonlyargs, *args.args, *args.kwonlyargs]}
        if args.vararg:
            params.add(args.vararg.arg)
        if args.kwarg:
            params.add(args.kwarg.arg)
        self._scopes.append(params)
        self.visit(node.body)
        self._scopes.pop()

    def _visit_comprehension(self, generators: list[ast.comprehension], *parts: ast.expr) -> None:
        self.visit(generators[0].iter)
        scope: set[str] = set()
        self._scopes.append(scope)
        for idx, gen in enumerate(generators):
            if idx:
                self.visit(gen.iter)
            scope.update(n.id for n in ast.walk(gen.target) if isinstance(n, ast.Name))
            for cond in gen.ifs:
                self.visit(cond)
        for part in parts:
            self.visit(part)
        self._scopes.pop()

    def visit_ListComp(self, node: ast.ListComp) -> None:
        self._visit_comprehension(node.generators, node.elt)

    visit_SetComp = visit_ListComp
    visit_GeneratorExp = visit_ListComp

    def visit_DictComp(self, node: ast.DictComp) -> None:
        self._visit_comprehension(node.generators, node.key, node.value)


def free_names(source: str) -> set[str]:
    """Names an expression reads that it does not bind itself."""
    scanner = _NameScanner()
    scanner.visit(_parse_expression(source))
    names = scanner.loaded - scanner.assigned
    reserved = sorted(n for n in names if n.startswith(RESERVED_PREFIX))
    if reserved:
        raise TemplateSyntaxError(
            f"names starting with {RESERVED_PREFIX!r} are reserved: {', '.join(reserved)}"
        )
    return names


def collect_names(segments: Iterable[Segment]) -> set[str]:
    """Every free name the segments need at render time."""
    names: set[str] = set()
    for segment in segments:
        if not isinstance(segment, Dynamic):
            continue
        value = segment.value
        if isinstance(value, Expression):
            names |= free_names(value.source)
            continue
        names.add(value.name)
        for item in value.inputs:
            names |= free_names(item.source)
        if value.children is not None:
            names |= collect_names(value.children)
    return names


def resolve_name(namespace: Mapping[str, Any], context: Mapping[str, Any], name: str) -> Any:
    """Look *name* up in the render context, the namespace, then builtins."""
    value = context.get(name, _MISSING)
    if value is _MISSING:
        value = namespace.get(name, _MISSING)
    if value is _MISSING:
        value = builtins.__dict__.get(name, _MISSING)
    if value is _MISSING:
        raise UndefinedName(f"name {name!r} is not defined in the template context")
    return value


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

class Backend(ABC):
    """Turn fused segments into a render function."""

    strategy: Strategy

    def __init__(
        self,
        convention: Convention = Convention.POSITIONAL,
        children_field: str = "children",
    ) -> None:
        self.convention = convention
        self.children_field = children_field
        self._counter = 0

    # -- public API ---------------------------------------------------------

    def generate(self, segments: Sequence[Segment]) -> str:
        """Return the Python source of the render function."""
        code = CodeBuilder()
        code.add_line(f"def {FUNCTION_NAME}(_hb_buf, _hb_ctx):")
        code.indent()
        for name in sorted(collect_names(segments)):
            code.add_line(f"{name} = _hb_lookup(_hb_ctx, {name!r})")
        self._counter = 0
        self._generate_body(segments, code)
        if len(code.lines) == 1:
            code.add_line("pass")
        code.dedent()
        return str(code)

    def build(
        self,
        segments: Sequence[Segment],
        namespace: Optional[Mapping[str, Any]] = None,
        *,
        filename: str = "<hypebeast>",
    ) -> tuple[RenderFunction, str]:
        """Generate, compile and return ``(render_function, source)``."""
        source = self.generate(segments)
        scope: dict[str, Any] = {
            "_hb_lookup": functools.partial(resolve_name, dict(namespace or {})),
            "_hb_render_into": render_into,
            "_hb_str": render_to_string,
            "_hb_Component": Component,
        }
        exec(compile(source, filename, "exec"), scope)
        return scope[FUNCTION_NAME], source

    # -- hooks --------------------------------------------------------------

    @abstractmethod
    def _generate_body(self, segments: Sequence[Segment], code: CodeBuilder) -> None:
        """Add the statements that fill ``_hb_buf``."""

    # -- shared helpers -----------------------------------------------------

    def _next_id(self) -> int:
        self._counter += 1
        return self._counter

    def _call_code(
        self,
        call: ComponentCall,
        children: Optional[str],
        values: Optional[Sequence[str]] = None,
    ) -> str:
        """Python call expression for *call*, per the calling convention.

        *values* replaces the input expressions, in input order.
        """
        if values is None:
            values = [expression_code(item.source) for item in call.inputs]
        args: list[str] = []
        for item, value in zip(call.inputs, values):
            if self.convention is Convention.NAMED:
                if not item.name.isidentifier() or keyword.iskeyword(item.name):
                    raise UnsupportedConstruct(
                        f"input {item.name!r} of component {call.name!r} "
                        "cannot be passed as a keyword argument"
                    )
                args.append(f"{item.name}={value}")
            else:
                args.append(value)
        if children is not None:
            if self.convention is Convention.NAMED:
                args.append(f"{self.children_field}={children}")
            else:
                args.append(children)
        return f"{call.name}({', '.join(args)})"


class BufferAppendBackend(Backend):
    strategy = Strategy.BUFFER_APPEND

    def _generate_body(self, segments: Sequence[Segment], code: CodeBuilder) -> None:
        self._emit_segments(segments, "_hb_buf", code)

    def _emit_segments(
        self, segments: Sequence[Segment], buf: str, code: CodeBuilder
    ) -> None:
        literals = sum(1 for s in segments if isinstance(s, Literal))
        append = f"{buf}.append"
        if literals > 1:
            # Bind the bound method once when it is used repeatedly
            append = buf.replace("_hb_buf", "_hb_append")
            code.add_line(f"{append} = {buf}.append")
        for segment in segments:
            if isinstance(segment, Literal):
                code.add_line(f"{append}({segment.text!r})")
            else:
                value = self._value_code(segment.value, code)
                code.add_line(f"_hb_render_into({value}, {buf})")

    def _value_code(self, value: Any, code: CodeBuilder) -> str:
        if isinstance(value, Expression):
            return expression_code(value.source)
        return self._component_code(value, code)

    def _component_code(self, call: ComponentCall, code: CodeBuilder) -> str:
        if call.children is None:
            return self._call_code(call, None)
        static = call.static_children
        if static is not None:
            return self._call_code(call, f"_hb_Component({static!r})")
        # Inputs are evaluated before the children, as in a plain call
        values: list[str] = []
        for item in call.inputs:
            temp = f"_hb_arg{self._next_id()}"
            code.add_line(f"{temp} = {expression_code(item.source)}")
            values.append(temp)
        nested = f"_hb_buf{self._next_id()}"
        code.add_line(f"{nested} = []")
        self._emit_segments(call.children, nested, code)
        return self._call_code(call, f"_hb_Component(''.join({nested}))", values)


class FormatStringBackend(Backend):
    strategy = Strategy.FORMAT_STRING

    def _generate_body(self, segments: Sequence[Segment], code: CodeBuilder) -> None:
        if segments:
            code.add_line(f"_hb_buf.append({self._format_code(segments)})")

    def _format_code(self, segments: Sequence[Segment]) -> str:
        """One expression producing the rendered string for *segments*."""
        if all(isinstance(s, Literal) for s in segments):
            return repr("".join(s.text for s in segments))
        template: list[str] = []
        values: list[str] = []
        for segment in segments:
            if isinstance(segment, Literal):
                template.append(segment.text.replace("{", "{{").replace("}", "}}"))
            else:
                template.append("{}")
                values.append(f"_hb_str({self._value_code(segment.value)})")
        return f"{''.join(template)!r}.format({', '.join(values)})"

    def _value_code(self, value: Any) -> str:
        if isinstance(value, Expression):
            return expression_code(value.source)
        if value.children is None:
            return self._call_code(value, None)
        return self._call_code(value, f"_hb_Component({self._format_code(value.children)})")


_BACKENDS: dict[Strategy, type[Backend]] = {
    Strategy.BUFFER_APPEND: BufferAppendBackend,
    Strategy.FORMAT_STRING: FormatStringBackend,
}


def backend_for(options: CompilerOptions) -> Backend:
    """Instantiate the backend selected by *options*."""
    backend_cls = _BACKENDS[options.strategy]
    return backend_cls(options.convention, options.children_field)
