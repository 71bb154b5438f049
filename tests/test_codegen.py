"""Tests for the code generation backends."""

from __future__ import annotations

import pytest

from hypebeast.codegen import (
    BufferAppendBackend,
    CodeBuilder,
    FormatStringBackend,
    backend_for,
    collect_names,
    expression_code,
    free_names,
    resolve_name,
)
from hypebeast.config import CompilerOptions, Convention, Strategy
from hypebeast.emitter import ComponentCall, ComponentInput, Dynamic, Literal
from hypebeast.errors import TemplateSyntaxError, UndefinedName, UnsupportedConstruct
from hypebeast.nodes import Expression
from hypebeast.runtime import Component, render_to_string

BACKENDS = [BufferAppendBackend, FormatStringBackend]


def _render(backend, segments, namespace=None, **context) -> str:
    func, _ = backend.build(segments, namespace)
    sink: list[str] = []
    func(sink, context)
    return "".join(sink)


def _hello(name, children=Component()):
    return Component(f"{children}<div>{render_to_string(name)}</div>")


class TestCodeBuilder:

    def test_indentation(self):
        code = CodeBuilder()
        code.add_line("def f():")
        code.indent()
        code.add_line("return 1")
        code.dedent()
        code.add_line("x = f()")
        assert str(code) == "def f():\n    return 1\nx = f()\n"


class TestExpressions:

    def test_normalised_and_parenthesised(self):
        assert expression_code(" a+b ") == "(a + b)"

    def test_syntax_error(self):
        with pytest.raises(TemplateSyntaxError, match="invalid expression"):
            expression_code("a +")

    def test_statements_rejected(self):
        with pytest.raises(TemplateSyntaxError):
            expression_code("x = 1")

    @pytest.mark.parametrize("source, expected", [
        ("x", {"x"}),
        ("a.b.c", {"a"}),
        ("f(x, key=y)", {"f", "x", "y"}),
        ("[cell(col=c) for c in cols]", {"cell", "cols"}),
        ("(lambda v: v * k)(n)", {"k", "n"}),
        ("x + sum(x for x in y)", {"x", "sum", "y"}),
        ("[x for x in x]", {"x"}),
        ("[a for a in b for c in a if c]", {"b"}),
        ("{k: v for k, v in pairs}", {"pairs"}),
        ("(lambda x, d=x: x + d)(1)", {"x"}),
        ("(total := 1) + total", set()),
        ("'literal'", set()),
    ])
    def test_free_names(self, source, expected):
        assert free_names(source) == expected

    def test_reserved_prefix(self):
        with pytest.raises(TemplateSyntaxError, match="reserved"):
            free_names("_hb_buf")

    def test_collect_names_includes_components(self):
        call = ComponentCall(
            "Card",
            (ComponentInput("title", "t"),),
            (Dynamic(Expression("body")),),
        )
        segments = [Literal("<p>"), Dynamic(Expression("x")), Dynamic(call)]
        assert collect_names(segments) == {"x", "Card", "t", "body"}


class TestResolveName:

    def test_context_first(self):
        assert resolve_name({"x": 1}, {"x": 2}, "x") == 2

    def test_namespace_second(self):
        assert resolve_name({"x": 1}, {}, "x") == 1

    def test_builtins_last(self):
        assert resolve_name({}, {}, "len") is len

    def test_none_is_a_value(self):
        assert resolve_name({}, {"x": None}, "x") is None

    def test_undefined(self):
        with pytest.raises(UndefinedName, match="'missing'"):
            resolve_name({}, {}, "missing")


@pytest.mark.parametrize("backend_cls", BACKENDS)
class TestBackends:

    def test_empty(self, backend_cls):
        assert _render(backend_cls(), []) == ""

    def test_literal_only(self, backend_cls):
        assert _render(backend_cls(), [Literal("<p>{braces}</p>")]) == "<p>{braces}</p>"

    def test_dynamic_escaped(self, backend_cls):
        segments = [Literal("<div>"), Dynamic(Expression("x")), Literal("</div>")]
        assert _render(backend_cls(), segments, x="<b>") == "<div>&lt;b&gt;</div>"

    def test_literal_braces_with_dynamic(self, backend_cls):
        segments = [Literal("{"), Dynamic(Expression("x")), Literal("}")]
        assert _render(backend_cls(), segments, x=1) == "{1}"

    def test_comprehension(self, backend_cls):
        segments = [Dynamic(Expression("[i * k for i in items]"))]
        assert _render(backend_cls(), segments, items=[1, 2], k=3) == "36"

    def test_comprehension_target_shadows_free_name(self, backend_cls):
        segments = [Literal("<p>"), Dynamic(Expression("x + sum(x for x in y)")), Literal("</p>")]
        assert _render(backend_cls(), segments, x=10, y=[1, 2]) == "<p>13</p>"

    def test_lambda_parameter_shadows_free_name(self, backend_cls):
        segments = [Dynamic(Expression("(lambda x: x * 2)(x)"))]
        assert _render(backend_cls(), segments, x=4) == "8"

    def test_namespace_lookup(self, backend_cls):
        segments = [Dynamic(Expression("greet"))]
        assert _render(backend_cls(), segments, {"greet": "hi"}) == "hi"

    def test_undefined_name(self, backend_cls):
        with pytest.raises(UndefinedName):
            _render(backend_cls(), [Dynamic(Expression("nope"))])

    def test_positional_component(self, backend_cls):
        call = ComponentCall("Hello", (ComponentInput("name", "n"),))
        out = _render(backend_cls(), [Dynamic(call)], {"Hello": _hello}, n="<x>")
        assert out == "<div>&lt;x&gt;</div>"

    def test_static_children(self, backend_cls):
        call = ComponentCall(
            "Hello", (ComponentInput("name", "'bob'"),), (Literal("<i>hi</i>"),)
        )
        out = _render(backend_cls(), [Dynamic(call)], {"Hello": _hello})
        assert out == "<i>hi</i><div>bob</div>"

    def test_dynamic_children(self, backend_cls):
        children = (Literal("<i>"), Dynamic(Expression("y")), Literal("</i>"))
        call = ComponentCall("Hello", (ComponentInput("name", "'z'"),), children)
        out = _render(backend_cls(), [Dynamic(call)], {"Hello": _hello}, y="&")
        assert out == "<i>&amp;</i><div>z</div>"

    def test_nested_components(self, backend_cls):
        inner = ComponentCall("Hello", (ComponentInput("name", "a"),))
        outer = ComponentCall(
            "Hello", (ComponentInput("name", "b"),), (Literal("["), Dynamic(inner), Literal("]")),
        )
        out = _render(backend_cls(), [Dynamic(outer)], {"Hello": _hello}, a="1", b="2")
        assert out == "[<div>1</div>]<div>2</div>"

    @pytest.mark.parametrize("convention", list(Convention))
    def test_inputs_evaluated_before_children(self, backend_cls, convention):
        order = []

        def log(label):
            order.append(label)
            return label

        children = (Literal("<i>"), Dynamic(Expression("log('child')")), Literal("</i>"))
        call = ComponentCall(
            "Hello",
            (ComponentInput("name", "log('name')"),),
            children,
        )
        namespace = {"Hello": _hello, "log": log}
        out = _render(backend_cls(convention), [Dynamic(call)], namespace)
        assert out == "<i>child</i><div>name</div>"
        assert order == ["name", "child"]

    def test_named_convention(self, backend_cls):
        calls = []

        def Box(**kwargs):
            calls.append(kwargs)
            return Component("box")

        call = ComponentCall(
            "Box", (ComponentInput("title", "t"),), (Literal("<p>x</p>"),)
        )
        backend = backend_cls(Convention.NAMED, "body")
        assert _render(backend, [Dynamic(call)], {"Box": Box}, t="T") == "box"
        assert calls == [{"title": "T", "body": Component("<p>x</p>")}]

    def test_named_convention_rejects_bad_input_names(self, backend_cls):
        call = ComponentCall("Box", (ComponentInput("data-id", "1"),))
        with pytest.raises(UnsupportedConstruct):
            backend_cls(Convention.NAMED).generate([Dynamic(call)])

    def test_source_is_returned(self, backend_cls):
        _, source = backend_cls().build([Dynamic(Expression("x"))])
        assert source.startswith("def _hb_render(_hb_buf, _hb_ctx):")
        assert "x = _hb_lookup(_hb_ctx, 'x')" in source


class TestStrategiesAgree:

    @pytest.mark.parametrize("segments", [
        [Literal("<p>plain</p>")],
        [Literal("a"), Dynamic(Expression("x")), Literal("b"), Dynamic(Expression("y"))],
        [Dynamic(Expression("[x, y]"))],
    ])
    def test_same_output(self, segments):
        outputs = {
            _render(cls(), segments, x="<", y=2.0) for cls in BACKENDS
        }
        assert len(outputs) == 1


class TestGeneratedShape:

    def test_buffer_binds_append_once(self):
        segments = [Literal("a"), Dynamic(Expression("x")), Literal("b")]
        source = BufferAppendBackend().generate(segments)
        assert "_hb_append = _hb_buf.append" in source
        assert source.count("_hb_render_into(") == 1

    def test_buffer_nested_buffer_for_dynamic_children(self):
        call = ComponentCall("C", (), (Dynamic(Expression("x")),))
        source = BufferAppendBackend().generate([Dynamic(call)])
        assert "_hb_buf1 = []" in source
        assert "_hb_Component(''.join(_hb_buf1))" in source

    def test_format_single_append(self):
        segments = [Literal("a"), Dynamic(Expression("x")), Literal("{b}")]
        source = FormatStringBackend().generate(segments)
        assert source.count("_hb_buf.append(") == 1
        assert "'a{}{{b}}'.format(_hb_str((x)))" in source

    @pytest.mark.parametrize("strategy, expected", [
        (Strategy.BUFFER_APPEND, BufferAppendBackend),
        (Strategy.FORMAT_STRING, FormatStringBackend),
    ])
    def test_backend_for(self, strategy, expected):
        backend = backend_for(CompilerOptions(strategy=strategy, convention=Convention.NAMED))
        assert isinstance(backend, expected)
        assert backend.convention is Convention.NAMED
