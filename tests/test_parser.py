"""Tests for the template source parser."""

from __future__ import annotations

import pytest

from hypebeast.errors import TemplateSyntaxError, UnsupportedConstruct
from hypebeast.nodes import (
    Attribute,
    Block,
    Comment,
    Doctype,
    Element,
    Expression,
    Fragment,
    RawText,
    Text,
)
from hypebeast.parser import normalise_text, parse, protect_expressions


class TestProtectExpressions:

    def test_replaces_expressions(self):
        text, exprs = protect_expressions("<p>{a} and {b}</p>")
        assert exprs == ["a", "b"]
        assert "{" not in text

    def test_literal_braces(self):
        text, exprs = protect_expressions("{{not an expression}}")
        assert text == "{not an expression}"
        assert exprs == []

    def test_nested_braces_and_strings(self):
        _, exprs = protect_expressions("<p>{ {'k': '}'}['k'] }</p>")
        assert exprs == ["{'k': '}'}['k']"]

    def test_markup_inside_expression(self):
        _, exprs = protect_expressions("<p>{a < b > c}</p>")
        assert exprs == ["a < b > c"]

    def test_unterminated(self):
        with pytest.raises(TemplateSyntaxError):
            protect_expressions("<p>{oops</p>")

    @pytest.mark.parametrize("char", ["\ue000", "\ue001"])
    def test_reserved_characters_rejected(self, char):
        with pytest.raises(TemplateSyntaxError, match="reserved character"):
            protect_expressions(f"<p>{char}0{char}</p>")

    def test_comment_untouched(self):
        text, exprs = protect_expressions("<!-- {x} -->")
        assert text == "<!-- {x} -->"
        assert exprs == []

    def test_script_body_untouched(self):
        source = "<script nonce={n}>if (a) { b() }</script>"
        text, exprs = protect_expressions(source)
        assert exprs == ["n"]
        assert text.endswith(">if (a) { b() }</script>")


class TestNormaliseText:

    @pytest.mark.parametrize("text, expected", [
        ("hello", "hello"),
        ("  hello  ", "  hello  "),
        ("\n   \n", ""),
        ("\n  Hello\n  world\n", "Hello world"),
        ("a \n b", "a b"),
        ('"hypebeast"', "hypebeast"),
        ('"  spaced  "', "  spaced  "),
        ('\n  "quoted"\n', "quoted"),
        ('say "hi" now', 'say "hi" now'),
    ])
    def test_rules(self, text, expected):
        assert normalise_text(text) == expected


class TestParseStructure:

    def test_element_with_text(self):
        assert parse("<p>hi</p>") == (Element("p", (), (Text("hi"),), "p"),)

    def test_blocks_split_text(self):
        (p,) = parse("<p>Hello, {name}!</p>")
        assert p.children == (Text("Hello, "), Block(Expression("name")), Text("!"))

    def test_whitespace_between_tags_dropped(self):
        (ul,) = parse("<ul>\n  <li>a</li>\n  <li>b</li>\n</ul>")
        assert [c.name for c in ul.children] == ["li", "li"]

    def test_quoted_literal(self):
        (b,) = parse('<b>"  spaced  "</b>')
        assert b.children == (Text("  spaced  "),)

    def test_charrefs_decoded(self):
        (p,) = parse("<p>a &amp; b</p>")
        assert p.children == (Text("a & b"),)

    def test_doctype(self):
        nodes = parse("<!DOCTYPE html><html></html>")
        assert nodes[0] == Doctype("html")

    def test_comment(self):
        assert parse("<!-- note -->") == (Comment(" note "),)

    def test_fragment(self):
        (frag,) = parse("<><i>a</i><b>b</b></>")
        assert isinstance(frag, Fragment)
        assert [c.name for c in frag.children] == ["i", "b"]

    def test_script_is_raw_text(self):
        (script,) = parse("<script>if (a < b) { go() }</script>")
        assert script.children == (RawText("if (a < b) { go() }"),)

    def test_style_is_raw_text(self):
        (style,) = parse("<style>p > b { color: red }</style>")
        assert style.children == (RawText("p > b { color: red }"),)


class TestParseTags:

    @pytest.mark.parametrize("source", ['<img src="a">', '<img src="a"/>', '<img src="a" />'])
    def test_void_elements(self, source):
        assert parse(source) == (Element("img", (Attribute("src", "a"),)),)

    def test_void_end_tag_ignored(self):
        (div,) = parse("<div><br></br></div>")
        assert div.children == (Element("br"),)

    def test_self_closing_non_void(self):
        assert parse("<div/>") == (Element("div"),)

    def test_close_tag_recorded(self):
        (div,) = parse("<div></div>")
        assert div.has_explicit_close_tag
        assert div.close_tag == "div"

    def test_unclosed_element(self):
        (div,) = parse("<div><p>text")
        assert div.close_tag is None
        assert div.children[0].close_tag is None

    def test_mismatched_end_tag(self):
        with pytest.raises(TemplateSyntaxError, match="</span>"):
            parse("<div></span>")

    def test_stray_end_tag(self):
        with pytest.raises(TemplateSyntaxError):
            parse("</div>")


class TestParseAttributes:

    def test_static_values(self):
        (a,) = parse("<a href='/x' title=\"T\" data-id=7></a>")
        assert a.attributes == (
            Attribute("href", "/x"),
            Attribute("title", "T"),
            Attribute("data-id", "7"),
        )

    def test_static_value_charrefs(self):
        (a,) = parse('<a title="a &amp; b"></a>')
        assert a.attributes == (Attribute("title", "a & b"),)

    @pytest.mark.parametrize("source", [
        "<div class={cls}></div>",
        '<div class="{cls}"></div>',
    ])
    def test_dynamic_value(self, source):
        (div,) = parse(source)
        assert div.attributes == (Attribute("class", Expression("cls")),)

    def test_expression_with_markup_characters(self):
        (div,) = parse('<div title={"a > b"}></div>')
        assert div.attributes == (Attribute("title", Expression('"a > b"')),)

    def test_flag_attribute(self):
        (inp,) = parse("<input disabled>")
        assert inp.attributes == (Attribute("disabled", None),)

    def test_case_preserved(self):
        (svg,) = parse('<svg viewBox="0 0 1 1"></svg>')
        assert svg.attributes == (Attribute("viewBox", "0 0 1 1"),)

    def test_mixed_value_rejected(self):
        with pytest.raises(TemplateSyntaxError):
            parse('<div class="a {b}"></div>')

    def test_attribute_block_rejected(self):
        with pytest.raises(UnsupportedConstruct):
            parse("<div {attrs}></div>")


class TestParseComponents:

    def test_component_name_case_kept(self):
        (hello,) = parse("<Hello name={n}/>")
        assert hello == Element("Hello", (Attribute("name", Expression("n")),))

    def test_component_with_children(self):
        (hello,) = parse('<Hello name={x}><span>"mr."</span></Hello>')
        assert hello.name == "Hello"
        assert hello.close_tag == "Hello"
        assert hello.children == (Element("span", (), (Text("mr."),), "span"),)

    def test_processing_instruction_rejected(self):
        with pytest.raises(UnsupportedConstruct):
            parse("<?xml version='1.0'?>")
