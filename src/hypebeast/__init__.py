"""hypebeast: compile HTML-shaped templates into fast render functions."""

from hypebeast.compiler import Compiler, Template, html
from hypebeast.component import component
from hypebeast.config import CompilerOptions, Convention, Strategy
from hypebeast.errors import (
    HypebeastError,
    TemplateSyntaxError,
    UndefinedName,
    UnsupportedConstruct,
    UnsupportedValue,
)
from hypebeast.runtime import (
    Component,
    Renderable,
    escape,
    raw,
    register,
    render_into,
    render_to_string,
)

__version__ = "0.3.0"

__all__ = [
    "Compiler",
    "CompilerOptions",
    "Component",
    "Convention",
    "HypebeastError",
    "Renderable",
    "Strategy",
    "Template",
    "TemplateSyntaxError",
    "UndefinedName",
    "UnsupportedConstruct",
    "UnsupportedValue",
    "component",
    "escape",
    "html",
    "raw",
    "register",
    "render_into",
    "render_to_string",
]
