"""Record-style components.

:func:`component` turns a function into a frozen dataclass whose fields are
the function's parameters.  Constructing the class does not render anything;
rendering the instance calls the function with the stored fields.  This fits
the named calling convention, where ``<Card title={t}/>`` compiles to
``Card(title=t)``::

    @component
    def Card(title: str, children: Component = Component()) -> Component:
        return card_template(title=title, children=children)
"""

from __future__ import annotations

import dataclasses
import inspect
from typing import Any, Callable, ClassVar

from hypebeast.runtime import Component, Renderable, render_into, render_to_string


class ComponentRecord(Renderable):
    """Base for classes produced by :func:`component`."""

    _function: ClassVar[Callable[..., Any]]

    def _fields(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}

    def to_component(self) -> Component:
        result = self._function(**self._fields())
        if isinstance(result, Component):
            return result
        return Component(render_to_string(result))

    def render(self, sink: list[str]) -> None:
        render_into(self._function(**self._fields()), sink)


def component(func: Callable[..., Any]) -> type[ComponentRecord]:
    """Build a record class from *func*'s signature."""
    fields: list[tuple[str, Any, Any]] = []
    for param in inspect.signature(func).parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            raise TypeError(f"component {func.__name__!r} cannot take *args or **kwargs")
        annotation = Any if param.annotation is param.empty else param.annotation
        kw_only = param.kind is param.KEYWORD_ONLY
        if param.default is param.empty:
            fields.append((param.name, annotation, dataclasses.field(kw_only=kw_only)))
        else:
            fields.append((
                param.name,
                annotation,
                dataclasses.field(default=param.default, kw_only=kw_only),
            ))

    record = dataclasses.make_dataclass(
        func.__name__,
        fields,
        bases=(ComponentRecord,),
        frozen=True,
        namespace={
            "_function": staticmethod(func),
            "__doc__": func.__doc__,
        },
    )
    # Belongs to the module that defined the function
    record.__module__ = func.__module__
    record.__qualname__ = func.__qualname__
    return record
