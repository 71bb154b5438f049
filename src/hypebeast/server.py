"""FastAPI web service that renders templates from a template directory.

Template expressions are Python code, so templates are only ever read from
the server's own template directory; clients send the render context.

Endpoints::

    GET  /health              Health check.
    GET  /strategies          List code generation strategies and conventions.
    GET  /templates           List available template names.
    POST /render/{name}       Render a template with a JSON context, returns HTML.
    GET  /compile/{name}      Generated Python source and segments of a template.

Run::

    HYPEBEAST_TEMPLATES=./templates uvicorn hypebeast.server:app --port 8000
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse

from hypebeast import __version__
from hypebeast.compiler import Compiler, Template, segment_summary
from hypebeast.config import CompilerOptions, Convention, Strategy
from hypebeast.errors import HypebeastError

TEMPLATE_SUFFIX = ".html"


class TemplateStore:
    """Compile templates from *root* on first use and keep them."""

    def __init__(self, root: Path, compiler: Compiler) -> None:
        self.root = root.resolve()
        self.compiler = compiler
        self._cache: dict[str, Template] = {}

    def names(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            p.relative_to(self.root).with_suffix("").as_posix()
            for p in self.root.rglob(f"*{TEMPLATE_SUFFIX}")
        )

    def get(self, name: str) -> Template:
        if name in self._cache:
            return self._cache[name]
        path = (self.root / f"{name}{TEMPLATE_SUFFIX}").resolve()
        if not path.is_relative_to(self.root) or not path.is_file():
            raise HTTPException(status_code=404, detail=f"template not found: {name}")
        template = self.compiler.compile_file(path)
        self._cache[name] = template
        return template


def create_app(template_dir: Path, options: Optional[CompilerOptions] = None) -> FastAPI:
    """Build the service for the templates under *template_dir*."""
    store = TemplateStore(template_dir, Compiler(options))
    app = FastAPI(
        title="hypebeast",
        description="HTML template rendering service",
        version=__version__,
    )
    app.state.templates = store

    @app.exception_handler(HypebeastError)
    async def hypebeast_error_handler(_request: Request, exc: HypebeastError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    @app.get("/strategies")
    async def list_strategies() -> dict[str, Any]:
        """List available strategies and the active configuration."""
        active = store.compiler.options
        return {
            "strategies": [s.value for s in Strategy],
            "conventions": [c.value for c in Convention],
            "active": {
                "strategy": active.strategy.value,
                "convention": active.convention.value,
            },
        }

    @app.get("/templates")
    async def list_templates() -> dict[str, list[str]]:
        """List template names available for rendering."""
        return {"templates": store.names()}

    @app.post("/render/{name:path}", response_class=HTMLResponse)
    async def render(
        name: str,
        context: dict[str, Any] = Body(default_factory=dict),
    ) -> HTMLResponse:
        """Render template *name* with the JSON object in the request body.

        - **name**: template path relative to the template directory, no suffix
        - **body**: names visible to the template's expressions
        """
        template = store.get(name)
        return HTMLResponse(content=template.render_to_string(**context))

    @app.get("/compile/{name:path}")
    async def compile_template(name: str) -> dict[str, Any]:
        """Return the generated Python source and segments of template *name*."""
        template = store.get(name)
        return {
            "source": template.source,
            "segments": segment_summary(template.segments),
            "size_hint": template.size_hint,
        }

    return app


app = create_app(Path(os.environ.get("HYPEBEAST_TEMPLATES", "templates")))
