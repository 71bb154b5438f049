"""Command-line interface for hypebeast.

Usage::

    hypebeast page.html                        # writes page.out.html
    hypebeast page.html -o dist/index.html     # explicit output path
    hypebeast page.html -c context.json        # render with JSON context
    hypebeast page.html --strategy format      # Format-String backend
    hypebeast page.html --emit-source          # print generated Python
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from hypebeast import __version__
from hypebeast.compiler import Compiler
from hypebeast.config import CompilerOptions, Convention, Strategy, find_config, load_options
from hypebeast.errors import HypebeastError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hypebeast",
        description="Compile an HTML template and render it to a file.",
    )
    parser.add_argument(
        "input",
        nargs="?",
        help="Path to the template file.",
    )
    parser.add_argument(
        "-o", "--output",
        help="Output HTML file path. Defaults to <input>.out.html.",
    )
    parser.add_argument(
        "-c", "--context",
        help="JSON file with the render context (a top-level object).",
    )
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in Strategy],
        help="Code generation strategy (default: from config, else buffer).",
    )
    parser.add_argument(
        "--convention",
        choices=[c.value for c in Convention],
        help="Component calling convention (default: from config, else positional).",
    )
    parser.add_argument(
        "--config",
        help="Options file (pyproject.toml or hypebeast.toml). "
             "Searched upward from the template when omitted.",
    )
    parser.add_argument(
        "--emit-source",
        action="store_true",
        help="Print the generated Python render function and exit.",
    )
    parser.add_argument(
        "-e", "--encoding",
        default="utf-8",
        help="Template and output encoding (default: %(default)s).",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print progress information.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def _resolve_options(args: argparse.Namespace, input_path: Path) -> CompilerOptions:
    config_path = Path(args.config) if args.config else find_config(input_path)
    options = load_options(config_path) if config_path else CompilerOptions()
    overrides = {}
    if args.strategy:
        overrides["strategy"] = args.strategy
    if args.convention:
        overrides["convention"] = args.convention
    return options.derive(**overrides) if overrides else options


def _load_context(path: str | None, encoding: str) -> dict:
    if not path:
        return {}
    data = json.loads(Path(path).read_text(encoding=encoding))
    if not isinstance(data, dict):
        raise HypebeastError(f"context file {path} must hold a JSON object")
    return data


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.input:
        parser.error("the following argument is required: input")

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    input_path = Path(args.input)
    if not input_path.is_file():
        print(f"Error: file not found: {input_path}", file=sys.stderr)
        return 1

    # Determine output path
    if args.output:
        output_path = Path(args.output)
    else:
        output_path = input_path.with_suffix(".out.html")

    try:
        options = _resolve_options(args, input_path)
        compiler = Compiler(options)
        if args.emit_source:
            template = compiler.compile_file(input_path, encoding=args.encoding)
            print(template.source, end="")
            return 0

        if args.verbose:
            print(f"Input:      {input_path}")
            print(f"Output:     {output_path}")
            print(f"Strategy:   {options.strategy.value}")
            print(f"Convention: {options.convention.value}")

        context = _load_context(args.context, args.encoding)
        compiler.render_file(input_path, output_path, context, encoding=args.encoding)
    except (HypebeastError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.verbose:
        print(f"Done. {output_path.stat().st_size} bytes written.")
    else:
        print(f"Rendered: {output_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
