"""Formatting entry points.

``parse`` turns source text into a Module, ``format`` lays a Module out
again, and ``format_source`` composes the two. Nothing here prints or
touches the filesystem; errors surface as ``ParseError``.
"""

from __future__ import annotations

from dataclasses import dataclass

from tlafmt.ast_nodes import Module
from tlafmt.doc import render
from tlafmt.lexer import tokenize
from tlafmt.lower import lower
from tlafmt.parser import DEFAULT_MAX_DEPTH, Parser

LINE_WIDTH = 80


@dataclass(frozen=True)
class FormatOptions:
    """Layout knobs threaded through lowering and rendering.

    ``collapse_single_junctions`` drops the bullet of a one-item ``/\\`` or
    ``\\/`` list; by default such lists keep it. ``max_width`` bounds every
    line except the module header and rule lines, which are always 80
    columns wide.
    """

    max_width: int = LINE_WIDTH
    indent: int = 4
    collapse_single_junctions: bool = False
    max_depth: int = DEFAULT_MAX_DEPTH


def parse(source: str, filename: str = "<stdin>", *, max_depth: int = DEFAULT_MAX_DEPTH) -> Module:
    """Parse one module. Raises LexError or SyntaxError."""
    tokens, comments = tokenize(source, filename)
    return Parser(tokens, comments, filename, max_depth=max_depth).parse()


def format(module: Module, options: FormatOptions | None = None) -> str:  # noqa: A001
    """Lay out ``module``; the result ends with exactly one newline."""
    options = options or FormatOptions()
    return render(lower(module, options), options.max_width).rstrip("\n") + "\n"


def format_source(
    source: str,
    options: FormatOptions | None = None,
    filename: str = "<stdin>",
) -> str:
    options = options or FormatOptions()
    return format(parse(source, filename, max_depth=options.max_depth), options)
