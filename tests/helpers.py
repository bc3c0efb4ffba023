"""Shared test helpers for the tlafmt test suite."""

from __future__ import annotations

from tlafmt.ast_nodes import Expr, Module, OperatorDef
from tlafmt.formatter import FormatOptions, format_source, parse
from tlafmt.lower import header_line, rule_line


def module(*lines: str, name: str = "Test") -> str:
    """Wrap body lines in a minimal module header and footer."""
    body = "".join(line + "\n" for line in lines)
    return f"---- MODULE {name} ----\n{body}====\n"


def expected(*lines: str, name: str = "Test") -> str:
    """The formatter's output for a module whose body formats to ``lines``."""
    body = "".join(line + "\n" for line in lines)
    return f"{header_line(name)}\n{body}{rule_line('=')}\n"


def parse_module(*lines: str) -> Module:
    return parse(module(*lines), "<test>")


def parse_expr(source: str) -> Expr:
    """Parse ``source`` as the body of a definition and return it."""
    unit = parse_module(f"X == {source}").units[0]
    assert isinstance(unit, OperatorDef)
    return unit.body


def fmt(source: str, **options) -> str:
    return format_source(source, FormatOptions(**options), "<test>")


def fmt_body(*lines: str, **options) -> str:
    """Format a module built from ``lines``."""
    return fmt(module(*lines), **options)
