"""tlafmt: a width-aware source formatter for TLA+ modules."""

from tlafmt.errors import LexError, ParseError, SyntaxError  # noqa: A004
from tlafmt.formatter import FormatOptions, format, format_source, parse  # noqa: A004

__version__ = "0.1.0"

__all__ = [
    "FormatOptions",
    "LexError",
    "ParseError",
    "SyntaxError",
    "__version__",
    "format",
    "format_source",
    "parse",
]
