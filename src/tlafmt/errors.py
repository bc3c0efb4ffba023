"""Typed parse errors and Rust-style colored diagnostic rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tlafmt.source import Span


class Severity(Enum):
    ERROR = "error"


# ANSI color codes
_COLORS = {
    Severity.ERROR: "\033[1;31m",  # bold red
}
_BOLD = "\033[1m"
_BLUE = "\033[1;34m"
_RESET = "\033[0m"


@dataclass(frozen=True)
class DiagnosticLabel:
    """Points to a specific source location."""

    span: Span
    message: str


@dataclass(frozen=True)
class Suggestion:
    """A suggested fix."""

    message: str
    replacement: str


@dataclass
class Diagnostic:
    """A single diagnostic message with optional labels and suggestions."""

    severity: Severity
    code: str
    message: str
    labels: list[DiagnosticLabel] = field(default_factory=list)
    suggestions: list[Suggestion] = field(default_factory=list)


class DiagnosticRenderer:
    """Renders diagnostics in Rust-style format with colors.

    Source lines are looked up in ``sources`` first (for input that never
    touched the filesystem, e.g. stdin) and then read from disk.
    """

    def __init__(self, *, color: bool = True, sources: dict[str, str] | None = None) -> None:
        self.color = color
        self._file_cache: dict[str, list[str]] = {
            name: text.splitlines() for name, text in (sources or {}).items()
        }

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def _get_source_line(self, filename: str, line_num: int) -> str | None:
        """Load and cache source file, return the 1-indexed line."""
        if filename not in self._file_cache:
            try:
                path = Path(filename)
                if path.is_file():
                    self._file_cache[filename] = path.read_text().splitlines()
                else:
                    self._file_cache[filename] = []
            except OSError:
                self._file_cache[filename] = []
        lines = self._file_cache[filename]
        if 1 <= line_num <= len(lines):
            return lines[line_num - 1]
        return None

    def render(self, diag: Diagnostic) -> str:
        lines: list[str] = []
        sev = diag.severity
        color = _COLORS[sev]

        # Header: error[E201]: message
        lines.append(
            f"{self._c(color)}{sev.value}[{diag.code}]{self._c(_RESET)}"
            f"{self._c(_BOLD)}: {diag.message}{self._c(_RESET)}"
        )

        for label in diag.labels:
            span = label.span
            lines.append(f"  {self._c(_BLUE)}-->{self._c(_RESET)} {span}")
            gutter = f"{span.start_line:>4}"
            lines.append(f"  {self._c(_BLUE)}   |{self._c(_RESET)}")

            source_line = self._get_source_line(span.file, span.start_line)
            if source_line is not None:
                lines.append(
                    f"  {self._c(_BLUE)}{gutter} |{self._c(_RESET)} {source_line}"
                )

            if span.start_line == span.end_line:
                caret_len = max(1, span.end_col - span.start_col + 1)
            else:
                caret_len = 1
            padding = " " * (span.start_col - 1)
            carets = "^" * caret_len
            lines.append(
                f"  {self._c(_BLUE)}   |{self._c(_RESET)} "
                f"{padding}{self._c(color)}{carets}{self._c(_RESET)}"
            )

            if label.message:
                lines.append(
                    f"  {self._c(_BLUE)}   |{self._c(_RESET)}   "
                    f"{self._c(color)}{label.message}{self._c(_RESET)}"
                )

        for suggestion in diag.suggestions:
            lines.append(
                f"  {self._c(_BLUE)}try:{self._c(_RESET)} {suggestion.replacement}"
            )

        return "\n".join(lines)


# ── Parse errors ─────────────────────────────────────────────────


class LexErrorKind(Enum):
    UNTERMINATED_STRING = "E100"
    UNTERMINATED_COMMENT = "E101"
    INVALID_CHARACTER = "E102"


class SyntaxErrorKind(Enum):
    UNEXPECTED_TOKEN = "E200"
    MISSING_MODULE_HEADER = "E201"
    AMBIGUOUS_PRECEDENCE = "E202"
    MALFORMED_BULLET_LIST = "E203"
    TOO_DEEPLY_NESTED = "E204"


class ParseError(Exception):
    """A fatal error reading one module; no output is produced for it.

    ``expected``/``found`` are filled in where the parser knows them, so
    callers can build messages of the form "expected X, found Y".
    """

    def __init__(
        self,
        kind: LexErrorKind | SyntaxErrorKind,
        message: str,
        span: Span,
        offset: int = 0,
        *,
        expected: str | None = None,
        found: str | None = None,
        suggestion: Suggestion | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.span = span
        self.offset = offset
        self.expected = expected
        self.found = found
        self.suggestion = suggestion
        super().__init__(f"{span}: {message}")

    @property
    def code(self) -> str:
        return self.kind.value

    @property
    def line(self) -> int:
        return self.span.start_line

    @property
    def column(self) -> int:
        return self.span.start_col

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            severity=Severity.ERROR,
            code=self.code,
            message=self.message,
            labels=[DiagnosticLabel(span=self.span, message=self.kind.name.lower().replace("_", " "))],
            suggestions=[self.suggestion] if self.suggestion else [],
        )


class LexError(ParseError):
    """Unterminated string or comment, or a character outside the alphabet."""

    kind: LexErrorKind


class SyntaxError(ParseError):  # noqa: A001
    """The token stream does not form a module."""

    kind: SyntaxErrorKind


class RenderError(AssertionError):
    """A Doc tree the renderer cannot lay out; always a formatter defect."""
