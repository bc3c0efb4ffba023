"""Source file representation and span tracking for diagnostics."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Span:
    """A range within a source file.

    Lines and columns are 1-indexed; ``end_col`` is the column of the last
    character covered (inclusive).
    """

    file: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    def __str__(self) -> str:
        return f"{self.file}:{self.start_line}:{self.start_col}"

    @property
    def is_multiline(self) -> bool:
        return self.end_line > self.start_line
