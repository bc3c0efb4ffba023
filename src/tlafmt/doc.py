"""Layout document IR and its width-aware renderer.

A Doc is an immutable tree of layout primitives. Lowering builds one per
module; ``render`` walks it once with an explicit stack, deciding for each
Group whether it is laid out flat (every Line is a space) or broken (every
Line is a newline at the current indent).

``Comment`` is the one primitive that knows about source text: it places a
comment at the current column, shifting a block comment's continuation lines
with it, and after a line comment the next thing printed starts a new line.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from tlafmt.comments import shift_block
from tlafmt.errors import RenderError


class Bias(Enum):
    AUTO = "auto"
    FORCE_FLAT = "flat"
    FORCE_BROKEN = "broken"


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Line:
    """A space when flat, a newline plus indent when broken."""


@dataclass(frozen=True)
class HardLine:
    """Always a newline."""


@dataclass(frozen=True)
class Concat:
    parts: tuple[Doc, ...]


@dataclass(frozen=True)
class Nest:
    indent: int
    doc: Doc


@dataclass(frozen=True)
class Align:
    """Indent the subtree to the column where it starts."""

    doc: Doc


@dataclass(frozen=True)
class Group:
    doc: Doc
    bias: Bias = Bias.AUTO


@dataclass(frozen=True)
class Comment:
    text: str
    column: int  # 1-indexed source column of the comment's first character
    line_comment: bool = False


Doc = Union[Text, Line, HardLine, Concat, Nest, Align, Group, Comment]

LINE = Line()
HARDLINE = HardLine()
EMPTY = Concat(())


# ── Builders ─────────────────────────────────────────────────────


def text(value: str) -> Doc:
    return Text(value)


def concat(*docs: Doc) -> Doc:
    """Concatenate, flattening nested Concats and dropping empty text."""
    parts: list[Doc] = []
    for doc in docs:
        if isinstance(doc, Concat):
            parts.extend(doc.parts)
        elif isinstance(doc, Text) and not doc.text:
            continue
        else:
            parts.append(doc)
    if len(parts) == 1:
        return parts[0]
    return Concat(tuple(parts))


def join(sep: Doc, docs: list[Doc]) -> Doc:
    parts: list[Doc] = []
    for i, doc in enumerate(docs):
        if i:
            parts.append(sep)
        parts.append(doc)
    return concat(*parts)


def nest(indent: int, doc: Doc) -> Doc:
    return Nest(indent, doc)


def align(doc: Doc) -> Doc:
    return Align(doc)


def group(doc: Doc, bias: Bias = Bias.AUTO) -> Doc:
    return Group(doc, bias)


# ── Renderer ─────────────────────────────────────────────────────


class _Mode(Enum):
    FLAT = "flat"
    BREAK = "break"


@dataclass(frozen=True)
class _Frame:
    indent: int
    mode: _Mode
    doc: Doc


def _group_mode(bias: Bias, outer: _Mode) -> _Mode | None:
    """Mode a group takes without measuring, or None when it must measure."""
    if bias == Bias.FORCE_BROKEN:
        return _Mode.BREAK
    if bias == Bias.FORCE_FLAT or outer == _Mode.FLAT:
        return _Mode.FLAT
    return None


class Renderer:
    """Lays out a Doc within ``max_width`` columns."""

    def __init__(self, max_width: int = 80) -> None:
        self.max_width = max_width
        self.lines: list[str] = []
        self.line: list[str] = []
        self.col = 0
        self.pending_newline = False

    def render(self, doc: Doc) -> str:
        stack = [_Frame(0, _Mode.BREAK, doc)]
        while stack:
            frame = stack.pop()
            indent, mode, node = frame.indent, frame.mode, frame.doc
            if isinstance(node, Text):
                self._text(node.text, indent)
            elif isinstance(node, Concat):
                for part in reversed(node.parts):
                    stack.append(_Frame(indent, mode, part))
            elif isinstance(node, Line):
                if mode == _Mode.BREAK or self.pending_newline:
                    self._newline(indent)
                else:
                    self._text(" ", indent)
            elif isinstance(node, HardLine):
                self._newline(indent)
            elif isinstance(node, Nest):
                if indent + node.indent < 0:
                    raise RenderError(f"negative indent {indent + node.indent}")
                stack.append(_Frame(indent + node.indent, mode, node.doc))
            elif isinstance(node, Align):
                column = indent if self.pending_newline else self.col
                stack.append(_Frame(column, mode, node.doc))
            elif isinstance(node, Group):
                chosen = _group_mode(node.bias, mode)
                if chosen is None:
                    fits = self._fits(node.doc, indent, stack)
                    chosen = _Mode.FLAT if fits else _Mode.BREAK
                stack.append(_Frame(indent, chosen, node.doc))
            elif isinstance(node, Comment):
                self._comment(node, indent)
            else:
                raise RenderError(f"unknown doc node {node!r}")
        self._flush()
        return "\n".join(self.lines)

    # ── Output ───────────────────────────────────────────────────

    def _text(self, value: str, indent: int) -> None:
        if self.pending_newline:
            self._newline(indent)
        if not self.line:
            if not value.strip():
                return
            self.line.append(" " * self.col)
        self.line.append(value)
        self.col += len(value)

    def _newline(self, indent: int) -> None:
        self._flush()
        self.pending_newline = False
        self.col = indent

    def _flush(self) -> None:
        self.lines.append("".join(self.line).rstrip())
        self.line = []

    def _comment(self, node: Comment, indent: int) -> None:
        if self.pending_newline:
            self._newline(indent)
        if not self.line:
            self.line.append(" " * self.col)
        body = shift_block(node.text, node.column, self.col + 1)
        first, *rest = body.split("\n")
        self.line.append(first)
        self.col += len(first)
        for continuation in rest:
            self._flush()
            self.line = [continuation]
            self.col = len(continuation)
        if node.line_comment:
            self.pending_newline = True

    # ── Measurement ──────────────────────────────────────────────

    def _fits(self, doc: Doc, indent: int, rest: list[_Frame]) -> bool:
        """Whether ``doc`` laid out flat, plus what follows it up to the
        next line break, fits in the remaining width."""
        start = indent if self.pending_newline else self.col
        remaining = self.max_width - start
        todo: list[tuple[_Mode, Doc]] = [(_Mode.FLAT, doc)]
        rest_idx = len(rest) - 1
        while True:
            if not todo:
                if rest_idx < 0:
                    return True
                frame = rest[rest_idx]
                rest_idx -= 1
                todo.append((frame.mode, frame.doc))
                continue
            mode, node = todo.pop()
            if isinstance(node, Text):
                remaining -= len(node.text)
            elif isinstance(node, Concat):
                todo.extend((mode, part) for part in reversed(node.parts))
            elif isinstance(node, Line):
                if mode == _Mode.BREAK:
                    return True
                remaining -= 1
            elif isinstance(node, HardLine):
                return True
            elif isinstance(node, (Nest, Align)):
                todo.append((mode, node.doc))
            elif isinstance(node, Group):
                todo.append((_group_mode(node.bias, mode) or mode, node.doc))
            elif isinstance(node, Comment):
                first = node.text.split("\n", 1)[0]
                remaining -= len(first)
                if node.line_comment or "\n" in node.text:
                    return remaining >= 0
            if remaining < 0:
                return False


def render(doc: Doc, max_width: int = 80) -> str:
    """Render ``doc`` to text. Lines carry no trailing whitespace."""
    return Renderer(max_width).render(doc)
