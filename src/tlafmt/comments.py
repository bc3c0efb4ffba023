"""Comment placement helpers.

Block comments are opaque: their text is never re-wrapped. When a block
comment moves to a different column, every continuation line moves by the
same delta so that boxes and hand-aligned tables inside it survive.
"""

from __future__ import annotations


def shift_block(text: str, from_col: int, to_col: int) -> str:
    """Shift the continuation lines of ``text`` by ``to_col - from_col``.

    The first line is left alone; it is placed by whoever emits the comment.
    A negative delta removes at most the leading spaces a line actually has.
    """
    lines = text.split("\n")
    delta = to_col - from_col
    if delta == 0 or len(lines) == 1:
        return text
    shifted = [lines[0]]
    for line in lines[1:]:
        if not line.strip():
            shifted.append("")
        elif delta > 0:
            shifted.append(" " * delta + line)
        else:
            available = len(line) - len(line.lstrip(" "))
            shifted.append(line[min(-delta, available):])
    return "\n".join(shifted)


def first_line(node) -> int:
    """First source line of a node, counting its leading comments."""
    line = node.span.start_line
    leading = node.comments.leading
    if leading:
        line = min(line, leading[0].span.start_line)
    return line


def last_line(node) -> int:
    """Last source line of a node, counting its trailing comments."""
    line = node.span.end_line
    trailing = node.comments.trailing
    if trailing:
        line = max(line, trailing[-1].span.end_line)
    return line
