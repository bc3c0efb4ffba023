"""Lexer for TLA+ modules.

Produces a stream of positioned tokens plus a side channel of comments.
Block comments nest; line comments run to the end of the line. Text before
the module header and after the closing ``====`` is not lexed and is passed
through as EXTRAMODULAR tokens.
"""

from __future__ import annotations

import re

from tlafmt.errors import LexError, LexErrorKind
from tlafmt.source import Span
from tlafmt.tokens import (
    BACKSLASH_OPERATORS,
    KEYWORDS,
    PUNCTUATION,
    QUANTIFIERS,
    SYMBOLS,
    WORD_OPERATORS,
    Comment,
    CommentKind,
    Token,
    TokenKind,
)

_HEADER_RE = re.compile(r"^[ \t]*-{4,}[ \t]*MODULE\b", re.MULTILINE)
_STEP_LABEL_RE = re.compile(r"<(\d+|\*|\+)>[A-Za-z0-9_]*\.*")
_FAIRNESS_PREFIXES = ("WF_", "SF_")

# Characters after which a "<" cannot begin a proof step label.
_VALUE_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_)]}'")


class Lexer:
    """Tokenizes TLA+ source code."""

    def __init__(self, source: str, filename: str = "<stdin>") -> None:
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.col = 1
        self.module_depth = 0
        self.tokens: list[Token] = []
        self.comments: list[Comment] = []

    def lex(self) -> tuple[list[Token], list[Comment]]:
        """Tokenize the entire source and return (tokens, comments)."""
        self._lex_preamble()
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch in " \t\r\n\f":
                self._advance()
            elif ch == "\\" and self._peek(1) == "*":
                self._lex_line_comment()
            elif ch == "(" and self._peek(1) == "*":
                self._lex_block_comment()
            elif ch == '"':
                self._lex_string()
            elif ch == "-" and self._starts_with("----"):
                self._lex_rule("-", TokenKind.SEPARATOR)
            elif ch == "=" and self._starts_with("===="):
                self._lex_rule("=", TokenKind.MODULE_END)
                self.module_depth -= 1
                if self.module_depth <= 0:
                    self._lex_epilogue()
                    break
            elif ch == "<" and self._at_step_label():
                self._lex_step_label()
            elif ch.isdigit():
                self._lex_numeral()
            elif ch.isascii() and (ch.isalpha() or ch == "_"):
                self._lex_identifier()
            elif ch == "\\" and self._peek(1).isascii() and self._peek(1).isalpha():
                self._lex_backslash_word()
            else:
                self._lex_symbol()

        self._emit(TokenKind.EOF, "", self.line, self.col, self.pos)
        return self.tokens, self.comments

    # ── Helpers ───────────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return "\0"

    def _starts_with(self, text: str) -> bool:
        return self.source.startswith(text, self.pos)

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _advance_by(self, count: int) -> None:
        for _ in range(count):
            self._advance()

    def _span_from(self, start_line: int, start_col: int) -> Span:
        end_col = self.col - 1 if self.col > 1 else 1
        return Span(self.filename, start_line, start_col, self.line, end_col)

    def _emit(self, kind: TokenKind, value: str, start_line: int, start_col: int, start_pos: int) -> Token:
        tok = Token(kind, value, self._span_from(start_line, start_col), start_pos)
        self.tokens.append(tok)
        return tok

    def _error(self, kind: LexErrorKind, message: str, line: int, col: int, offset: int) -> LexError:
        span = Span(self.filename, line, col, line, col)
        return LexError(kind, message, span, offset)

    # ── Extramodular text ─────────────────────────────────────────

    def _lex_preamble(self) -> None:
        match = _HEADER_RE.search(self.source)
        if match is None or match.start() == 0:
            return
        text = self.source[: match.start()]
        self._advance_by(len(text))
        self.tokens.append(Token(
            TokenKind.EXTRAMODULAR, text,
            Span(self.filename, 1, 1, max(1, self.line - 1), 1), 0,
        ))

    def _lex_epilogue(self) -> None:
        start_line, start_col, start_pos = self.line, self.col, self.pos
        text = self.source[self.pos:]
        if not text.strip():
            self._advance_by(len(text))
            return
        self._advance_by(len(text))
        self._emit(TokenKind.EXTRAMODULAR, text, start_line, start_col, start_pos)

    # ── Comments ──────────────────────────────────────────────────

    def _lex_line_comment(self) -> None:
        start_line, start_col, start_pos = self.line, self.col, self.pos
        while self.pos < len(self.source) and self.source[self.pos] != "\n":
            self._advance()
        text = self.source[start_pos:self.pos].rstrip()
        self.comments.append(Comment(
            CommentKind.LINE, text, self._span_from(start_line, start_col), start_pos,
        ))

    def _lex_block_comment(self) -> None:
        start_line, start_col, start_pos = self.line, self.col, self.pos
        depth = 0
        while self.pos < len(self.source):
            if self._starts_with("(*"):
                depth += 1
                self._advance_by(2)
            elif self._starts_with("*)"):
                depth -= 1
                self._advance_by(2)
                if depth == 0:
                    text = self.source[start_pos:self.pos]
                    self.comments.append(Comment(
                        CommentKind.BLOCK, text, self._span_from(start_line, start_col), start_pos,
                    ))
                    return
            else:
                self._advance()
        raise self._error(
            LexErrorKind.UNTERMINATED_COMMENT,
            "unterminated block comment",
            start_line, start_col, start_pos,
        )

    # ── Literals and names ────────────────────────────────────────

    def _lex_string(self) -> None:
        start_line, start_col, start_pos = self.line, self.col, self.pos
        self._advance()  # opening quote
        while True:
            ch = self._peek()
            if self.pos >= len(self.source) or ch == "\n":
                raise self._error(
                    LexErrorKind.UNTERMINATED_STRING,
                    "unterminated string literal",
                    start_line, start_col, start_pos,
                )
            self._advance()
            if ch == "\\" and self.pos < len(self.source) and self._peek() != "\n":
                self._advance()
            elif ch == '"':
                break
        text = self.source[start_pos:self.pos]
        self._emit(TokenKind.STRING, text, start_line, start_col, start_pos)

    def _lex_numeral(self) -> None:
        start_line, start_col, start_pos = self.line, self.col, self.pos
        while self._peek().isdigit():
            self._advance()
        text = self.source[start_pos:self.pos]
        self._emit(TokenKind.NUMERAL, text, start_line, start_col, start_pos)

    def _lex_identifier(self) -> None:
        start_line, start_col, start_pos = self.line, self.col, self.pos
        if self.source.startswith(_FAIRNESS_PREFIXES, self.pos):
            self._advance_by(3)
            self._emit(TokenKind.FAIRNESS, self.source[start_pos:self.pos], start_line, start_col, start_pos)
            return
        while self._peek().isascii() and (self._peek().isalnum() or self._peek() == "_"):
            self._advance()
        word = self.source[start_pos:self.pos]
        if word in KEYWORDS:
            kind = KEYWORDS[word]
            if kind == TokenKind.MODULE:
                self.module_depth += 1
        elif word in WORD_OPERATORS:
            kind = TokenKind.OPERATOR
        else:
            kind = TokenKind.IDENTIFIER
        self._emit(kind, word, start_line, start_col, start_pos)

    def _lex_backslash_word(self) -> None:
        start_line, start_col, start_pos = self.line, self.col, self.pos
        self._advance()  # backslash
        while self._peek().isascii() and self._peek().isalpha():
            self._advance()
        word = self.source[start_pos:self.pos]
        if word in QUANTIFIERS:
            self._emit(TokenKind.QUANTIFIER, word, start_line, start_col, start_pos)
        elif word in BACKSLASH_OPERATORS:
            self._emit(TokenKind.OPERATOR, word, start_line, start_col, start_pos)
        else:
            raise self._error(
                LexErrorKind.INVALID_CHARACTER,
                f"unknown operator {word!r}",
                start_line, start_col, start_pos,
            )

    def _at_step_label(self) -> bool:
        if self.pos > 0 and self.source[self.pos - 1] in _VALUE_CHARS:
            return False
        return _STEP_LABEL_RE.match(self.source, self.pos) is not None

    def _lex_step_label(self) -> None:
        start_line, start_col, start_pos = self.line, self.col, self.pos
        match = _STEP_LABEL_RE.match(self.source, self.pos)
        assert match is not None
        self._advance_by(match.end() - match.start())
        self._emit(TokenKind.STEP_LABEL, match.group(0), start_line, start_col, start_pos)

    # ── Operators and punctuation ─────────────────────────────────

    def _lex_rule(self, ch: str, kind: TokenKind) -> None:
        start_line, start_col, start_pos = self.line, self.col, self.pos
        while self._peek() == ch:
            self._advance()
        self._emit(kind, self.source[start_pos:self.pos], start_line, start_col, start_pos)

    def _lex_symbol(self) -> None:
        start_line, start_col, start_pos = self.line, self.col, self.pos
        for sym in SYMBOLS:
            if self._starts_with(sym):
                break
        else:
            raise self._error(
                LexErrorKind.INVALID_CHARACTER,
                f"invalid character {self.source[self.pos]!r}",
                start_line, start_col, start_pos,
            )
        self._advance_by(len(sym))
        if sym in ("]", ">>") and self._peek() == "_":
            self._advance()
            kind = TokenKind.RBRACKET_SUB if sym == "]" else TokenKind.RANGLE_SUB
            self._emit(kind, sym + "_", start_line, start_col, start_pos)
            return
        kind = PUNCTUATION.get(sym, TokenKind.OPERATOR)
        self._emit(kind, sym, start_line, start_col, start_pos)


def tokenize(source: str, filename: str = "<stdin>") -> tuple[list[Token], list[Comment]]:
    """Lex ``source`` into tokens and comments. Raises LexError."""
    return Lexer(source, filename).lex()
