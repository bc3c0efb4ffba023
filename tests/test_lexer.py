"""Tests for the TLA+ lexer."""

from __future__ import annotations

import pytest

from tlafmt.errors import LexError, LexErrorKind
from tlafmt.lexer import tokenize
from tlafmt.tokens import CommentKind, TokenKind


def lex(source: str) -> list[tuple[TokenKind, str]]:
    """Helper: lex source and return (kind, value) pairs, excluding EOF."""
    tokens, _ = tokenize(source)
    return [(t.kind, t.value) for t in tokens if t.kind != TokenKind.EOF]


def kinds(source: str) -> list[TokenKind]:
    """Helper: lex source and return just the token kinds, excluding EOF."""
    return [kind for kind, _ in lex(source)]


class TestLexerBasic:
    def test_empty_source(self):
        tokens, comments = tokenize("")
        assert len(tokens) == 1
        assert tokens[0].kind == TokenKind.EOF
        assert comments == []

    def test_identifier_and_numeral(self):
        assert lex("x1 42") == [(TokenKind.IDENTIFIER, "x1"), (TokenKind.NUMERAL, "42")]

    def test_keyword_plural_forms(self):
        assert lex("CONSTANTS N") == [(TokenKind.CONSTANT, "CONSTANTS"), (TokenKind.IDENTIFIER, "N")]
        assert kinds("VARIABLES x") == [TokenKind.VARIABLE, TokenKind.IDENTIFIER]
        assert kinds("LEMMA") == [TokenKind.THEOREM]

    def test_word_operators(self):
        assert lex("DOMAIN f") == [(TokenKind.OPERATOR, "DOMAIN"), (TokenKind.IDENTIFIER, "f")]
        assert kinds("UNCHANGED x") == [TokenKind.OPERATOR, TokenKind.IDENTIFIER]

    def test_string_literal(self):
        assert lex('"hello"') == [(TokenKind.STRING, '"hello"')]

    def test_string_with_escaped_quote(self):
        assert lex('"a\\"b"') == [(TokenKind.STRING, '"a\\"b"')]


class TestLexerOperators:
    def test_backslash_operator(self):
        assert lex("x \\in S") == [
            (TokenKind.IDENTIFIER, "x"),
            (TokenKind.OPERATOR, "\\in"),
            (TokenKind.IDENTIFIER, "S"),
        ]

    def test_bullets(self):
        assert lex("/\\ a \\/ b") == [
            (TokenKind.OPERATOR, "/\\"),
            (TokenKind.IDENTIFIER, "a"),
            (TokenKind.OPERATOR, "\\/"),
            (TokenKind.IDENTIFIER, "b"),
        ]

    def test_longest_match(self):
        assert lex("a <=> b")[1] == (TokenKind.OPERATOR, "<=>")
        assert lex("a => b")[1] == (TokenKind.OPERATOR, "=>")
        assert lex("a == b")[1] == (TokenKind.DEF_EQ, "==")

    def test_quantifier(self):
        assert kinds("\\E x") == [TokenKind.QUANTIFIER, TokenKind.IDENTIFIER]
        assert lex("\\AA x")[0] == (TokenKind.QUANTIFIER, "\\AA")

    def test_record_punctuation(self):
        assert kinds("[a |-> 1]") == [
            TokenKind.LBRACKET, TokenKind.IDENTIFIER, TokenKind.MAPS_TO,
            TokenKind.NUMERAL, TokenKind.RBRACKET,
        ]

    def test_action_subscripts(self):
        assert kinds("[Next]_vars") == [
            TokenKind.LBRACKET, TokenKind.IDENTIFIER, TokenKind.RBRACKET_SUB, TokenKind.IDENTIFIER,
        ]
        assert kinds("<<A>>_v") == [
            TokenKind.LANGLE, TokenKind.IDENTIFIER, TokenKind.RANGLE_SUB, TokenKind.IDENTIFIER,
        ]

    def test_box(self):
        assert lex("[]P") == [(TokenKind.BOX, "[]"), (TokenKind.IDENTIFIER, "P")]

    def test_fairness(self):
        assert lex("WF_vars(Next)")[:2] == [(TokenKind.FAIRNESS, "WF_"), (TokenKind.IDENTIFIER, "vars")]

    def test_prime(self):
        assert lex("x'") == [(TokenKind.IDENTIFIER, "x"), (TokenKind.OPERATOR, "'")]

    def test_step_label(self):
        assert lex("<1>a. x") == [(TokenKind.STEP_LABEL, "<1>a."), (TokenKind.IDENTIFIER, "x")]

    def test_less_than_is_not_a_label(self):
        assert kinds("x<1") == [TokenKind.IDENTIFIER, TokenKind.OPERATOR, TokenKind.NUMERAL]


class TestLexerModule:
    def test_header_and_footer(self):
        assert kinds("---- MODULE M ----\n====") == [
            TokenKind.SEPARATOR, TokenKind.MODULE, TokenKind.IDENTIFIER,
            TokenKind.SEPARATOR, TokenKind.MODULE_END,
        ]

    def test_preamble_is_verbatim(self):
        tokens, _ = tokenize("notes (* not a comment\n---- MODULE M ----\n====")
        assert tokens[0].kind == TokenKind.EXTRAMODULAR
        assert tokens[0].value == "notes (* not a comment\n"

    def test_epilogue_is_verbatim(self):
        result = lex("---- MODULE M ----\n====\ntrailing \" text\n")
        assert result[-1] == (TokenKind.EXTRAMODULAR, "\ntrailing \" text\n")

    def test_blank_epilogue_dropped(self):
        assert kinds("---- MODULE M ----\n====\n\n")[-1] == TokenKind.MODULE_END

    def test_nested_module_footer_does_not_end_lexing(self):
        source = "---- MODULE A ----\n---- MODULE B ----\n====\nx\n===="
        assert kinds(source).count(TokenKind.MODULE_END) == 2
        assert TokenKind.EXTRAMODULAR not in kinds(source)


class TestLexerComments:
    def test_line_comment(self):
        tokens, comments = tokenize("x \\* note\ny")
        assert [t.value for t in tokens[:-1]] == ["x", "y"]
        assert len(comments) == 1
        assert comments[0].kind == CommentKind.LINE
        assert comments[0].text == "\\* note"
        assert comments[0].column == 3

    def test_nested_block_comment(self):
        tokens, comments = tokenize("(* a (* b *) c *) x")
        assert [t.value for t in tokens[:-1]] == ["x"]
        assert comments[0].text == "(* a (* b *) c *)"
        assert not comments[0].is_line

    def test_multiline_block_comment_span(self):
        _, comments = tokenize("  (* one\n     two *)")
        span = comments[0].span
        assert (span.start_line, span.start_col, span.end_line) == (1, 3, 2)


class TestLexerSpans:
    def test_columns_are_one_indexed_inclusive(self):
        tokens, _ = tokenize("ab  cd")
        span = tokens[1].span
        assert (span.start_line, span.start_col, span.end_col) == (1, 5, 6)

    def test_lines(self):
        tokens, _ = tokenize("a\n  b")
        assert tokens[1].span.start_line == 2
        assert tokens[1].span.start_col == 3

    def test_offset(self):
        tokens, _ = tokenize("a\n  b")
        assert tokens[1].offset == 4


class TestLexerErrors:
    def test_unterminated_nested_comment(self):
        with pytest.raises(LexError) as exc:
            tokenize("(* outer (* inner *)")
        assert exc.value.kind == LexErrorKind.UNTERMINATED_COMMENT
        assert exc.value.code == "E101"
        assert (exc.value.line, exc.value.column) == (1, 1)

    def test_unterminated_string(self):
        with pytest.raises(LexError) as exc:
            tokenize('x == "abc')
        assert exc.value.kind == LexErrorKind.UNTERMINATED_STRING
        assert exc.value.column == 6

    def test_string_cannot_span_lines(self):
        with pytest.raises(LexError) as exc:
            tokenize('"ab\ncd"')
        assert exc.value.kind == LexErrorKind.UNTERMINATED_STRING

    def test_invalid_character(self):
        with pytest.raises(LexError) as exc:
            tokenize("a ` b")
        assert exc.value.kind == LexErrorKind.INVALID_CHARACTER
        assert exc.value.code == "E102"
        assert exc.value.column == 3

    def test_unknown_backslash_operator(self):
        with pytest.raises(LexError) as exc:
            tokenize("a \\foo b")
        assert exc.value.kind == LexErrorKind.INVALID_CHARACTER
        assert "\\foo" in exc.value.message
