"""Token kinds and token representation for the TLA+ lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tlafmt.source import Span


class TokenKind(Enum):
    # Module structure
    MODULE = auto()
    EXTENDS = auto()
    SEPARATOR = auto()      # ---- (four or more dashes)
    MODULE_END = auto()     # ==== (four or more equals signs)

    # Unit keywords
    CONSTANT = auto()
    VARIABLE = auto()
    ASSUME = auto()
    RECURSIVE = auto()
    LOCAL = auto()
    INSTANCE = auto()
    WITH = auto()
    THEOREM = auto()

    # Expression keywords
    LET = auto()
    IN = auto()
    IF = auto()
    THEN = auto()
    ELSE = auto()
    CASE = auto()
    OTHER = auto()
    CHOOSE = auto()
    EXCEPT = auto()
    LAMBDA = auto()

    # Proof keywords
    PROOF = auto()
    BY = auto()
    ONLY = auto()
    OBVIOUS = auto()
    OMITTED = auto()
    QED = auto()
    DEF = auto()
    USE = auto()
    HIDE = auto()
    SUFFICES = auto()
    PROVE = auto()
    HAVE = auto()
    TAKE = auto()
    WITNESS = auto()
    PICK = auto()
    NEW = auto()
    DEFINE = auto()

    # Literals and names
    IDENTIFIER = auto()
    NUMERAL = auto()
    STRING = auto()
    STEP_LABEL = auto()     # <1>a.
    FAIRNESS = auto()       # WF_ / SF_

    # Operators: anything in the grammar tables, keyed by token value
    OPERATOR = auto()
    QUANTIFIER = auto()     # \A \E \AA \EE

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    RBRACKET_SUB = auto()   # ]_
    LBRACE = auto()
    RBRACE = auto()
    LANGLE = auto()         # <<
    RANGLE = auto()         # >>
    RANGLE_SUB = auto()     # >>_
    COMMA = auto()
    COLON = auto()
    DEF_EQ = auto()         # ==
    MAPS_TO = auto()        # |->
    ARROW = auto()          # ->
    SUBST = auto()          # <-
    BANG = auto()
    AT = auto()
    DOT = auto()
    BOX = auto()            # [] (temporal box and CASE arm separator)

    EXTRAMODULAR = auto()   # verbatim text around the module
    EOF = auto()


KEYWORDS: dict[str, TokenKind] = {
    "MODULE": TokenKind.MODULE,
    "EXTENDS": TokenKind.EXTENDS,
    "CONSTANT": TokenKind.CONSTANT,
    "CONSTANTS": TokenKind.CONSTANT,
    "VARIABLE": TokenKind.VARIABLE,
    "VARIABLES": TokenKind.VARIABLE,
    "ASSUME": TokenKind.ASSUME,
    "ASSUMPTION": TokenKind.ASSUME,
    "AXIOM": TokenKind.ASSUME,
    "RECURSIVE": TokenKind.RECURSIVE,
    "LOCAL": TokenKind.LOCAL,
    "INSTANCE": TokenKind.INSTANCE,
    "WITH": TokenKind.WITH,
    "THEOREM": TokenKind.THEOREM,
    "LEMMA": TokenKind.THEOREM,
    "PROPOSITION": TokenKind.THEOREM,
    "COROLLARY": TokenKind.THEOREM,
    "LET": TokenKind.LET,
    "IN": TokenKind.IN,
    "IF": TokenKind.IF,
    "THEN": TokenKind.THEN,
    "ELSE": TokenKind.ELSE,
    "CASE": TokenKind.CASE,
    "OTHER": TokenKind.OTHER,
    "CHOOSE": TokenKind.CHOOSE,
    "EXCEPT": TokenKind.EXCEPT,
    "LAMBDA": TokenKind.LAMBDA,
    "PROOF": TokenKind.PROOF,
    "BY": TokenKind.BY,
    "ONLY": TokenKind.ONLY,
    "OBVIOUS": TokenKind.OBVIOUS,
    "OMITTED": TokenKind.OMITTED,
    "QED": TokenKind.QED,
    "DEF": TokenKind.DEF,
    "DEFS": TokenKind.DEF,
    "USE": TokenKind.USE,
    "HIDE": TokenKind.HIDE,
    "SUFFICES": TokenKind.SUFFICES,
    "PROVE": TokenKind.PROVE,
    "HAVE": TokenKind.HAVE,
    "TAKE": TokenKind.TAKE,
    "WITNESS": TokenKind.WITNESS,
    "PICK": TokenKind.PICK,
    "NEW": TokenKind.NEW,
    "DEFINE": TokenKind.DEFINE,
}

# Word-shaped operators lexed as OPERATOR tokens rather than keywords.
WORD_OPERATORS = frozenset({"DOMAIN", "ENABLED", "SUBSET", "UNCHANGED", "UNION"})

QUANTIFIERS = frozenset({"\\A", "\\E", "\\AA", "\\EE"})

# Backslash-prefixed operator names, e.g. \in, \cup.
BACKSLASH_OPERATORS = frozenset({
    "\\approx", "\\asymp", "\\bigcirc", "\\bullet", "\\cap", "\\cdot",
    "\\circ", "\\cong", "\\cup", "\\div", "\\doteq", "\\equiv", "\\geq",
    "\\gg", "\\in", "\\intersect", "\\land", "\\leq", "\\ll", "\\lnot",
    "\\lor", "\\neg", "\\notin", "\\o", "\\odot", "\\ominus", "\\oplus",
    "\\oslash", "\\otimes", "\\prec", "\\preceq", "\\propto", "\\sim",
    "\\simeq", "\\sqcap", "\\sqcup", "\\sqsubset", "\\sqsubseteq",
    "\\sqsupset", "\\sqsupseteq", "\\star", "\\subset", "\\subseteq",
    "\\succ", "\\succeq", "\\supset", "\\supseteq", "\\union", "\\uplus",
    "\\wr", "\\X", "\\times",
})

# Symbolic operators and punctuation, longest first so the lexer can take
# the first prefix match.
SYMBOLS: tuple[str, ...] = tuple(sorted({
    "-+->", "<=>", "|->", "::=", "...", "(+)", "(-)", "(.)", "(/)", "(\\X)",
    "==", "=>", "=<", "<=", ">=", "/=", "~>", "->", "<-", "<<", ">>", "[]",
    "<>", "..", "::", ":=", "|-", "-|", "=|", "|=", "++", "--", "**", "//",
    "^^", "##", "$$", "??", "%%", "&&", "@@", "!!", "||", "/\\", "\\/",
    "^+", "^*", "^#", "<:", ":>",
    "=", "<", ">", "+", "-", "*", "/", "^", "%", "#", "$", "?", "&", "|",
    "~", "'", ".", ",", ":", "(", ")", "[", "]", "{", "}", "!", "@", "\\",
}, key=lambda s: (-len(s), s)))

PUNCTUATION: dict[str, TokenKind] = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "<<": TokenKind.LANGLE,
    ">>": TokenKind.RANGLE,
    ",": TokenKind.COMMA,
    ":": TokenKind.COLON,
    "==": TokenKind.DEF_EQ,
    "|->": TokenKind.MAPS_TO,
    "->": TokenKind.ARROW,
    "<-": TokenKind.SUBST,
    "!": TokenKind.BANG,
    "@": TokenKind.AT,
    ".": TokenKind.DOT,
    "[]": TokenKind.BOX,
}

BULLETS = frozenset({"/\\", "\\/"})


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    span: Span
    offset: int = 0

    def __repr__(self) -> str:
        return f"Token({self.kind.name}, {self.value!r}, {self.span})"

    def is_op(self, *values: str) -> bool:
        return self.kind == TokenKind.OPERATOR and self.value in values


class CommentKind(Enum):
    LINE = auto()   # \* to end of line
    BLOCK = auto()  # (* ... *), possibly nested


@dataclass(frozen=True)
class Comment:
    """A comment, collected beside the token stream.

    ``text`` includes the delimiters. ``column`` is the 1-indexed column the
    comment started at, which a block comment's continuation lines are
    relative to.
    """

    kind: CommentKind
    text: str
    span: Span
    offset: int = 0

    @property
    def column(self) -> int:
        return self.span.start_col

    @property
    def is_line(self) -> bool:
        return self.kind == CommentKind.LINE
