"""Static precedence, associativity and fixity tables for TLA+ operators.

Each operator has a precedence range ``[lo, hi]``. Two adjacent operators
whose ranges are disjoint are ordered by the ranges; ranges that overlap with
neither strictly containing the other are ambiguous and must be
parenthesized by the author. The numbers follow the operator table of the
TLA+ book; set membership and the basic set operators share a level so that
``a \\in b \\cup c`` has to be written with explicit parentheses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Fixity(Enum):
    PREFIX = "prefix"
    INFIX = "infix"
    POSTFIX = "postfix"


class Assoc(Enum):
    LEFT = "left"
    NONE = "none"


class Relation(Enum):
    """How an operator relates to the operator on its left."""

    TIGHTER = "tighter"      # binds into the left operator's right operand
    LOOSER = "looser"        # the left operator's expression is complete
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class OpInfo:
    symbol: str
    fixity: Fixity
    lo: int
    hi: int
    assoc: Assoc = Assoc.NONE
    canonical: str = ""  # shared by synonyms such as /\ and \land

    def strictly_contains(self, other: OpInfo) -> bool:
        return (
            self.lo <= other.lo and other.hi <= self.hi
            and (self.lo, self.hi) != (other.lo, other.hi)
        )


def _table(fixity: Fixity, rows: list[tuple[tuple[str, ...], int, int, Assoc]]) -> dict[str, OpInfo]:
    table: dict[str, OpInfo] = {}
    for symbols, lo, hi, assoc in rows:
        for sym in symbols:
            table[sym] = OpInfo(sym, fixity, lo, hi, assoc, _SYNONYMS.get(sym, sym))
    return table


_L = Assoc.LEFT
_N = Assoc.NONE

# Alternative spellings of one operator.
_SYNONYMS = {
    "\\land": "/\\", "\\lor": "\\/", "\\lnot": "~", "\\neg": "~",
    "\\equiv": "<=>", "#": "/=", "=<": "<=", "\\leq": "<=", "\\geq": ">=",
    "\\union": "\\cup", "\\intersect": "\\cap", "\\times": "\\X",
    "\\oplus": "(+)", "\\ominus": "(-)", "\\odot": "(.)", "\\otimes": "(\\X)",
    "\\oslash": "(/)", "\\circ": "\\o",
}


PREFIX_OPS: dict[str, OpInfo] = _table(Fixity.PREFIX, [
    (("~", "\\lnot", "\\neg"), 4, 4, _N),
    (("[]", "<>"), 4, 15, _N),
    (("ENABLED", "UNCHANGED"), 4, 15, _N),
    (("SUBSET", "UNION"), 8, 8, _N),
    (("DOMAIN",), 9, 9, _N),
    (("-",), 12, 12, _N),
])


INFIX_OPS: dict[str, OpInfo] = _table(Fixity.INFIX, [
    (("=>",), 1, 1, _N),
    (("<=>", "\\equiv", "~>", "-+->"), 2, 2, _N),
    (("/\\", "\\/", "\\land", "\\lor"), 3, 3, _L),
    ((
        "=", "/=", "#", "<", ">", "<=", "=<", ">=", "\\leq", "\\geq",
        "\\subseteq", "\\subset", "\\supseteq", "\\supset",
        "\\sqsubset", "\\sqsubseteq", "\\sqsupset", "\\sqsupseteq",
        "\\prec", "\\preceq", "\\succ", "\\succeq", "\\ll", "\\gg",
        "\\sim", "\\simeq", "\\approx", "\\asymp", "\\cong", "\\doteq",
        "\\propto", "|-", "-|", "|=", "=|", ":=", "::=",
    ), 5, 5, _N),
    (("\\in", "\\notin"), 5, 6, _N),
    (("\\cup", "\\union", "\\cap", "\\intersect", "\\"), 6, 8, _L),
    (("@@",), 6, 6, _L),
    ((":>", "<:"), 7, 7, _N),
    (("..", "..."), 9, 9, _N),
    (("!!", "\\sqcap", "\\sqcup", "\\uplus"), 9, 13, _N),
    (("##", "$", "$$", "??"), 9, 13, _L),
    (("\\wr",), 9, 14, _N),
    (("+", "++", "(+)", "\\oplus"), 10, 10, _L),
    (("%", "|"), 10, 11, _N),
    (("%%", "||"), 10, 11, _L),
    (("\\X", "\\times"), 10, 13, _L),
    (("-", "--", "(-)", "\\ominus"), 11, 11, _L),
    ((
        "*", "**", "&", "&&", "(.)", "(\\X)", "\\o", "\\circ", "\\odot",
        "\\otimes", "\\bigcirc", "\\bullet", "\\star",
    ), 13, 13, _L),
    (("/", "//", "(/)", "\\div", "\\oslash"), 13, 13, _N),
    (("\\cdot",), 5, 14, _L),
    (("^", "^^"), 14, 14, _N),
])


POSTFIX_OPS: dict[str, OpInfo] = _table(Fixity.POSTFIX, [
    (("'", "^+", "^*", "^#"), 15, 15, _N),
])


def relate(left: OpInfo, right: OpInfo) -> Relation:
    """Decide whether ``right`` binds into the right operand of ``left``.

    ``left`` may be an infix or prefix operator whose operand is being
    parsed; ``right`` is the infix or postfix operator that follows.
    """
    if right.lo > left.hi:
        return Relation.TIGHTER
    if right.hi < left.lo:
        return Relation.LOOSER
    if (
        left.fixity == Fixity.INFIX
        and right.canonical == left.canonical
        and left.assoc == Assoc.LEFT
    ):
        return Relation.LOOSER
    if left.strictly_contains(right):
        return Relation.TIGHTER
    if right.strictly_contains(left):
        return Relation.LOOSER
    return Relation.AMBIGUOUS
