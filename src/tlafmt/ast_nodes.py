"""AST node definitions for TLA+ modules.

Nodes compare structurally: spans, attached comments and bullet columns are
excluded from equality so that a module and its formatted re-parse compare
equal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from tlafmt.source import Span
from tlafmt.tokens import Comment


@dataclass(frozen=True)
class Attached:
    """Comments owned by a node: before its first token, after its last."""

    leading: tuple[Comment, ...] = ()
    trailing: tuple[Comment, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.leading or self.trailing)


NO_COMMENTS = Attached()


def _span() -> Any:
    return field(compare=False, kw_only=True)


def _comments() -> Any:
    return field(default=NO_COMMENTS, compare=False, kw_only=True)


# ── Expressions ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Ident:
    name: str  # may be instance-qualified, e.g. "M!Op"
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Numeral:
    value: str
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class StringLit:
    value: str  # including quotes, as written
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Parens:
    expr: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class PrefixOp:
    op: str
    operand: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class InfixOp:
    left: Expr
    op: str
    right: Expr
    span: Span = _span()
    op_span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class PostfixOp:
    operand: Expr
    op: str
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Apply:
    """Operator application ``Op(a, b)``."""

    name: str
    args: list[Expr]
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class FunctionApply:
    """Function application ``f[a, b]``."""

    fn: Expr
    args: list[Expr]
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class FieldAccess:
    record: Expr
    name: str
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class JunctionItem:
    expr: Expr
    column: int = field(compare=False)  # source column of the bullet
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class JunctionList:
    op: str  # "/\\" or "\\/"
    items: list[JunctionItem]
    span: Span = _span()
    comments: Attached = _comments()

    @property
    def column(self) -> int:
        return self.items[0].column


@dataclass(frozen=True)
class Bound:
    """Bound variables: ``x, y \\in S``, ``<<a, b>> \\in S`` or bare ``x``."""

    names: list[str]
    domain: Expr | None = None
    is_tuple: bool = False
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Quantifier:
    quantifier: str  # \A \E \AA \EE
    bounds: list[Bound]
    body: Expr
    span: Span = _span()
    comments: Attached = _comments()

    @property
    def is_bounded(self) -> bool:
        return all(b.domain is not None for b in self.bounds)


@dataclass(frozen=True)
class Choose:
    bound: Bound
    body: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class SetEnum:
    items: list[Expr]
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class SetFilter:
    """``{x \\in S : P}``"""

    bound: Bound
    predicate: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class SetMap:
    """``{e : x \\in S}``"""

    expr: Expr
    bounds: list[Bound]
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class FunctionConstruct:
    """``[x \\in S |-> e]``"""

    bounds: list[Bound]
    body: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class FunctionSet:
    """``[S -> T]``"""

    domain: Expr
    codomain: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class RecordField:
    name: str
    value: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class RecordConstruct:
    """``[a |-> 1, b |-> 2]``"""

    fields: list[RecordField]
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class RecordSet:
    """``[a : S, b : T]``"""

    fields: list[RecordField]
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class ExceptPath:
    """One selector after ``!``: a field name or a bracketed index list."""

    field_name: str | None = None
    index: list[Expr] | None = None


@dataclass(frozen=True)
class ExceptUpdate:
    path: list[ExceptPath]
    value: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Except:
    """``[f EXCEPT ![a] = x, !.b = y]``"""

    fn: Expr
    updates: list[ExceptUpdate]
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class TupleConstruct:
    items: list[Expr]
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class ActionExpr:
    """``[A]_v`` (box) or ``<<A>>_v`` (angle)."""

    angle: bool
    action: Expr
    subscript: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Fairness:
    """``WF_v(A)`` or ``SF_v(A)``."""

    kind: str  # "WF_" or "SF_"
    subscript: Expr
    action: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class LetIn:
    defs: list[Unit]
    body: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class IfThenElse:
    cond: Expr
    then: Expr
    else_: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class CaseArm:
    guard: Expr | None  # None for OTHER
    value: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Case:
    arms: list[CaseArm]
    other: CaseArm | None = None
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Lambda:
    params: list[str]
    body: Expr
    span: Span = _span()
    comments: Attached = _comments()


Expr = Union[
    Ident, Numeral, StringLit, Parens, PrefixOp, InfixOp, PostfixOp, Apply,
    FunctionApply, FieldAccess, JunctionList, Quantifier, Choose, SetEnum,
    SetFilter, SetMap, FunctionConstruct, FunctionSet, RecordConstruct,
    RecordSet, Except, TupleConstruct, ActionExpr, Fairness, LetIn,
    IfThenElse, Case, Lambda,
]


# ── Proofs ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class NewDecl:
    """``NEW [CONSTANT|VARIABLE|STATE|ACTION|TEMPORAL] x [\\in S]``."""

    level: str | None
    name: str
    domain: Expr | None = None
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class AssumeProve:
    assumptions: list[Expr | NewDecl]
    conclusion: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class LeafProof:
    """``BY [ONLY] facts [DEF names]``, ``OBVIOUS`` or ``OMITTED``."""

    keyword: str
    facts: list[Expr] = field(default_factory=list)
    defs: list[str] = field(default_factory=list)
    only: bool = False
    has_proof_keyword: bool = False
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class ProofStep:
    """``<n>label [keyword] statement`` followed by an optional proof.

    ``keyword`` is the step form (QED, SUFFICES, CASE, HAVE, TAKE, WITNESS,
    PICK, USE, HIDE, DEFINE) or None for a plain assertion.
    """

    label: str
    keyword: str | None
    statement: Expr | AssumeProve | None = None
    bounds: list[Bound] = field(default_factory=list)
    exprs: list[Expr] = field(default_factory=list)
    defs: list[Unit] = field(default_factory=list)
    leaf: LeafProof | None = None
    proof: Proof | None = None
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class StepProof:
    steps: list[ProofStep]
    has_proof_keyword: bool = False
    span: Span = _span()
    comments: Attached = _comments()


Proof = Union[LeafProof, StepProof]


# ── Units ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class OpDecl:
    """A declared name with arity, e.g. ``N`` or ``Op(_, _)``."""

    name: str
    arity: int = 0


@dataclass(frozen=True)
class Constants:
    decls: list[OpDecl]
    keyword: str = "CONSTANT"
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Variables:
    names: list[str]
    keyword: str = "VARIABLE"
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Recursive:
    decls: list[OpDecl]
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Assume:
    expr: Expr
    keyword: str = "ASSUME"
    name: str | None = None
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class OperatorDef:
    """An operator or function definition.

    ``form`` is "operator" (``F(a) == e``), "function" (``f[x \\in S] == e``),
    "infix" (``a ++ b == e``), "prefix" (``-. a == e``) or "postfix"
    (``a ^+ == e``). ``recursive`` is set when a preceding RECURSIVE unit
    declared the name.
    """

    name: str
    params: list[OpDecl]
    body: Expr
    form: str = "operator"
    bounds: list[Bound] = field(default_factory=list)
    local: bool = False
    recursive: bool = False
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Substitution:
    name: str
    value: Expr
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Instance:
    module: str
    substitutions: list[Substitution] = field(default_factory=list)
    local: bool = False
    name: str | None = None  # set for ``N(p) == INSTANCE M``
    params: list[OpDecl] = field(default_factory=list)
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Theorem:
    keyword: str  # THEOREM, LEMMA, PROPOSITION, COROLLARY
    statement: Expr | AssumeProve
    name: str | None = None
    proof: Proof | None = None
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class UseOrHide:
    keyword: str  # USE or HIDE
    facts: list[Expr] = field(default_factory=list)
    defs: list[str] = field(default_factory=list)
    only: bool = False
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Separator:
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class CommentBlock:
    """A comment standing on its own between units."""

    comment: Comment = field(compare=False)
    span: Span = _span()
    comments: Attached = _comments()


@dataclass(frozen=True)
class Module:
    name: str
    extends: list[Ident]
    units: list[Unit]
    preamble: str | None = field(default=None, compare=False)
    epilogue: str | None = field(default=None, compare=False)
    extends_span: Span | None = field(default=None, compare=False, kw_only=True)
    span: Span = _span()
    comments: Attached = _comments()


Unit = Union[
    Constants, Variables, Recursive, Assume, OperatorDef, Instance, Theorem,
    UseOrHide, Separator, CommentBlock, Module,
]
