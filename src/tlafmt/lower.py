"""Lowering of the TLA+ AST to the layout Doc IR.

Walks the AST with the same isinstance dispatch the parser's node set
suggests, producing one Doc per module. Every node that can break is wrapped
in a Group whose bias comes from the node's source span: a node that was
written on one line gets AUTO, one that spanned several lines gets
FORCE_BROKEN. Inside a broken node, a separator only becomes a newline where
the author had one, so the original line structure is kept.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tlafmt.ast_nodes import (
    ActionExpr,
    Apply,
    Assume,
    AssumeProve,
    Bound,
    Case,
    CaseArm,
    Choose,
    CommentBlock,
    Constants,
    Except,
    ExceptUpdate,
    Expr,
    Fairness,
    FieldAccess,
    FunctionApply,
    FunctionConstruct,
    FunctionSet,
    Ident,
    IfThenElse,
    InfixOp,
    Instance,
    JunctionList,
    Lambda,
    LeafProof,
    LetIn,
    Module,
    NewDecl,
    Numeral,
    OpDecl,
    OperatorDef,
    Parens,
    PostfixOp,
    PrefixOp,
    Proof,
    ProofStep,
    Quantifier,
    RecordConstruct,
    RecordField,
    RecordSet,
    Recursive,
    Separator,
    SetEnum,
    SetFilter,
    SetMap,
    StringLit,
    Substitution,
    Theorem,
    TupleConstruct,
    Unit,
    UseOrHide,
    Variables,
)
from tlafmt.comments import first_line, last_line
from tlafmt.doc import (
    HARDLINE,
    LINE,
    Bias,
    Doc,
    align,
    concat,
    group,
    join,
    nest,
    text,
)
from tlafmt.doc import Comment as CommentDoc
from tlafmt.errors import RenderError
from tlafmt.source import Span
from tlafmt.tokens import BULLETS, Comment

if TYPE_CHECKING:
    from tlafmt.formatter import FormatOptions

RULE_WIDTH = 80
PROOF_INDENT = 2

SPACE = text(" ")
# A space that becomes a line break only when the rest of the line overflows.
SOFT_LINE = group(LINE)

# Prefix operators written with a space before their operand.
_WORD_PREFIX = frozenset({"ENABLED", "UNCHANGED", "SUBSET", "UNION", "DOMAIN", "\\lnot", "\\neg"})

# Infix operators written without surrounding spaces.
_TIGHT_INFIX = frozenset({".."})


def header_line(name: str) -> str:
    """The ``---- MODULE Name ----`` line, padded with dashes to 80 columns."""
    dashes = max(4, (RULE_WIDTH - len(name) - len(" MODULE ") - 1) // 2)
    line = f"{'-' * dashes} MODULE {name} {'-' * dashes}"
    if len(line) == RULE_WIDTH - 1:
        line += "-"
    return line


def rule_line(char: str) -> str:
    return char * RULE_WIDTH


def _bias(span: Span) -> Bias:
    return Bias.FORCE_BROKEN if span.is_multiline else Bias.AUTO


def _gap(before: int, after: int, parent: Span) -> Doc:
    """Separator between two children of ``parent``.

    In a node written on one line, a Line the renderer may break. In a
    multi-line node, a Line where the source broke, and elsewhere a space
    that still breaks if the line would overflow.
    """
    if not parent.is_multiline or after > before:
        return LINE
    return SOFT_LINE


def _comment(comment: Comment) -> Doc:
    return CommentDoc(comment.text, comment.column, comment.is_line)


def _decl_text(decl: OpDecl) -> str:
    if not decl.arity:
        return decl.name
    return f"{decl.name}({', '.join('_' * decl.arity)})"


class Lowerer:
    """Builds the Doc for a parsed Module."""

    def __init__(self, options: FormatOptions) -> None:
        self.options = options
        self.indent = options.indent

    # ── Public API ─────────────────────────────────────────────

    def lower(self, module: Module) -> Doc:
        parts: list[Doc] = []
        if module.preamble and module.preamble.strip():
            lines = module.preamble.split("\n")
            if lines[-1] == "":
                lines.pop()
            for line in lines:
                parts.extend([text(line.rstrip()), HARDLINE])
        parts.append(self._module(module))
        if module.epilogue and module.epilogue.strip():
            first, *rest = module.epilogue.rstrip().split("\n")
            parts.append(text(first.rstrip()))
            for line in rest:
                parts.extend([HARDLINE, text(line.rstrip())])
        return concat(*parts)

    # ── Comments and sequencing ────────────────────────────────

    def _wrap(self, node, doc: Doc) -> Doc:
        """Surround ``doc`` with the node's leading and trailing comments."""
        comments = node.comments
        if not comments:
            return doc
        parts: list[Doc] = []
        leading = comments.leading
        for i, comment in enumerate(leading):
            parts.append(_comment(comment))
            if comment.is_line:
                continue  # the renderer starts a new line after it
            nxt = leading[i + 1].span.start_line if i + 1 < len(leading) else node.span.start_line
            parts.append(HARDLINE if nxt > comment.span.end_line else SPACE)
        parts.append(doc)
        for comment in comments.trailing:
            parts.extend([SPACE, _comment(comment)])
        return concat(*parts)

    def _items(self, nodes: list, docs: list[Doc], parent: Span, sep: str = ",") -> Doc:
        parts: list[Doc] = []
        for i, doc in enumerate(docs):
            if i:
                parts.append(text(sep))
                parts.append(_gap(last_line(nodes[i - 1]), first_line(nodes[i]), parent))
            parts.append(doc)
        return concat(*parts)

    def _sequence(self, nodes: list, docs: list[Doc]) -> Doc:
        """Stack ``docs`` on separate lines, keeping at most one blank line."""
        parts: list[Doc] = []
        for i, doc in enumerate(docs):
            if i:
                parts.append(HARDLINE)
                if first_line(nodes[i]) - last_line(nodes[i - 1]) > 1:
                    parts.append(HARDLINE)
            parts.append(doc)
        return concat(*parts)

    def _bracketed(self, open_: str, nodes: list, docs: list[Doc], close: str, span: Span) -> Doc:
        inner = self._items(nodes, docs, span)
        return group(concat(text(open_), align(inner), text(close)), _bias(span))

    # ── Module layout ──────────────────────────────────────────

    def _module(self, module: Module) -> Doc:
        parts: list[Doc] = [text(header_line(module.name))]
        prev = module.span.start_line

        def block(start: int, end: int, doc: Doc) -> None:
            nonlocal prev
            parts.append(HARDLINE)
            if start - prev > 1:
                parts.append(HARDLINE)
            parts.append(doc)
            prev = end

        for comment in module.comments.leading:
            block(comment.span.start_line, comment.span.end_line, _comment(comment))
        if module.extends:
            span = module.extends_span
            names = module.extends
            items: list[Doc] = []
            for i, name in enumerate(names):
                if i:
                    items.append(_gap(last_line(names[i - 1]), first_line(name), span))
                comma = "," if i + 1 < len(names) else ""
                items.append(self._wrap(name, text(name.name + comma)))
            doc = group(concat(text("EXTENDS "), align(concat(*items))), _bias(span))
            block(span.start_line, max(span.end_line, last_line(names[-1])), doc)
        for unit in module.units:
            block(first_line(unit), last_line(unit), self._unit(unit))
        block(module.span.end_line, module.span.end_line, text(rule_line("=")))
        return concat(*parts)

    # ── Units ──────────────────────────────────────────────────

    def _unit(self, unit: Unit) -> Doc:
        if isinstance(unit, Module):
            trailing = [d for c in unit.comments.trailing for d in (SPACE, _comment(c))]
            return concat(self._module(unit), *trailing)
        if isinstance(unit, CommentBlock):
            return _comment(unit.comment)
        if isinstance(unit, Separator):
            doc = text(rule_line("-"))
        elif isinstance(unit, OperatorDef):
            doc = self._operator_def(unit)
        elif isinstance(unit, Constants):
            doc = self._names(unit.keyword, [_decl_text(d) for d in unit.decls], unit.span)
        elif isinstance(unit, Variables):
            doc = self._names(unit.keyword, unit.names, unit.span)
        elif isinstance(unit, Recursive):
            doc = self._names("RECURSIVE", [_decl_text(d) for d in unit.decls], unit.span)
        elif isinstance(unit, Assume):
            head = unit.keyword + (f" {unit.name} ==" if unit.name else "")
            doc = self._headed(head, unit.expr, unit.span)
        elif isinstance(unit, Instance):
            doc = self._instance(unit)
        elif isinstance(unit, Theorem):
            doc = self._theorem(unit)
        elif isinstance(unit, UseOrHide):
            doc = concat(text(unit.keyword + " "), self._facts(unit.only, unit.facts, unit.defs, unit.span))
        else:
            raise RenderError(f"cannot lower unit {type(unit).__name__}")
        return self._wrap(unit, doc)

    def _names(self, keyword: str, names: list[str], span: Span) -> Doc:
        items = join(concat(text(","), LINE), [text(n) for n in names])
        return group(concat(text(keyword + " "), align(items)), _bias(span))

    def _headed(self, head: str | Doc, body: Expr | AssumeProve, span: Span) -> Doc:
        """``head`` followed by an indented body that may move to its own line."""
        if isinstance(head, str):
            head = text(head)
        body_doc = self._statement(body)
        if (
            not span.is_multiline
            or first_line(body) > span.start_line
            or isinstance(body, JunctionList)
        ):
            sep = LINE
        else:
            sep = SOFT_LINE
        return group(concat(head, nest(self.indent, concat(sep, body_doc))), _bias(span))

    def _operator_def(self, node: OperatorDef) -> Doc:
        head: list[Doc] = [text("LOCAL ")] if node.local else []
        params = [p.name for p in node.params]
        if node.form == "function":
            head.extend([text(node.name + "["), self._bounds(node.bounds), text("]")])
        elif node.form == "infix":
            head.append(text(f"{params[0]} {node.name} {params[1]}"))
        elif node.form == "prefix":
            spacer = " " if node.name in _WORD_PREFIX else ""
            head.append(text(f"{node.name}{spacer}{params[0]}"))
        elif node.form == "postfix":
            head.append(text(f"{params[0]}{node.name}"))
        elif node.params:
            head.append(text(f"{node.name}({', '.join(_decl_text(p) for p in node.params)})"))
        else:
            head.append(text(node.name))
        head.append(text(" =="))
        return self._headed(concat(*head), node.body, node.span)

    def _instance(self, node: Instance) -> Doc:
        head = "LOCAL " if node.local else ""
        if node.name is not None:
            head += node.name
            if node.params:
                head += f"({', '.join(_decl_text(p) for p in node.params)})"
            head += " == "
        head += f"INSTANCE {node.module}"
        if not node.substitutions:
            return text(head)
        subs = node.substitutions
        docs = [self._wrap(s, self._substitution(s)) for s in subs]
        sep = _gap(node.span.start_line, first_line(subs[0]), node.span)
        with_doc = concat(sep, text("WITH "), align(self._items(subs, docs, node.span)))
        return group(concat(text(head), nest(self.indent, with_doc)), _bias(node.span))

    def _substitution(self, node: Substitution) -> Doc:
        return concat(text(f"{node.name} <- "), align(self._expr(node.value)))

    # ── Theorems and proofs ────────────────────────────────────

    def _statement(self, node: Expr | AssumeProve) -> Doc:
        if isinstance(node, AssumeProve):
            return self._wrap(node, self._assume_prove(node))
        return self._expr(node)

    def _assume_prove(self, node: AssumeProve) -> Doc:
        items = node.assumptions
        docs = [self._wrap(i, self._new_decl(i)) if isinstance(i, NewDecl) else self._expr(i) for i in items]
        sep = _gap(last_line(items[-1]), first_line(node.conclusion), node.span)
        doc = concat(
            text("ASSUME "), align(self._items(items, docs, node.span)),
            sep, text("PROVE "), align(self._expr(node.conclusion)),
        )
        return group(align(doc), _bias(node.span))

    def _new_decl(self, node: NewDecl) -> Doc:
        head = f"{node.level} {node.name}" if node.level else node.name
        if node.domain is None:
            return text(head)
        return concat(text(head + " \\in "), align(self._expr(node.domain)))

    def _theorem(self, node: Theorem) -> Doc:
        head = node.keyword + (f" {node.name} ==" if node.name else "")
        doc = self._headed(head, node.statement, node.span)
        if node.proof is None:
            return doc
        sep = _gap(last_line(node.statement), first_line(node.proof), node.span)
        proof = nest(PROOF_INDENT, concat(sep, self._proof(node.proof)))
        return group(concat(doc, proof), _bias(node.span))

    def _proof(self, node: Proof) -> Doc:
        if isinstance(node, LeafProof):
            doc = self._leaf_proof(node)
        else:
            steps = [self._step(s) for s in node.steps]
            doc = self._sequence(node.steps, steps)
            if node.has_proof_keyword:
                doc = concat(text("PROOF"), HARDLINE, doc)
        return self._wrap(node, doc)

    def _leaf_proof(self, node: LeafProof) -> Doc:
        keyword = ("PROOF " if node.has_proof_keyword else "") + node.keyword
        if not (node.only or node.facts or node.defs):
            return text(keyword)
        return concat(text(keyword + " "), self._facts(node.only, node.facts, node.defs, node.span))

    def _facts(self, only: bool, facts: list[Expr], defs: list[str], span: Span) -> Doc:
        parts: list[Doc] = []
        if only:
            parts.append(text("ONLY "))
        if facts:
            parts.append(self._items(facts, [self._expr(f) for f in facts], span))
        if defs:
            if facts:
                parts.append(LINE)
            names = join(concat(text(","), LINE), [text(d) for d in defs])
            parts.append(group(concat(text("DEF "), align(names))))
        return group(align(concat(*parts)), _bias(span))

    def _step(self, node: ProofStep) -> Doc:
        parts: list[Doc] = [text(node.label)]
        if node.keyword:
            parts.append(text(" " + node.keyword))
        head_nodes: list = []
        if node.leaf is not None:
            leaf = node.leaf
            parts.extend([SPACE, self._facts(leaf.only, leaf.facts, leaf.defs, leaf.span)])
            head_nodes.append(leaf)
        if node.bounds:
            parts.extend([SPACE, self._bounds(node.bounds)])
            head_nodes.extend(node.bounds)
            if node.statement is not None:
                sep = _gap(last_line(node.bounds[-1]), first_line(node.statement), node.span)
                parts.extend([text(" :"), nest(self.indent, concat(sep, self._statement(node.statement)))])
                head_nodes.append(node.statement)
        elif node.statement is not None:
            parts.extend([SPACE, align(self._statement(node.statement))])
            head_nodes.append(node.statement)
        if node.exprs:
            docs = [self._expr(e) for e in node.exprs]
            parts.extend([SPACE, align(self._items(node.exprs, docs, node.span))])
            head_nodes.extend(node.exprs)
        if node.defs:
            docs = [self._unit(d) for d in node.defs]
            parts.extend([SPACE, align(self._items(node.defs, docs, node.span, sep=""))])
            head_nodes.extend(node.defs)
        if node.proof is not None:
            before = max((last_line(n) for n in head_nodes), default=node.span.start_line)
            sep = _gap(before, first_line(node.proof), node.span)
            parts.append(nest(PROOF_INDENT, concat(sep, self._proof(node.proof))))
        return self._wrap(node, group(concat(*parts), _bias(node.span)))

    # ── Expressions ────────────────────────────────────────────

    def _expr(self, node: Expr) -> Doc:
        if isinstance(node, JunctionList):
            return self._junction_list(node)
        return self._wrap(node, self._expr_inner(node))

    def _expr_inner(self, node: Expr) -> Doc:
        if isinstance(node, (Ident, Numeral, StringLit)):
            return text(node.name if isinstance(node, Ident) else node.value)
        if isinstance(node, Parens):
            return concat(text("("), align(self._expr(node.expr)), text(")"))
        if isinstance(node, PrefixOp):
            return self._prefix(node)
        if isinstance(node, InfixOp):
            return self._infix(node)
        if isinstance(node, PostfixOp):
            return concat(self._expr(node.operand), text(node.op))
        if isinstance(node, Apply):
            docs = [self._expr(a) for a in node.args]
            return self._bracketed(node.name + "(", node.args, docs, ")", node.span)
        if isinstance(node, FunctionApply):
            docs = [self._expr(a) for a in node.args]
            return concat(self._expr(node.fn), self._bracketed("[", node.args, docs, "]", node.span))
        if isinstance(node, FieldAccess):
            return concat(self._expr(node.record), text("." + node.name))
        if isinstance(node, Quantifier):
            head = concat(text(node.quantifier + " "), self._bounds(node.bounds), text(" :"))
            return self._binder(head, last_line(node.bounds[-1]), node.body, node.span)
        if isinstance(node, Choose):
            head = concat(text("CHOOSE "), self._bound(node.bound), text(" :"))
            return self._binder(head, last_line(node.bound), node.body, node.span)
        if isinstance(node, Lambda):
            head = text(f"LAMBDA {', '.join(node.params)} :")
            return self._binder(head, node.span.start_line, node.body, node.span)
        if isinstance(node, SetEnum):
            docs = [self._expr(i) for i in node.items]
            return self._bracketed("{", node.items, docs, "}", node.span)
        if isinstance(node, TupleConstruct):
            docs = [self._expr(i) for i in node.items]
            return self._bracketed("<<", node.items, docs, ">>", node.span)
        if isinstance(node, SetFilter):
            return self._constructor(
                "{", self._bound(node.bound), node.bound, " :", node.predicate, "}", node.span,
            )
        if isinstance(node, SetMap):
            sep = _gap(last_line(node.expr), first_line(node.bounds[0]), node.span)
            doc = concat(self._expr(node.expr), text(" :"), sep, self._bounds(node.bounds))
            return group(concat(text("{"), align(doc), text("}")), _bias(node.span))
        if isinstance(node, FunctionConstruct):
            return self._constructor(
                "[", self._bounds(node.bounds), node.bounds[-1], " |->", node.body, "]", node.span,
            )
        if isinstance(node, FunctionSet):
            return self._constructor(
                "[", self._expr(node.domain), node.domain, " ->", node.codomain, "]", node.span,
            )
        if isinstance(node, (RecordConstruct, RecordSet)):
            sep = " |-> " if isinstance(node, RecordConstruct) else " : "
            docs = [self._wrap(f, self._field(f, sep)) for f in node.fields]
            return self._bracketed("[", node.fields, docs, "]", node.span)
        if isinstance(node, Except):
            return self._except(node)
        if isinstance(node, ActionExpr):
            open_, close = ("<<", ">>_") if node.angle else ("[", "]_")
            return concat(text(open_), align(self._expr(node.action)), text(close), self._expr(node.subscript))
        if isinstance(node, Fairness):
            return concat(
                text(node.kind), self._expr(node.subscript),
                text("("), align(self._expr(node.action)), text(")"),
            )
        if isinstance(node, LetIn):
            return self._let(node)
        if isinstance(node, IfThenElse):
            return self._if(node)
        if isinstance(node, Case):
            return self._case(node)
        raise RenderError(f"cannot lower expression {type(node).__name__}")

    def _junction_list(self, node: JunctionList) -> Doc:
        if self.options.collapse_single_junctions and len(node.items) == 1:
            item = node.items[0]
            return self._wrap(node, self._wrap(item, self._expr(item.expr)))
        docs = [
            self._wrap(item, concat(text(node.op + " "), align(self._expr(item.expr))))
            for item in node.items
        ]
        return self._wrap(node, align(join(HARDLINE, docs)))

    def _prefix(self, node: PrefixOp) -> Doc:
        spacer = ""
        if node.op in _WORD_PREFIX or (node.op == "-" and isinstance(node.operand, PrefixOp)):
            spacer = " "
        return concat(text(node.op + spacer), self._expr(node.operand))

    def _infix(self, node: InfixOp) -> Doc:
        left, right = self._expr(node.left), self._expr(node.right)
        op = node.op
        if op in _TIGHT_INFIX:
            return concat(left, text(op), right)
        if node.span.is_multiline:
            before = node.op_span.start_line > last_line(node.left)
            after = first_line(node.right) > node.op_span.end_line
            if not (before or after):
                return align(concat(left, text(" " + op), SOFT_LINE, right))
        else:
            before = op in BULLETS
        if before:
            doc = concat(left, LINE, text(op + " "), right)
        else:
            doc = concat(left, text(" " + op), LINE, right)
        return group(align(doc), _bias(node.span))

    def _bound(self, node: Bound) -> Doc:
        names = ", ".join(node.names)
        if node.is_tuple:
            names = f"<<{names}>>"
        if node.domain is None:
            return text(names)
        return concat(text(names + " \\in "), align(self._expr(node.domain)))

    def _bounds(self, bounds: list[Bound]) -> Doc:
        return join(text(", "), [self._wrap(b, self._bound(b)) for b in bounds])

    def _binder(self, head: Doc, head_end: int, body: Expr, span: Span) -> Doc:
        sep = _gap(head_end, first_line(body), span)
        doc = concat(head, nest(self.indent, concat(sep, self._expr(body))))
        return group(align(doc), _bias(span))

    def _constructor(self, open_: str, head: Doc, head_node, mid: str, body: Expr, close: str, span: Span) -> Doc:
        sep = _gap(last_line(head_node), first_line(body), span)
        doc = concat(head, text(mid), sep, self._expr(body))
        return group(concat(text(open_), align(doc), text(close)), _bias(span))

    def _field(self, node: RecordField, sep: str) -> Doc:
        return concat(text(node.name + sep), align(self._expr(node.value)))

    def _except(self, node: Except) -> Doc:
        updates = node.updates
        docs = [self._wrap(u, self._update(u)) for u in updates]
        sep = _gap(last_line(node.fn), first_line(updates[0]), node.span)
        doc = concat(self._expr(node.fn), text(" EXCEPT"), sep, align(self._items(updates, docs, node.span)))
        return group(concat(text("["), align(doc), text("]")), _bias(node.span))

    def _update(self, node: ExceptUpdate) -> Doc:
        parts: list[Doc] = [text("!")]
        for step in node.path:
            if step.field_name is not None:
                parts.append(text("." + step.field_name))
            else:
                index = step.index or []
                parts.extend([text("["), join(text(", "), [self._expr(i) for i in index]), text("]")])
        parts.extend([text(" = "), align(self._expr(node.value))])
        return concat(*parts)

    def _let(self, node: LetIn) -> Doc:
        defs = node.defs
        docs = [self._unit(d) for d in defs]
        sep = _gap(last_line(defs[-1]), first_line(node.body), node.span)
        doc = concat(
            text("LET "), align(self._items(defs, docs, node.span, sep="")),
            sep, text("IN "), align(self._expr(node.body)),
        )
        return group(align(doc), _bias(node.span))

    def _if(self, node: IfThenElse) -> Doc:
        span = node.span
        doc = concat(
            text("IF "), align(self._expr(node.cond)),
            _gap(last_line(node.cond), first_line(node.then), span),
            text("THEN "), align(self._expr(node.then)),
            _gap(last_line(node.then), first_line(node.else_), span),
            text("ELSE "), align(self._expr(node.else_)),
        )
        return group(align(doc), _bias(span))

    def _case(self, node: Case) -> Doc:
        arms: list[CaseArm] = list(node.arms)
        if node.other is not None:
            arms.append(node.other)
        docs = [self._wrap(arm, self._arm(arm)) for arm in arms]
        rest: list[Doc] = []
        for prev, arm, doc in zip(arms, arms[1:], docs[1:]):
            rest.extend([_gap(last_line(prev), first_line(arm), node.span), text("[] "), doc])
        doc = concat(text("CASE "), docs[0], nest(2, concat(*rest)))
        return group(align(doc), _bias(node.span))

    def _arm(self, node: CaseArm) -> Doc:
        guard = text("OTHER") if node.guard is None else self._expr(node.guard)
        return concat(guard, text(" -> "), align(self._expr(node.value)))


def lower(module: Module, options: FormatOptions) -> Doc:
    """Lower a module to a Doc ready for ``doc.render``."""
    return Lowerer(options).lower(module)
