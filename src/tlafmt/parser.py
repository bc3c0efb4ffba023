"""Parser for TLA+ modules.

Transforms a token stream into an AST using precedence climbing over
operator precedence ranges for expressions and recursive descent for
units, constructors and proofs. Conjunction and disjunction bullet lists are
grouped by the column of their bullets: while an item is parsed, any token at
or left of the item's bullet column ends it.

Comments arrive on a side channel and are attached as they are passed: a
comment before a node's first token is leading, one on the line of a node's
last token is trailing.
"""

from __future__ import annotations

import dataclasses

from tlafmt.ast_nodes import (
    ActionExpr,
    Apply,
    Assume,
    AssumeProve,
    Attached,
    Bound,
    Case,
    CaseArm,
    Choose,
    CommentBlock,
    Constants,
    Except,
    ExceptPath,
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
    JunctionItem,
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
    StepProof,
    StringLit,
    Substitution,
    Theorem,
    TupleConstruct,
    Unit,
    UseOrHide,
    Variables,
)
from tlafmt.errors import Suggestion, SyntaxError, SyntaxErrorKind
from tlafmt.grammar import INFIX_OPS, POSTFIX_OPS, PREFIX_OPS, OpInfo, Relation, relate
from tlafmt.source import Span
from tlafmt.tokens import BULLETS, Comment, Token, TokenKind

DEFAULT_MAX_DEPTH = 100

_PROOF_STARTS = frozenset({
    TokenKind.PROOF, TokenKind.BY, TokenKind.OBVIOUS, TokenKind.OMITTED,
})

_STEP_KEYWORDS = frozenset({
    TokenKind.QED, TokenKind.SUFFICES, TokenKind.CASE, TokenKind.HAVE,
    TokenKind.TAKE, TokenKind.WITNESS, TokenKind.PICK, TokenKind.USE,
    TokenKind.HIDE, TokenKind.DEFINE,
})

_LEVEL_WORDS = frozenset({"STATE", "ACTION", "TEMPORAL"})


def _step_level(label: str, current: int) -> int:
    """Numeric level of a step label such as ``<2>a.``, ``<*>`` or ``<+>``."""
    inner = label[1:label.index(">")]
    if inner == "*":
        return current
    if inner == "+":
        return current + 1
    return int(inner)


class Parser:
    """Parses a list of tokens into a TLA+ Module."""

    def __init__(
        self,
        tokens: list[Token],
        comments: list[Comment] | None = None,
        filename: str = "<stdin>",
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.tokens = tokens
        self.comments = sorted(comments or [], key=lambda c: c.offset)
        self.filename = filename
        self.max_depth = max_depth
        self.pos = 0
        self._ci = 0  # next unattached comment
        self._fences: list[int] = []
        self._depth = 0
        self._recursive: set[str] = set()

    # ── Token access ─────────────────────────────────────────────

    def _real(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _current(self) -> Token:
        """The next token, or an EOF stand-in when it sits left of the fence."""
        tok = self._real()
        if (
            self._fences
            and tok.kind != TokenKind.EOF
            and tok.span.start_col <= self._fences[-1]
        ):
            return Token(TokenKind.EOF, "", tok.span, tok.offset)
        return tok

    def _peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]

    def _at(self, kind: TokenKind) -> bool:
        return self._current().kind == kind

    def _at_any(self, *kinds: TokenKind) -> bool:
        return self._current().kind in kinds

    def _at_op(self, *values: str) -> bool:
        return self._current().is_op(*values)

    def _advance(self) -> Token:
        tok = self._real()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _prev(self) -> Token:
        return self.tokens[self.pos - 1] if self.pos > 0 else self.tokens[0]

    def _expect(self, kind: TokenKind, what: str | None = None) -> Token:
        if self._current().kind == kind:
            return self._advance()
        raise self._unexpected(what or kind.name.lower())

    def _expect_op(self, value: str) -> Token:
        if self._at_op(value):
            return self._advance()
        raise self._unexpected(repr(value))

    def _describe(self, tok: Token) -> str:
        if tok.kind == TokenKind.EOF:
            real = self._real()
            if real.kind != TokenKind.EOF:
                return f"{real.value!r} at column {real.span.start_col}, left of the enclosing bullet"
            return "end of file"
        return repr(tok.value)

    def _unexpected(self, expected: str) -> SyntaxError:
        tok = self._current()
        found = self._describe(tok)
        return SyntaxError(
            SyntaxErrorKind.UNEXPECTED_TOKEN,
            f"expected {expected}, found {found}",
            tok.span, tok.offset,
            expected=expected, found=found,
        )

    def _span(self, start: Span, end: Span | None = None) -> Span:
        """Build a Span from a start span to an end span (default: last token)."""
        end = end or self._prev().span
        return Span(
            self.filename,
            start.start_line, start.start_col,
            end.end_line, end.end_col,
        )

    def _enter(self) -> None:
        self._depth += 1
        if self._depth > self.max_depth:
            tok = self._real()
            raise SyntaxError(
                SyntaxErrorKind.TOO_DEEPLY_NESTED,
                f"expression nested deeper than {self.max_depth} levels",
                tok.span, tok.offset,
            )

    def _leave(self) -> None:
        self._depth -= 1

    # ── Comments ─────────────────────────────────────────────────

    def _take_leading(self) -> tuple[Comment, ...]:
        """Take every unattached comment that precedes the next token."""
        limit = self._real().offset
        start = self._ci
        while self._ci < len(self.comments) and self.comments[self._ci].offset < limit:
            self._ci += 1
        return tuple(self.comments[start:self._ci])

    def _take_trailing(self, end_line: int) -> tuple[Comment, ...]:
        """Take comments that share the line a node ended on."""
        limit = self._real().offset
        start = self._ci
        while (
            self._ci < len(self.comments)
            and self.comments[self._ci].offset < limit
            and self.comments[self._ci].span.start_line == end_line
        ):
            self._ci += 1
        return tuple(self.comments[start:self._ci])

    def _attach(self, node, leading: tuple[Comment, ...] = (), trailing: tuple[Comment, ...] = ()):
        if not leading and not trailing:
            return node
        old = node.comments
        return dataclasses.replace(node, comments=Attached(
            leading + old.leading, old.trailing + trailing,
        ))

    def _finish(self, node, leading: tuple[Comment, ...] = ()):
        """Attach leading comments plus any trailing ones on the node's last line."""
        trailing = self._take_trailing(node.span.end_line)
        return self._attach(node, leading, trailing)

    def _close(self, node):
        """Attach comments dangling before a closing delimiter to ``node``."""
        dangling = self._take_leading()
        return self._attach(node, trailing=dangling) if dangling else node

    def _save(self) -> tuple[int, int]:
        return self.pos, self._ci

    def _restore(self, state: tuple[int, int]) -> None:
        self.pos, self._ci = state

    # ── Top-level parsing ────────────────────────────────────────

    def parse(self) -> Module:
        """Parse the entire token stream into a Module."""
        preamble = None
        if self._at(TokenKind.EXTRAMODULAR):
            preamble = self._advance().value
        if not (self._at(TokenKind.SEPARATOR) and self._peek(1).kind == TokenKind.MODULE):
            tok = self._current()
            raise SyntaxError(
                SyntaxErrorKind.MISSING_MODULE_HEADER,
                "expected a module header such as '---- MODULE Name ----'",
                tok.span, tok.offset,
                expected="module header", found=self._describe(tok),
            )
        module = self._parse_module()
        epilogue = None
        if self._at(TokenKind.EXTRAMODULAR):
            epilogue = self._advance().value
        self._expect(TokenKind.EOF, "end of file")
        return dataclasses.replace(module, preamble=preamble, epilogue=epilogue)

    def _parse_module(self) -> Module:
        start = self._expect(TokenKind.SEPARATOR)
        self._expect(TokenKind.MODULE)
        name = self._expect(TokenKind.IDENTIFIER, "module name").value
        self._expect(TokenKind.SEPARATOR, "'----' after the module name")

        extends: list[Ident] = []
        extends_span = None
        header_comments: tuple[Comment, ...] = ()
        if self._at(TokenKind.EXTENDS):
            header_comments = self._take_leading()
            keyword = self._advance()
            extends = self._parse_extends()
            extends_span = self._span(keyword.span)

        units: list[Unit] = []
        while True:
            for comment in self._take_leading():
                units.append(CommentBlock(comment, span=comment.span))
            if self._at_any(TokenKind.MODULE_END, TokenKind.EOF):
                break
            unit = self._parse_unit()
            units.append(self._finish(unit))

        self._expect(TokenKind.MODULE_END, "'====' closing the module")
        module = Module(
            name, extends, units,
            extends_span=extends_span, span=self._span(start.span),
        )
        return self._attach(module, header_comments)

    def _parse_extends(self) -> list[Ident]:
        names: list[Ident] = []
        while True:
            leading = self._take_leading()
            tok = self._expect(TokenKind.IDENTIFIER, "module name")
            more = self._at(TokenKind.COMMA)
            if more:
                self._advance()
            trailing = self._take_trailing(tok.span.end_line)
            names.append(self._attach(Ident(tok.value, span=tok.span), leading, trailing))
            if not more:
                return names

    # ── Units ────────────────────────────────────────────────────

    def _parse_unit(self) -> Unit:
        tok = self._current()
        kind = tok.kind
        if kind == TokenKind.LOCAL:
            self._advance()
            if self._at(TokenKind.INSTANCE):
                return self._parse_instance(tok, local=True)
            return self._parse_definition(tok, local=True)
        if kind == TokenKind.CONSTANT:
            self._advance()
            decls = self._parse_op_decls()
            return Constants(decls, tok.value, span=self._span(tok.span))
        if kind == TokenKind.VARIABLE:
            self._advance()
            names = [self._expect(TokenKind.IDENTIFIER, "variable name").value]
            while self._at(TokenKind.COMMA):
                self._advance()
                names.append(self._expect(TokenKind.IDENTIFIER, "variable name").value)
            return Variables(names, tok.value, span=self._span(tok.span))
        if kind == TokenKind.RECURSIVE:
            self._advance()
            decls = self._parse_op_decls()
            self._recursive.update(d.name for d in decls)
            return Recursive(decls, span=self._span(tok.span))
        if kind == TokenKind.ASSUME:
            return self._parse_assume()
        if kind == TokenKind.INSTANCE:
            return self._parse_instance(tok, local=False)
        if kind == TokenKind.THEOREM:
            return self._parse_theorem()
        if kind in (TokenKind.USE, TokenKind.HIDE):
            return self._parse_use_or_hide()
        if kind == TokenKind.SEPARATOR:
            if self._peek(1).kind == TokenKind.MODULE:
                return self._parse_module()
            self._advance()
            return Separator(span=tok.span)
        if kind in (TokenKind.IDENTIFIER, TokenKind.OPERATOR):
            return self._parse_definition(tok, local=False)
        raise self._unexpected("a declaration, definition or theorem")

    def _parse_op_decls(self) -> list[OpDecl]:
        decls = [self._parse_op_decl()]
        while self._at(TokenKind.COMMA):
            self._advance()
            decls.append(self._parse_op_decl())
        return decls

    def _parse_op_decl(self) -> OpDecl:
        name = self._expect(TokenKind.IDENTIFIER, "a name").value
        arity = 0
        if self._at(TokenKind.LPAREN):
            self._advance()
            while True:
                tok = self._expect(TokenKind.IDENTIFIER, "'_'")
                if tok.value != "_":
                    raise SyntaxError(
                        SyntaxErrorKind.UNEXPECTED_TOKEN,
                        f"expected '_', found {tok.value!r}",
                        tok.span, tok.offset, expected="'_'", found=repr(tok.value),
                    )
                arity += 1
                if not self._at(TokenKind.COMMA):
                    break
                self._advance()
            self._expect(TokenKind.RPAREN, "')'")
        return OpDecl(name, arity)

    def _parse_assume(self) -> Assume:
        tok = self._advance()
        name = None
        if self._at(TokenKind.IDENTIFIER) and self._peek(1).kind == TokenKind.DEF_EQ:
            name = self._advance().value
            self._advance()
        expr = self._parse_expr()
        return Assume(expr, tok.value, name, span=self._span(tok.span))

    def _parse_instance(self, start: Token, *, local: bool, name: str | None = None,
                        params: list[OpDecl] | None = None) -> Instance:
        self._expect(TokenKind.INSTANCE)
        module = self._expect(TokenKind.IDENTIFIER, "module name").value
        subs: list[Substitution] = []
        if self._at(TokenKind.WITH):
            self._advance()
            while True:
                leading = self._take_leading()
                first = self._current()
                if first.kind not in (TokenKind.IDENTIFIER, TokenKind.OPERATOR):
                    raise self._unexpected("a substitution")
                self._advance()
                self._expect(TokenKind.SUBST, "'<-'")
                value = self._parse_expr()
                sub = Substitution(first.value, value, span=self._span(first.span))
                subs.append(self._attach(sub, leading))
                if not self._at(TokenKind.COMMA):
                    break
                self._advance()
        return Instance(
            module, subs, local, name, params or [],
            span=self._span(start.span),
        )

    def _parse_definition(self, start: Token, *, local: bool) -> Unit:
        tok = self._current()
        params: list[OpDecl] = []
        bounds: list[Bound] = []
        form = "operator"
        nxt = self._peek(1)

        if tok.kind == TokenKind.OPERATOR and tok.value in PREFIX_OPS:
            # prefix operator definition: ~ a == ...
            self._advance()
            arg = self._expect(TokenKind.IDENTIFIER, "operand name").value
            name, params, form = tok.value, [OpDecl(arg)], "prefix"
        elif tok.kind != TokenKind.IDENTIFIER:
            raise self._unexpected("a definition")
        elif nxt.kind == TokenKind.OPERATOR and nxt.value in INFIX_OPS and self._peek(2).kind == TokenKind.IDENTIFIER:
            left = self._advance().value
            name = self._advance().value
            right = self._advance().value
            params, form = [OpDecl(left), OpDecl(right)], "infix"
        elif nxt.kind == TokenKind.OPERATOR and nxt.value in POSTFIX_OPS:
            arg = self._advance().value
            name = self._advance().value
            params, form = [OpDecl(arg)], "postfix"
        else:
            name = self._advance().value
            if self._at(TokenKind.LPAREN):
                self._advance()
                params = self._parse_op_decls()
                self._expect(TokenKind.RPAREN, "')'")
            elif self._at(TokenKind.LBRACKET):
                self._advance()
                bounds = self._parse_bounds(allow_unbounded=False)
                self._expect(TokenKind.RBRACKET, "']'")
                form = "function"

        self._expect(TokenKind.DEF_EQ, "'=='")
        if self._at(TokenKind.INSTANCE):
            return self._parse_instance(start, local=local, name=name, params=params)
        body = self._parse_expr()
        return OperatorDef(
            name, params, body, form, bounds, local,
            recursive=name in self._recursive,
            span=self._span(start.span),
        )

    def _at_definition(self) -> bool:
        if not self._at(TokenKind.IDENTIFIER):
            return False
        nxt = self._peek(1)
        if nxt.kind == TokenKind.DEF_EQ:
            return True
        if nxt.kind == TokenKind.OPERATOR:
            # a ++ b == ... or a ^+ == ...
            return TokenKind.DEF_EQ in (self._peek(2).kind, self._peek(3).kind)
        if nxt.kind not in (TokenKind.LPAREN, TokenKind.LBRACKET):
            return False
        # F(x) == ... or f[x \in S] == ...: find the matching close
        depth = 0
        for idx in range(self.pos + 1, len(self.tokens)):
            kind = self.tokens[idx].kind
            if kind in (TokenKind.LPAREN, TokenKind.LBRACKET):
                depth += 1
            elif kind in (TokenKind.RPAREN, TokenKind.RBRACKET):
                depth -= 1
                if depth == 0:
                    return self._peek(idx + 1 - self.pos).kind == TokenKind.DEF_EQ
        return False

    # ── Theorems and proofs ──────────────────────────────────────

    def _parse_theorem(self) -> Theorem:
        tok = self._advance()
        name = None
        if self._at(TokenKind.IDENTIFIER) and self._peek(1).kind == TokenKind.DEF_EQ:
            name = self._advance().value
            self._advance()
        statement = self._parse_statement()
        proof = self._parse_proof(0) if self._at_proof_start() else None
        return Theorem(tok.value, statement, name, proof, span=self._span(tok.span))

    def _parse_statement(self) -> Expr | AssumeProve:
        if self._at(TokenKind.ASSUME):
            return self._parse_assume_prove()
        return self._parse_expr()

    def _parse_assume_prove(self) -> AssumeProve:
        start = self._expect(TokenKind.ASSUME)
        items: list[Expr | NewDecl] = []
        while True:
            leading = self._take_leading()
            if self._at_any(TokenKind.NEW, TokenKind.CONSTANT, TokenKind.VARIABLE):
                item = self._parse_new_decl()
            else:
                item = self._parse_expr()
            items.append(self._attach(item, leading))
            if not self._at(TokenKind.COMMA):
                break
            self._advance()
        self._expect(TokenKind.PROVE, "PROVE")
        conclusion = self._parse_expr()
        return AssumeProve(items, conclusion, span=self._span(start.span))

    def _parse_new_decl(self) -> NewDecl:
        start = self._current()
        parts: list[str] = []
        if self._at(TokenKind.NEW):
            parts.append(self._advance().value)
        level_tok = self._current()
        if level_tok.kind in (TokenKind.CONSTANT, TokenKind.VARIABLE) or (
            level_tok.kind == TokenKind.IDENTIFIER and level_tok.value in _LEVEL_WORDS
            and self._peek(1).kind == TokenKind.IDENTIFIER
        ):
            parts.append(self._advance().value)
        name = self._expect(TokenKind.IDENTIFIER, "a name").value
        domain = None
        if self._at_op("\\in"):
            self._advance()
            domain = self._parse_expr()
        return NewDecl(" ".join(parts) or None, name, domain, span=self._span(start.span))

    def _at_proof_start(self) -> bool:
        return self._at_any(*_PROOF_STARTS) or self._at(TokenKind.STEP_LABEL)

    def _parse_proof(self, level: int) -> Proof:
        self._enter()
        try:
            start = self._current()
            has_kw = False
            if self._at(TokenKind.PROOF):
                self._advance()
                has_kw = True
            if self._at_any(TokenKind.BY, TokenKind.OBVIOUS, TokenKind.OMITTED):
                leaf = self._parse_leaf_proof()
                return dataclasses.replace(leaf, has_proof_keyword=has_kw, span=self._span(start.span))
            if not self._at(TokenKind.STEP_LABEL):
                raise self._unexpected("a proof")
            steps = self._parse_steps(level)
            return StepProof(steps, has_kw, span=self._span(start.span))
        finally:
            self._leave()

    def _parse_leaf_proof(self) -> LeafProof:
        tok = self._advance()
        if tok.kind != TokenKind.BY:
            return LeafProof(tok.value, span=tok.span)
        only, facts, defs = self._parse_facts()
        return LeafProof(tok.value, facts, defs, only, span=self._span(tok.span))

    def _parse_facts(self) -> tuple[bool, list[Expr], list[str]]:
        only = False
        if self._at(TokenKind.ONLY):
            self._advance()
            only = True
        facts: list[Expr] = []
        if not self._at(TokenKind.DEF) and self._at_expr_start():
            facts.append(self._parse_expr())
            while self._at(TokenKind.COMMA):
                self._advance()
                facts.append(self._parse_expr())
        defs: list[str] = []
        if self._at(TokenKind.DEF):
            self._advance()
            defs.append(self._parse_qualified_name())
            while self._at(TokenKind.COMMA):
                self._advance()
                defs.append(self._parse_qualified_name())
        return only, facts, defs

    def _parse_qualified_name(self) -> str:
        tok = self._current()
        if tok.kind not in (TokenKind.IDENTIFIER, TokenKind.OPERATOR):
            raise self._unexpected("a name")
        name = self._advance().value
        while self._at(TokenKind.BANG) and self._peek(1).kind == TokenKind.IDENTIFIER:
            self._advance()
            name += "!" + self._advance().value
        return name

    def _parse_use_or_hide(self) -> UseOrHide:
        tok = self._advance()
        only, facts, defs = self._parse_facts()
        return UseOrHide(tok.value, facts, defs, only, span=self._span(tok.span))

    def _parse_steps(self, outer: int) -> list[ProofStep]:
        first = self._current()
        level = _step_level(first.value, outer)
        steps: list[ProofStep] = []
        while self._at(TokenKind.STEP_LABEL):
            tok = self._current()
            if _step_level(tok.value, level) != level:
                break
            leading = self._take_leading()
            step = self._parse_step(level)
            steps.append(self._finish(step, leading))
            if step.keyword == "QED":
                break
        return steps

    def _parse_step(self, level: int) -> ProofStep:
        label = self._advance()
        tok = self._current()
        keyword = None
        statement: Expr | AssumeProve | None = None
        bounds: list[Bound] = []
        exprs: list[Expr] = []
        defs: list[Unit] = []
        leaf: LeafProof | None = None

        if tok.kind in _STEP_KEYWORDS:
            keyword = self._advance().value
            kind = tok.kind
            if kind in (TokenKind.SUFFICES,):
                statement = self._parse_statement()
            elif kind in (TokenKind.CASE, TokenKind.HAVE):
                statement = self._parse_expr()
            elif kind == TokenKind.TAKE:
                bounds = self._parse_bounds(allow_unbounded=True)
            elif kind == TokenKind.WITNESS:
                exprs = [self._parse_expr()]
                while self._at(TokenKind.COMMA):
                    self._advance()
                    exprs.append(self._parse_expr())
            elif kind == TokenKind.PICK:
                bounds = self._parse_bounds(allow_unbounded=True)
                self._expect(TokenKind.COLON, "':'")
                statement = self._parse_expr()
            elif kind in (TokenKind.USE, TokenKind.HIDE):
                only, facts, names = self._parse_facts()
                leaf = LeafProof(keyword, facts, names, only, span=self._span(tok.span))
            elif kind == TokenKind.DEFINE:
                while self._at_definition():
                    unit_leading = self._take_leading()
                    unit = self._parse_definition(self._current(), local=False)
                    defs.append(self._finish(unit, unit_leading))
        elif self._at_definition():
            defs.append(self._parse_definition(tok, local=False))
        else:
            statement = self._parse_statement()

        proof = None
        nxt = self._current()
        if self._at_any(*_PROOF_STARTS) or (
            nxt.kind == TokenKind.STEP_LABEL and _step_level(nxt.value, level + 1) > level
            and not nxt.value.startswith("<*>")
        ):
            proof = self._parse_proof(level)
        return ProofStep(
            label.value, keyword, statement, bounds, exprs, defs, leaf, proof,
            span=self._span(label.span),
        )

    # ── Expressions ──────────────────────────────────────────────

    def _parse_expr(self, ctx: OpInfo | None = None) -> Expr:
        """Parse an expression whose operators all bind tighter than ``ctx``."""
        self._enter()
        try:
            return self._parse_binary(ctx)
        finally:
            self._leave()

    def _infix_at(self) -> OpInfo | None:
        tok = self._current()
        if tok.kind == TokenKind.OPERATOR:
            return INFIX_OPS.get(tok.value)
        return None

    def _parse_binary(self, ctx: OpInfo | None) -> Expr:
        left = self._parse_operand(ctx)
        while True:
            info = self._infix_at()
            if info is None:
                break
            op_tok = self._current()
            if ctx is not None:
                rel = relate(ctx, info)
                if rel == Relation.AMBIGUOUS:
                    raise self._ambiguous(ctx, op_tok)
                if rel == Relation.LOOSER:
                    break
            self._advance()
            right = self._parse_expr(info)
            left = InfixOp(
                left, info.symbol, right,
                span=self._span(left.span), op_span=op_tok.span,
            )
        return left

    def _ambiguous(self, left: OpInfo, tok: Token) -> SyntaxError:
        return SyntaxError(
            SyntaxErrorKind.AMBIGUOUS_PRECEDENCE,
            f"precedence of {left.symbol!r} and {tok.value!r} conflicts; "
            "the expression must be parenthesized",
            tok.span, tok.offset,
            suggestion=Suggestion(
                "parenthesize",
                f"wrap the operand of {left.symbol!r} or of {tok.value!r} in parentheses",
            ),
        )

    def _at_expr_start(self) -> bool:
        tok = self._current()
        return tok.kind in (
            TokenKind.IDENTIFIER, TokenKind.NUMERAL, TokenKind.STRING,
            TokenKind.STEP_LABEL, TokenKind.LPAREN, TokenKind.LBRACKET,
            TokenKind.LBRACE, TokenKind.LANGLE, TokenKind.QUANTIFIER,
            TokenKind.IF, TokenKind.CASE, TokenKind.LET, TokenKind.CHOOSE,
            TokenKind.LAMBDA, TokenKind.FAIRNESS, TokenKind.BOX, TokenKind.AT,
        ) or (tok.kind == TokenKind.OPERATOR and (tok.value in PREFIX_OPS or tok.value in BULLETS))

    def _parse_operand(self, ctx: OpInfo | None) -> Expr:
        leading = self._take_leading()
        tok = self._current()
        kind = tok.kind

        if kind == TokenKind.OPERATOR and tok.value in BULLETS:
            node = self._parse_junction_list()
        elif (kind == TokenKind.OPERATOR and tok.value in PREFIX_OPS) or kind == TokenKind.BOX:
            self._advance()
            info = PREFIX_OPS[tok.value]
            operand = self._parse_expr(info)
            node = PrefixOp(tok.value, operand, span=self._span(tok.span))
        elif kind == TokenKind.QUANTIFIER:
            node = self._parse_quantifier()
        elif kind == TokenKind.CHOOSE:
            node = self._parse_choose()
        elif kind == TokenKind.IF:
            node = self._parse_if()
        elif kind == TokenKind.CASE:
            node = self._parse_case()
        elif kind == TokenKind.LET:
            node = self._parse_let()
        elif kind == TokenKind.LAMBDA:
            node = self._parse_lambda()
        else:
            node = self._parse_postfix_chain(self._parse_primary(), ctx)
        return self._finish(node, leading)

    def _parse_postfix_chain(self, node: Expr, ctx: OpInfo | None) -> Expr:
        while True:
            tok = self._current()
            if tok.kind == TokenKind.LBRACKET:
                self._advance()
                args = self._parse_expr_list(TokenKind.RBRACKET)
                self._expect(TokenKind.RBRACKET, "']'")
                node = FunctionApply(node, args, span=self._span(node.span))
            elif tok.kind == TokenKind.DOT and self._peek(1).kind == TokenKind.IDENTIFIER:
                self._advance()
                name = self._advance().value
                node = FieldAccess(node, name, span=self._span(node.span))
            elif tok.kind == TokenKind.OPERATOR and tok.value in POSTFIX_OPS:
                info = POSTFIX_OPS[tok.value]
                if ctx is not None and relate(ctx, info) == Relation.LOOSER:
                    break
                self._advance()
                node = PostfixOp(node, tok.value, span=self._span(node.span))
            else:
                break
        return node

    def _parse_expr_list(self, closer: TokenKind) -> list[Expr]:
        items: list[Expr] = []
        if self._at(closer):
            return items
        items.append(self._parse_expr())
        while self._at(TokenKind.COMMA):
            self._advance()
            items.append(self._parse_expr())
        items[-1] = self._close(items[-1])
        return items

    def _parse_primary(self) -> Expr:
        tok = self._current()
        kind = tok.kind
        if kind == TokenKind.IDENTIFIER:
            return self._parse_name()
        if kind == TokenKind.NUMERAL:
            self._advance()
            return Numeral(tok.value, span=tok.span)
        if kind == TokenKind.STRING:
            self._advance()
            return StringLit(tok.value, span=tok.span)
        if kind in (TokenKind.STEP_LABEL, TokenKind.AT):
            self._advance()
            return Ident(tok.value, span=tok.span)
        if kind == TokenKind.LPAREN:
            self._advance()
            inner = self._close(self._parse_expr())
            self._expect(TokenKind.RPAREN, "')'")
            return Parens(inner, span=self._span(tok.span))
        if kind == TokenKind.LBRACE:
            return self._parse_set()
        if kind == TokenKind.LANGLE:
            return self._parse_tuple()
        if kind == TokenKind.LBRACKET:
            return self._parse_bracket()
        if kind == TokenKind.FAIRNESS:
            return self._parse_fairness()
        raise self._unexpected("an expression")

    def _parse_name(self) -> Expr:
        tok = self._advance()
        name = tok.value
        while self._at(TokenKind.BANG) and self._peek(1).kind == TokenKind.IDENTIFIER:
            self._advance()
            name += "!" + self._advance().value
        if self._at(TokenKind.LPAREN):
            self._advance()
            args = self._parse_expr_list(TokenKind.RPAREN)
            self._expect(TokenKind.RPAREN, "')'")
            return Apply(name, args, span=self._span(tok.span))
        return Ident(name, span=self._span(tok.span))

    # ── Bullet lists ─────────────────────────────────────────────

    def _parse_junction_list(self) -> JunctionList:
        first = self._current()
        op = first.value
        c0 = first.span.start_col
        items: list[JunctionItem] = []
        leading: tuple[Comment, ...] = ()

        while True:
            bullet = self._advance()
            col = bullet.span.start_col
            self._fences.append(col)
            try:
                expr = self._parse_expr()
            finally:
                self._fences.pop()
            item = JunctionItem(expr, col, span=self._span(bullet.span))
            items.append(self._attach(item, leading))

            nxt = self._current()
            if not (
                nxt.kind == TokenKind.OPERATOR
                and nxt.value in BULLETS
                and nxt.span.start_line > self._prev().span.end_line
            ):
                break
            ncol = nxt.span.start_col
            outer = self._fences[-1] if self._fences else 0
            if ncol == c0 and nxt.value != op:
                raise SyntaxError(
                    SyntaxErrorKind.MALFORMED_BULLET_LIST,
                    f"{nxt.value!r} bullet in a {op!r} list at the same column",
                    nxt.span, nxt.offset,
                    expected=repr(op), found=repr(nxt.value),
                )
            if nxt.value != op or not (ncol == c0 or outer < ncol < c0):
                break
            leading = self._take_leading()

        return JunctionList(op, items, span=self._span(first.span))

    # ── Binders ──────────────────────────────────────────────────

    def _looks_like_bound(self) -> bool:
        idx = self.pos
        toks = self.tokens
        if toks[idx].kind == TokenKind.LANGLE:
            idx += 1
            while toks[idx].kind in (TokenKind.IDENTIFIER, TokenKind.COMMA):
                idx += 1
            if toks[idx].kind != TokenKind.RANGLE:
                return False
            idx += 1
        elif toks[idx].kind == TokenKind.IDENTIFIER:
            idx += 1
            while toks[idx].kind == TokenKind.COMMA and toks[idx + 1].kind == TokenKind.IDENTIFIER:
                idx += 2
        else:
            return False
        return toks[idx].is_op("\\in")

    def _parse_bound_names(self) -> tuple[list[str], bool]:
        if self._at(TokenKind.LANGLE):
            self._advance()
            names = [self._expect(TokenKind.IDENTIFIER, "a bound variable").value]
            while self._at(TokenKind.COMMA):
                self._advance()
                names.append(self._expect(TokenKind.IDENTIFIER, "a bound variable").value)
            self._expect(TokenKind.RANGLE, "'>>'")
            return names, True
        names = [self._expect(TokenKind.IDENTIFIER, "a bound variable").value]
        while self._at(TokenKind.COMMA) and self._peek(1).kind == TokenKind.IDENTIFIER:
            self._advance()
            names.append(self._advance().value)
        return names, False

    def _parse_bound(self, *, allow_unbounded: bool) -> Bound:
        start = self._current()
        names, is_tuple = self._parse_bound_names()
        domain = None
        if self._at_op("\\in"):
            self._advance()
            domain = self._parse_expr()
        elif not allow_unbounded or is_tuple:
            raise self._unexpected("'\\in'")
        return Bound(names, domain, is_tuple, span=self._span(start.span))

    def _parse_bounds(self, *, allow_unbounded: bool) -> list[Bound]:
        bounds = [self._parse_bound(allow_unbounded=allow_unbounded)]
        while bounds[-1].domain is not None and self._at(TokenKind.COMMA):
            self._advance()
            bounds.append(self._parse_bound(allow_unbounded=False))
        return bounds

    def _parse_quantifier(self) -> Quantifier:
        tok = self._advance()
        bounds = self._parse_bounds(allow_unbounded=True)
        self._expect(TokenKind.COLON, "':'")
        body = self._parse_expr()
        return Quantifier(tok.value, bounds, body, span=self._span(tok.span))

    def _parse_choose(self) -> Choose:
        tok = self._advance()
        bound = self._parse_bound(allow_unbounded=True)
        self._expect(TokenKind.COLON, "':'")
        body = self._parse_expr()
        return Choose(bound, body, span=self._span(tok.span))

    def _parse_lambda(self) -> Lambda:
        tok = self._advance()
        params = [self._expect(TokenKind.IDENTIFIER, "a parameter").value]
        while self._at(TokenKind.COMMA):
            self._advance()
            params.append(self._expect(TokenKind.IDENTIFIER, "a parameter").value)
        self._expect(TokenKind.COLON, "':'")
        body = self._parse_expr()
        return Lambda(params, body, span=self._span(tok.span))

    # ── Control constructs ───────────────────────────────────────

    def _parse_if(self) -> IfThenElse:
        tok = self._advance()
        cond = self._parse_expr()
        self._expect(TokenKind.THEN, "THEN")
        then = self._parse_expr()
        self._expect(TokenKind.ELSE, "ELSE")
        else_ = self._parse_expr()
        return IfThenElse(cond, then, else_, span=self._span(tok.span))

    def _parse_case(self) -> Case:
        tok = self._advance()
        arms: list[CaseArm] = []
        other = None
        leading: tuple[Comment, ...] = ()
        while True:
            start = self._current()
            if self._at(TokenKind.OTHER):
                self._advance()
                self._expect(TokenKind.ARROW, "'->'")
                value = self._parse_expr()
                other = self._attach(CaseArm(None, value, span=self._span(start.span)), leading)
                break
            guard = self._parse_expr()
            self._expect(TokenKind.ARROW, "'->'")
            value = self._parse_expr()
            arms.append(self._attach(CaseArm(guard, value, span=self._span(start.span)), leading))
            if not self._at(TokenKind.BOX):
                break
            leading = self._take_leading()
            self._advance()
        return Case(arms, other, span=self._span(tok.span))

    def _parse_let(self) -> LetIn:
        tok = self._advance()
        defs: list[Unit] = []
        while not self._at(TokenKind.IN):
            leading = self._take_leading()
            cur = self._current()
            if cur.kind == TokenKind.RECURSIVE:
                unit = self._parse_unit()
            elif cur.kind in (TokenKind.IDENTIFIER, TokenKind.OPERATOR, TokenKind.LOCAL):
                unit = self._parse_definition(cur, local=False)
            else:
                raise self._unexpected("a definition or IN")
            defs.append(self._finish(unit, leading))
        if not defs:
            raise self._unexpected("a definition")
        in_leading = self._take_leading()
        self._expect(TokenKind.IN, "IN")
        body = self._parse_expr()
        body = self._attach(body, in_leading)
        return LetIn(defs, body, span=self._span(tok.span))

    # ── Constructors ─────────────────────────────────────────────

    def _parse_set(self) -> Expr:
        start = self._advance()
        if self._at(TokenKind.RBRACE):
            self._advance()
            return SetEnum([], span=self._span(start.span))

        if self._looks_like_bound():
            state = self._save()
            bound = self._parse_bound(allow_unbounded=False)
            if self._at(TokenKind.COLON):
                self._advance()
                predicate = self._close(self._parse_expr())
                self._expect(TokenKind.RBRACE, "'}'")
                return SetFilter(bound, predicate, span=self._span(start.span))
            self._restore(state)

        first = self._parse_expr()
        if self._at(TokenKind.COLON):
            self._advance()
            bounds = self._parse_bounds(allow_unbounded=False)
            self._expect(TokenKind.RBRACE, "'}'")
            return SetMap(first, bounds, span=self._span(start.span))
        items = [first]
        while self._at(TokenKind.COMMA):
            self._advance()
            items.append(self._parse_expr())
        items[-1] = self._close(items[-1])
        self._expect(TokenKind.RBRACE, "'}'")
        return SetEnum(items, span=self._span(start.span))

    def _parse_tuple(self) -> Expr:
        start = self._advance()
        items: list[Expr] = []
        if not self._at_any(TokenKind.RANGLE, TokenKind.RANGLE_SUB):
            items = self._parse_expr_list(TokenKind.RANGLE)
        if self._at(TokenKind.RANGLE_SUB):
            self._advance()
            subscript = self._parse_subscript()
            action = items[0] if len(items) == 1 else TupleConstruct(items, span=self._span(start.span))
            return ActionExpr(True, action, subscript, span=self._span(start.span))
        self._expect(TokenKind.RANGLE, "'>>'")
        return TupleConstruct(items, span=self._span(start.span))

    def _parse_subscript(self) -> Expr:
        tok = self._current()
        if tok.kind == TokenKind.IDENTIFIER:
            self._advance()
            name = tok.value
            while self._at(TokenKind.BANG) and self._peek(1).kind == TokenKind.IDENTIFIER:
                self._advance()
                name += "!" + self._advance().value
            return Ident(name, span=self._span(tok.span))
        if tok.kind == TokenKind.LANGLE:
            return self._parse_tuple()
        if tok.kind == TokenKind.LPAREN:
            self._advance()
            inner = self._parse_expr()
            self._expect(TokenKind.RPAREN, "')'")
            return Parens(inner, span=self._span(tok.span))
        raise self._unexpected("a subscript")

    def _parse_fairness(self) -> Fairness:
        tok = self._advance()
        subscript = self._parse_subscript()
        self._expect(TokenKind.LPAREN, "'('")
        action = self._close(self._parse_expr())
        self._expect(TokenKind.RPAREN, "')'")
        return Fairness(tok.value, subscript, action, span=self._span(tok.span))

    def _parse_bracket(self) -> Expr:
        start = self._advance()
        tok = self._current()
        nxt = self._peek(1)

        if tok.kind == TokenKind.IDENTIFIER and nxt.kind in (TokenKind.MAPS_TO, TokenKind.COLON):
            is_set = nxt.kind == TokenKind.COLON
            fields = self._parse_record_fields(TokenKind.COLON if is_set else TokenKind.MAPS_TO)
            self._expect(TokenKind.RBRACKET, "']'")
            span = self._span(start.span)
            return RecordSet(fields, span=span) if is_set else RecordConstruct(fields, span=span)

        if self._looks_like_bound():
            bounds = self._parse_bounds(allow_unbounded=False)
            self._expect(TokenKind.MAPS_TO, "'|->'")
            body = self._close(self._parse_expr())
            self._expect(TokenKind.RBRACKET, "']'")
            return FunctionConstruct(bounds, body, span=self._span(start.span))

        first = self._parse_expr()
        if self._at(TokenKind.ARROW):
            self._advance()
            codomain = self._close(self._parse_expr())
            self._expect(TokenKind.RBRACKET, "']'")
            return FunctionSet(first, codomain, span=self._span(start.span))
        if self._at(TokenKind.EXCEPT):
            self._advance()
            updates = self._parse_except_updates()
            self._expect(TokenKind.RBRACKET, "']'")
            return Except(first, updates, span=self._span(start.span))
        if self._at(TokenKind.RBRACKET_SUB):
            self._advance()
            subscript = self._parse_subscript()
            return ActionExpr(False, first, subscript, span=self._span(start.span))
        raise self._unexpected("'->', EXCEPT or ']_'")

    def _parse_record_fields(self, sep: TokenKind) -> list[RecordField]:
        fields: list[RecordField] = []
        while True:
            leading = self._take_leading()
            name_tok = self._expect(TokenKind.IDENTIFIER, "a field name")
            self._expect(sep, "'|->'" if sep == TokenKind.MAPS_TO else "':'")
            value = self._parse_expr()
            field = RecordField(name_tok.value, value, span=self._span(name_tok.span))
            fields.append(self._attach(field, leading))
            if not self._at(TokenKind.COMMA):
                break
            self._advance()
        fields[-1] = self._close(fields[-1])
        return fields

    def _parse_except_updates(self) -> list[ExceptUpdate]:
        updates: list[ExceptUpdate] = []
        while True:
            leading = self._take_leading()
            start = self._expect(TokenKind.BANG, "'!'")
            path: list[ExceptPath] = []
            while True:
                if self._at(TokenKind.DOT):
                    self._advance()
                    path.append(ExceptPath(field_name=self._expect(TokenKind.IDENTIFIER, "a field name").value))
                elif self._at(TokenKind.LBRACKET):
                    self._advance()
                    index = self._parse_expr_list(TokenKind.RBRACKET)
                    self._expect(TokenKind.RBRACKET, "']'")
                    path.append(ExceptPath(index=index))
                else:
                    break
            if not path:
                raise self._unexpected("'[' or '.' after '!'")
            self._expect_op("=")
            value = self._parse_expr()
            update = ExceptUpdate(path, value, span=self._span(start.span))
            updates.append(self._attach(update, leading))
            if not self._at(TokenKind.COMMA):
                break
            self._advance()
        updates[-1] = self._close(updates[-1])
        return updates


def parse_tokens(
    tokens: list[Token],
    comments: list[Comment],
    filename: str = "<stdin>",
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Module:
    """Parse a lexed module. Raises SyntaxError."""
    return Parser(tokens, comments, filename, max_depth=max_depth).parse()
