"""Tests for the TLA+ parser."""

from __future__ import annotations

import pytest

from tlafmt.ast_nodes import (
    ActionExpr,
    Apply,
    Assume,
    Case,
    Choose,
    CommentBlock,
    Constants,
    Except,
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
    Numeral,
    OpDecl,
    OperatorDef,
    Parens,
    PostfixOp,
    PrefixOp,
    Quantifier,
    RecordConstruct,
    RecordSet,
    Recursive,
    Separator,
    SetEnum,
    SetFilter,
    SetMap,
    StepProof,
    Theorem,
    TupleConstruct,
    UseOrHide,
    Variables,
)
from tlafmt.errors import SyntaxError, SyntaxErrorKind
from tlafmt.formatter import parse

from tests.helpers import module, parse_expr, parse_module


def syntax_error(source: str, **kwargs) -> SyntaxError:
    """Parse source, asserting it fails with a SyntaxError."""
    with pytest.raises(SyntaxError) as exc:
        parse(source, "<test>", **kwargs)
    return exc.value


class TestModuleStructure:
    def test_empty_module(self):
        mod = parse(module(name="Spec"))
        assert isinstance(mod, Module)
        assert mod.name == "Spec"
        assert mod.extends == []
        assert mod.units == []

    def test_extends(self):
        mod = parse_module("EXTENDS Naturals, Sequences")
        assert [n.name for n in mod.extends] == ["Naturals", "Sequences"]

    def test_extends_keeps_comments_on_names(self):
        mod = parse_module("EXTENDS Naturals, \\* arithmetic", "        Sequences \\* lists")
        first, second = mod.extends
        assert [c.text for c in first.comments.trailing] == ["\\* arithmetic"]
        assert [c.text for c in second.comments.trailing] == ["\\* lists"]
        assert mod.units == []

    def test_constants_with_arity(self):
        unit = parse_module("CONSTANTS N, F(_, _)").units[0]
        assert isinstance(unit, Constants)
        assert unit.keyword == "CONSTANTS"
        assert unit.decls == [OpDecl("N"), OpDecl("F", 2)]

    def test_variables(self):
        unit = parse_module("VARIABLES x, y").units[0]
        assert isinstance(unit, Variables)
        assert unit.names == ["x", "y"]

    def test_separator(self):
        units = parse_module("A == 1", "----", "B == 2").units
        assert isinstance(units[1], Separator)
        assert len(units) == 3

    def test_assume(self):
        unit = parse_module("ASSUME N \\in Nat").units[0]
        assert isinstance(unit, Assume)
        assert isinstance(unit.expr, InfixOp)

    def test_named_assumption(self):
        unit = parse_module("ASSUMPTION Pos == N > 0").units[0]
        assert unit.keyword == "ASSUMPTION"
        assert unit.name == "Pos"

    def test_nested_module(self):
        mod = parse_module("---- MODULE Inner ----", "X == 1", "====", "Y == 2")
        inner = mod.units[0]
        assert isinstance(inner, Module)
        assert inner.name == "Inner"
        assert len(inner.units) == 1
        assert isinstance(mod.units[1], OperatorDef)

    def test_preamble_and_epilogue(self):
        mod = parse("header notes\n" + module() + "trailer\n")
        assert mod.preamble == "header notes\n"
        assert mod.epilogue == "\ntrailer\n"

    def test_missing_header(self):
        err = syntax_error("x == 1")
        assert err.kind == SyntaxErrorKind.MISSING_MODULE_HEADER
        assert err.code == "E201"

    def test_missing_footer(self):
        err = syntax_error("---- MODULE M ----\nX == 1\n")
        assert err.kind == SyntaxErrorKind.UNEXPECTED_TOKEN


class TestDefinitions:
    def test_operator_with_params(self):
        unit = parse_module("Add(a, b) == a + b").units[0]
        assert isinstance(unit, OperatorDef)
        assert unit.name == "Add"
        assert [p.name for p in unit.params] == ["a", "b"]
        assert unit.form == "operator"

    def test_function_definition(self):
        unit = parse_module("f[n \\in Nat] == n * 2").units[0]
        assert unit.form == "function"
        assert unit.bounds[0].names == ["n"]

    def test_infix_definition(self):
        unit = parse_module("a ++ b == a + b").units[0]
        assert unit.form == "infix"
        assert unit.name == "++"

    def test_prefix_definition(self):
        unit = parse_module("~ a == a").units[0]
        assert unit.form == "prefix"
        assert unit.name == "~"

    def test_local_definition(self):
        unit = parse_module("LOCAL Helper == 1").units[0]
        assert unit.local

    def test_recursive_marks_definition(self):
        units = parse_module(
            "RECURSIVE Fact(_)",
            "Fact(n) == IF n = 0 THEN 1 ELSE n * Fact(n - 1)",
        ).units
        assert isinstance(units[0], Recursive)
        assert units[0].decls == [OpDecl("Fact", 1)]
        assert units[1].recursive

    def test_non_recursive_definition(self):
        assert not parse_module("F(n) == n").units[0].recursive

    def test_instance_with_substitutions(self):
        unit = parse_module("INSTANCE Channel WITH Data <- Msg, chan <- in").units[0]
        assert isinstance(unit, Instance)
        assert unit.module == "Channel"
        assert [s.name for s in unit.substitutions] == ["Data", "chan"]

    def test_named_instance(self):
        unit = parse_module("C(x) == INSTANCE Channel").units[0]
        assert isinstance(unit, Instance)
        assert unit.name == "C"
        assert unit.params == [OpDecl("x")]


class TestExpressions:
    def test_precedence(self):
        expr = parse_expr("a + b * c")
        assert isinstance(expr, InfixOp)
        assert expr.op == "+"
        assert isinstance(expr.right, InfixOp)
        assert expr.right.op == "*"

    def test_left_associative(self):
        expr = parse_expr("a - b - c")
        assert expr.op == "-"
        assert isinstance(expr.left, InfixOp)
        assert isinstance(expr.right, Ident)

    def test_prefix_minus(self):
        expr = parse_expr("-x + y")
        assert expr.op == "+"
        assert isinstance(expr.left, PrefixOp)

    def test_negation_scopes_over_equality(self):
        expr = parse_expr("~a = b")
        assert isinstance(expr, PrefixOp)
        assert isinstance(expr.operand, InfixOp)

    def test_prime(self):
        expr = parse_expr("x' = x + 1")
        assert isinstance(expr.left, PostfixOp)
        assert expr.left.op == "'"

    def test_parens(self):
        expr = parse_expr("(a + b) * c")
        assert expr.op == "*"
        assert isinstance(expr.left, Parens)

    def test_same_tree_regardless_of_spacing(self):
        assert parse_expr("a+b*c") == parse_expr("a  +  b * c")

    def test_application_and_access(self):
        expr = parse_expr("f[x].name")
        assert isinstance(expr, FieldAccess)
        assert isinstance(expr.record, FunctionApply)
        assert expr.name == "name"

    def test_operator_application(self):
        expr = parse_expr("Op(a, b)")
        assert isinstance(expr, Apply)
        assert len(expr.args) == 2

    def test_instance_qualified_name(self):
        expr = parse_expr("M!Op(x)")
        assert isinstance(expr, Apply)
        assert expr.name == "M!Op"

    def test_range(self):
        expr = parse_expr("x \\in 1..N")
        assert expr.op == "\\in"
        assert expr.right.op == ".."

    def test_bounded_quantifier(self):
        expr = parse_expr("\\A x, y \\in S : x = y")
        assert isinstance(expr, Quantifier)
        assert expr.quantifier == "\\A"
        assert expr.bounds[0].names == ["x", "y"]
        assert expr.is_bounded

    def test_unbounded_quantifier(self):
        expr = parse_expr("\\E x : P(x)")
        assert expr.bounds[0].domain is None
        assert not expr.is_bounded

    def test_several_bounds(self):
        expr = parse_expr("\\E x \\in S, y \\in T : x = y")
        assert len(expr.bounds) == 2

    def test_choose(self):
        expr = parse_expr("CHOOSE x \\in S : x > 0")
        assert isinstance(expr, Choose)

    def test_if(self):
        assert isinstance(parse_expr("IF a THEN b ELSE c"), IfThenElse)

    def test_case(self):
        expr = parse_expr("CASE x = 1 -> a [] x = 2 -> b [] OTHER -> c")
        assert isinstance(expr, Case)
        assert len(expr.arms) == 2
        assert expr.other is not None

    def test_let(self):
        expr = parse_expr("LET y == 1 IN y + 1")
        assert isinstance(expr, LetIn)
        assert expr.defs[0].name == "y"

    def test_lambda(self):
        expr = parse_expr("LAMBDA x, y : x + y")
        assert isinstance(expr, Lambda)
        assert expr.params == ["x", "y"]


class TestConstructors:
    def test_set_enumeration(self):
        expr = parse_expr("{1, 2, 3}")
        assert isinstance(expr, SetEnum)
        assert len(expr.items) == 3

    def test_empty_set(self):
        assert parse_expr("{}").items == []

    def test_set_filter(self):
        expr = parse_expr("{x \\in S : x > 0}")
        assert isinstance(expr, SetFilter)
        assert expr.bound.names == ["x"]

    def test_set_map(self):
        expr = parse_expr("{x + 1 : x \\in S}")
        assert isinstance(expr, SetMap)

    def test_singleton_membership_set(self):
        expr = parse_expr("{x \\in S}")
        assert isinstance(expr, SetEnum)
        assert isinstance(expr.items[0], InfixOp)

    def test_tuple(self):
        assert len(parse_expr("<<a, b>>").items) == 2

    def test_record(self):
        expr = parse_expr("[a |-> 1, b |-> 2]")
        assert isinstance(expr, RecordConstruct)
        assert [f.name for f in expr.fields] == ["a", "b"]

    def test_record_set(self):
        assert isinstance(parse_expr("[a : Nat, b : BOOLEAN]"), RecordSet)

    def test_function_construct(self):
        assert isinstance(parse_expr("[x \\in S |-> x * 2]"), FunctionConstruct)

    def test_function_set(self):
        assert isinstance(parse_expr("[S -> T]"), FunctionSet)

    def test_except(self):
        expr = parse_expr("[f EXCEPT ![1] = @ + 1, !.a = 3]")
        assert isinstance(expr, Except)
        assert len(expr.updates) == 2
        assert expr.updates[0].path[0].index is not None
        assert expr.updates[1].path[0].field_name == "a"

    def test_box_action(self):
        expr = parse_expr("[][Next]_vars")
        assert isinstance(expr, PrefixOp)
        assert expr.op == "[]"
        assert isinstance(expr.operand, ActionExpr)
        assert not expr.operand.angle

    def test_angle_action(self):
        expr = parse_expr("<<Next>>_vars")
        assert isinstance(expr, ActionExpr)
        assert expr.angle

    def test_tuple_subscript(self):
        expr = parse_expr("[Next]_<<x, y>>")
        assert isinstance(expr.subscript, TupleConstruct)

    def test_fairness(self):
        expr = parse_expr("WF_vars(Next)")
        assert isinstance(expr, Fairness)
        assert expr.kind == "WF_"


class TestJunctionLists:
    def test_aligned_bullets(self):
        expr = parse_expr("\n  /\\ a\n  /\\ b")
        assert isinstance(expr, JunctionList)
        assert expr.op == "/\\"
        assert len(expr.items) == 2
        assert expr.column == 3

    def test_single_item_is_retained(self):
        expr = parse_expr("/\\ a")
        assert isinstance(expr, JunctionList)
        assert len(expr.items) == 1

    def test_nested_lists(self):
        expr = parse_expr(
            "\n  /\\ a"
            "\n  /\\ \\/ b"
            "\n     \\/ c"
            "\n  /\\ d"
        )
        assert len(expr.items) == 3
        inner = expr.items[1].expr
        assert isinstance(inner, JunctionList)
        assert inner.op == "\\/"
        assert len(inner.items) == 2

    def test_deeper_bullet_continues_item(self):
        expr = parse_expr("\n  /\\ a\n     /\\ b")
        assert len(expr.items) == 1
        item = expr.items[0].expr
        assert isinstance(item, InfixOp)
        assert item.op == "/\\"

    def test_under_indented_bullet_joins_list(self):
        expr = parse_expr("/\\ a > 0\n   /\\ b > 0")
        assert len(expr.items) == 2
        assert [item.column for item in expr.items] == [6, 4]

    def test_shallower_token_ends_item(self):
        units = parse_module("X ==", "  /\\ a", "  /\\ b", "Y == 1").units
        assert len(units) == 2
        assert len(units[0].body.items) == 2

    def test_mixed_bullets_at_same_column(self):
        err = syntax_error(module("X ==", "  /\\ a", "  \\/ b"))
        assert err.kind == SyntaxErrorKind.MALFORMED_BULLET_LIST
        assert err.code == "E203"
        assert (err.line, err.column) == (4, 3)

    def test_list_inside_parens(self):
        expr = parse_expr("(/\\ a\n      /\\ b)")
        assert isinstance(expr, Parens)
        assert len(expr.expr.items) == 2

    def test_inline_list_as_operand(self):
        expr = parse_expr("x = 1 /\\ \\/ a\n              \\/ b")
        assert expr.op == "/\\"
        assert isinstance(expr.right, JunctionList)
        assert len(expr.right.items) == 2


class TestPrecedenceErrors:
    def test_membership_and_union(self):
        err = syntax_error(module("X == a \\in b \\cup c"))
        assert err.kind == SyntaxErrorKind.AMBIGUOUS_PRECEDENCE
        assert err.code == "E202"
        assert (err.line, err.column) == (2, 14)
        assert err.suggestion is not None

    def test_parenthesized_is_fine(self):
        expr = parse_expr("a \\in (b \\cup c)")
        assert isinstance(expr.right, Parens)

    def test_chained_equality(self):
        err = syntax_error(module("X == a = b = c"))
        assert err.kind == SyntaxErrorKind.AMBIGUOUS_PRECEDENCE

    def test_synonyms_chain_like_the_same_operator(self):
        expr = parse_expr("a /\\ b \\land c")
        assert isinstance(expr, InfixOp) and expr.op == "\\land"
        assert isinstance(expr.left, InfixOp) and expr.left.op == "/\\"
        assert isinstance(parse_expr("a \\cup b \\union c"), InfixOp)

    def test_conjunction_and_disjunction_still_ambiguous(self):
        err = syntax_error(module("X == a /\\ b \\lor c"))
        assert err.kind == SyntaxErrorKind.AMBIGUOUS_PRECEDENCE


class TestNesting:
    def test_deep_parens_fail_cleanly(self):
        source = module("X == " + "(" * 200 + "x" + ")" * 200)
        err = syntax_error(source)
        assert err.kind == SyntaxErrorKind.TOO_DEEPLY_NESTED
        assert err.code == "E204"

    def test_limit_is_configurable(self):
        source = module("X == " + "(" * 10 + "x" + ")" * 10)
        assert syntax_error(source, max_depth=5).kind == SyntaxErrorKind.TOO_DEEPLY_NESTED
        assert parse(source, max_depth=50).units

    def test_moderate_nesting_parses(self):
        assert parse(module("X == " + "(" * 30 + "x" + ")" * 30)).units


class TestUnexpected:
    def test_missing_expression(self):
        err = syntax_error(module("X =="))
        assert err.kind == SyntaxErrorKind.UNEXPECTED_TOKEN
        assert err.expected == "an expression"
        assert err.line == 3

    def test_message_names_both_sides(self):
        err = syntax_error(module("X == IF a THEN b"))
        assert err.message.startswith("expected ELSE, found")


class TestProofs:
    def test_theorem_with_steps(self):
        unit = parse_module(
            "THEOREM Safety == Spec => []Inv",
            "  <1>1. Init => Inv",
            "    BY DEF Init, Inv",
            "  <1>2. QED",
            "    BY <1>1",
        ).units[0]
        assert isinstance(unit, Theorem)
        assert unit.name == "Safety"
        assert isinstance(unit.proof, StepProof)
        first, qed = unit.proof.steps
        assert isinstance(first.proof, LeafProof)
        assert first.proof.defs == ["Init", "Inv"]
        assert qed.keyword == "QED"
        assert isinstance(qed.proof.facts[0], Ident)
        assert qed.proof.facts[0].name == "<1>1"

    def test_leaf_proofs(self):
        units = parse_module("LEMMA A => A OBVIOUS", "THEOREM B PROOF OMITTED").units
        assert units[0].proof.keyword == "OBVIOUS"
        assert units[1].proof.keyword == "OMITTED"
        assert units[1].proof.has_proof_keyword

    def test_assume_prove(self):
        unit = parse_module("THEOREM ASSUME NEW x \\in Nat PROVE x >= 0").units[0]
        assert unit.statement.assumptions[0].name == "x"
        assert isinstance(unit.statement.conclusion, InfixOp)

    def test_nested_steps(self):
        unit = parse_module(
            "THEOREM T",
            "<1>1. A",
            "  <2>1. B",
            "    OBVIOUS",
            "  <2>2. QED",
            "    OBVIOUS",
            "<1>2. QED",
            "  OBVIOUS",
        ).units[0]
        steps = unit.proof.steps
        assert len(steps) == 2
        assert isinstance(steps[0].proof, StepProof)
        assert len(steps[0].proof.steps) == 2

    def test_use_def(self):
        unit = parse_module("USE DEF Init, Next").units[0]
        assert isinstance(unit, UseOrHide)
        assert unit.defs == ["Init", "Next"]


class TestComments:
    def test_free_standing_comment_is_a_unit(self):
        units = parse_module("\\* note", "X == 1").units
        assert isinstance(units[0], CommentBlock)
        assert units[0].comment.text == "\\* note"

    def test_trailing_comment_is_attached(self):
        body = parse_module("X == 1 \\* one").units[0].body
        assert isinstance(body, Numeral)
        assert [c.text for c in body.comments.trailing] == ["\\* one"]

    def test_comment_inside_list_leads_item(self):
        expr = parse_expr("\n  /\\ a\n  \\* second\n  /\\ b")
        assert [c.text for c in expr.items[1].comments.leading] == ["\\* second"]

    def test_comments_do_not_affect_equality(self):
        assert parse_expr("a + (* c *) b") == parse_expr("a + b")
