"""Tests for the operator precedence tables."""

from __future__ import annotations

from tlafmt.grammar import INFIX_OPS, POSTFIX_OPS, PREFIX_OPS, Fixity, Relation, relate


class TestTables:
    def test_fixities(self):
        assert INFIX_OPS["+"].fixity == Fixity.INFIX
        assert PREFIX_OPS["~"].fixity == Fixity.PREFIX
        assert POSTFIX_OPS["'"].fixity == Fixity.POSTFIX

    def test_minus_is_both_prefix_and_infix(self):
        assert "-" in PREFIX_OPS
        assert "-" in INFIX_OPS
        assert PREFIX_OPS["-"].lo > INFIX_OPS["-"].hi

    def test_ranges_are_well_formed(self):
        for table in (PREFIX_OPS, INFIX_OPS, POSTFIX_OPS):
            for info in table.values():
                assert 1 <= info.lo <= info.hi <= 15, info


class TestRelate:
    def test_tighter(self):
        assert relate(INFIX_OPS["+"], INFIX_OPS["*"]) == Relation.TIGHTER

    def test_looser(self):
        assert relate(INFIX_OPS["*"], INFIX_OPS["+"]) == Relation.LOOSER

    def test_left_associative_repeat(self):
        assert relate(INFIX_OPS["+"], INFIX_OPS["+"]) == Relation.LOOSER
        assert relate(INFIX_OPS["/\\"], INFIX_OPS["/\\"]) == Relation.LOOSER

    def test_synonym_repeat_is_left_associative(self):
        assert relate(INFIX_OPS["/\\"], INFIX_OPS["\\land"]) == Relation.LOOSER
        assert relate(INFIX_OPS["\\union"], INFIX_OPS["\\cup"]) == Relation.LOOSER
        assert relate(INFIX_OPS["\\X"], INFIX_OPS["\\times"]) == Relation.LOOSER

    def test_distinct_operators_at_one_level_are_ambiguous(self):
        assert relate(INFIX_OPS["/\\"], INFIX_OPS["\\/"]) == Relation.AMBIGUOUS

    def test_non_associative_repeat_is_ambiguous(self):
        assert relate(INFIX_OPS["="], INFIX_OPS["="]) == Relation.AMBIGUOUS

    def test_membership_and_union_overlap(self):
        assert relate(INFIX_OPS["\\in"], INFIX_OPS["\\cup"]) == Relation.AMBIGUOUS

    def test_containing_range_binds_looser(self):
        assert relate(INFIX_OPS["\\cdot"], INFIX_OPS["+"]) == Relation.TIGHTER
        assert relate(INFIX_OPS["+"], INFIX_OPS["\\cdot"]) == Relation.LOOSER

    def test_prefix_negation_against_equality(self):
        assert relate(PREFIX_OPS["~"], INFIX_OPS["="]) == Relation.TIGHTER

    def test_postfix_binds_tightest(self):
        assert relate(INFIX_OPS["^"], POSTFIX_OPS["'"]) == Relation.TIGHTER
