"""
Rule matcher tests: dice, card, number and text predicates.
"""

import pytest

from venn import (
    CardRule,
    CardRuleKind,
    Comparator,
    DiceRoll,
    DiceRule,
    DiceRuleKind,
    Diagram,
    ElementKind,
    NumberRule,
    RuleMatcher,
    TextMatch,
    TextRule,
)
from venn.errors import InvalidRuleSpec, RuleTypeMismatch
from venn.rules import compare


def matcher_for(diagram: Diagram) -> RuleMatcher:
    return RuleMatcher.from_snapshot(diagram.snapshot())


# =============================================================================
# DICE
# =============================================================================

class TestDiceRules:

    def test_sum_is_seven_two_dice(self, two_dice):
        """Six ordered rolls of two dice sum to 7."""
        matched = matcher_for(two_dice).match(DiceRule(DiceRuleKind.SUM, Comparator.EQ, 7))
        assert matched == {"(1,6)", "(2,5)", "(3,4)", "(4,3)", "(5,2)", "(6,1)"}

    @pytest.mark.parametrize("faces,expected", [
        ((1, 1, 1), True),
        ((1, 2, 3), False),
        ((5, 5), True),
        ((3,), False),
        ((6, 6, 6, 6, 5), False),
    ])
    def test_doubles_means_all_equal(self, faces, expected):
        assert DiceRule(DiceRuleKind.DOUBLES).matches(DiceRoll(faces)) is expected

    def test_die_value_is_existential(self):
        rule = DiceRule(DiceRuleKind.DIE_VALUE, Comparator.EQ, 6)
        assert rule.matches(DiceRoll((1, 6)))
        assert rule.matches(DiceRoll((6, 2, 3)))
        assert not rule.matches(DiceRoll((1, 2)))

    def test_first_die(self):
        rule = DiceRule(DiceRuleKind.FIRST_DIE, Comparator.EVEN)
        assert rule.matches(DiceRoll((2, 1)))
        assert not rule.matches(DiceRoll((1, 2)))

    def test_sum_parity(self):
        assert DiceRule(DiceRuleKind.SUM, Comparator.ODD).matches(DiceRoll((1, 2)))
        assert DiceRule(DiceRuleKind.SUM, Comparator.EVEN).matches(DiceRoll((3, 3)))

    def test_string_parameters_are_coerced(self):
        rule = DiceRule("sum", "gt", 8)
        assert rule.rule_kind == DiceRuleKind.SUM
        assert rule.comparator == Comparator.GT

    @pytest.mark.parametrize("kwargs", [
        {"rule_kind": "TRIPLES"},
        {"rule_kind": "SUM", "comparator": "GE"},
        {"rule_kind": "SUM", "threshold": "seven"},
        {"rule_kind": "SUM", "threshold": True},
    ])
    def test_invalid_dice_rules(self, kwargs):
        with pytest.raises(InvalidRuleSpec):
            DiceRule(**kwargs)


# =============================================================================
# CARDS
# =============================================================================

class TestCardRules:

    def test_face_cards_exclude_aces(self, deck):
        matched = matcher_for(deck).match(CardRule(CardRuleKind.FACE_CARD))
        assert len(matched) == 12
        assert "AS" not in matched
        assert {"JH", "QD", "KC"} <= matched

    def test_color(self, deck):
        red = matcher_for(deck).match(CardRule(CardRuleKind.COLOR, "red"))
        assert len(red) == 26
        assert all(k.endswith(("H", "D")) for k in red)

    def test_suit_and_rank_normalized(self, deck):
        matcher = matcher_for(deck)
        assert len(matcher.match(CardRule(CardRuleKind.SUIT, "spades"))) == 13
        assert matcher.match(CardRule(CardRuleKind.RANK, "ace")) == {"AH", "AD", "AC", "AS"}

    @pytest.mark.parametrize("kind,value", [
        (CardRuleKind.SUIT, "X"),
        (CardRuleKind.RANK, "1"),
        (CardRuleKind.COLOR, "GREEN"),
        ("JOKER", ""),
    ])
    def test_invalid_card_rules(self, kind, value):
        with pytest.raises(InvalidRuleSpec):
            CardRule(kind, value)


# =============================================================================
# NUMBERS AND TEXT
# =============================================================================

class TestScalarRules:

    def test_number_comparators(self, number_diagram):
        matcher = matcher_for(number_diagram)
        assert matcher.match(NumberRule(Comparator.GT, 4)) == {"5", "6"}
        assert matcher.match(NumberRule(Comparator.EVEN)) == {"2", "4", "6"}

    def test_fractions_are_neither_even_nor_odd(self):
        assert not compare(2.5, Comparator.EVEN)
        assert not compare(2.5, Comparator.ODD)

    def test_text_rules(self):
        diagram = Diagram.build(ElementKind.TEXT, ["Apple", "apricot", "Banana"])
        matcher = matcher_for(diagram)
        assert matcher.match(TextRule(TextMatch.STARTS_WITH, "ap")) == {"Apple", "apricot"}
        assert matcher.match(TextRule(TextMatch.STARTS_WITH, "ap", case_sensitive=True)) == {"apricot"}
        assert matcher.match(TextRule(TextMatch.CONTAINS, "NAN")) == {"Banana"}

    def test_image_url_rule(self):
        diagram = Diagram.build(ElementKind.IMAGE_URL, ["https://a.org/x.png", "https://a.org/y.jpg"])
        rule = TextRule(TextMatch.ENDS_WITH, ".png", kind="IMAGE_URL")
        assert matcher_for(diagram).match(rule) == {"https://a.org/x.png"}

    def test_text_rule_rejects_other_kinds(self):
        with pytest.raises(InvalidRuleSpec):
            TextRule(TextMatch.EQUALS, "x", kind=ElementKind.NUMBER)
        with pytest.raises(InvalidRuleSpec):
            TextRule(TextMatch.EQUALS, "x", kind="SHAPE")


# =============================================================================
# MATCHER
# =============================================================================

class TestMatcher:

    def test_kind_mismatch(self, deck):
        with pytest.raises(RuleTypeMismatch) as exc:
            matcher_for(deck).match(DiceRule(DiceRuleKind.DOUBLES))
        assert exc.value.details == {"rule_kind": "DICE_ROLL", "universe_kind": "PLAYING_CARD"}

    def test_not_a_rule(self, deck):
        with pytest.raises(InvalidRuleSpec):
            matcher_for(deck).match({"rule_kind": "SUIT"})

    def test_apply_replaces_draft(self, two_dice):
        """Previously checked rolls that fail the rule are unchecked."""
        matcher = matcher_for(two_dice)
        application = matcher.apply({"(1,1)", "(1,6)"}, DiceRule(DiceRuleKind.SUM, Comparator.EQ, 7))
        assert "(1,1)" not in application.members
        assert application.removed == {"(1,1)"}
        assert "(1,6)" not in application.added
        assert len(application.added) == 5

    def test_apply_is_idempotent(self, two_dice):
        matcher = matcher_for(two_dice)
        rule = DiceRule(DiceRuleKind.DOUBLES)
        first = matcher.apply(set(), rule)
        second = matcher.apply(first.members, rule)
        assert second.members == first.members
        assert not second.added and not second.removed

    def test_empty_universe(self):
        diagram = Diagram(ElementKind.NUMBER)
        assert matcher_for(diagram).match(NumberRule(Comparator.GT, 0)) == frozenset()
