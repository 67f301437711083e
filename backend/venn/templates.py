"""
Probability Templates
=====================

Pre-populated diagrams for common probability exercises.

    DECK_OF_CARDS    52 cards; Hearts, Diamonds, Clubs, Spades, Aces,
                     Face Cards, Red Cards
    DICE_ROLLS_<n>   all 6^n ordered rolls of n dice (1 <= n <= 5);
                     "Sum is 7", "Doubles (All Same)", "Sum > 8" when n >= 2,
                     then "First Die Even"
    TWO_DICE_ROLLS   alias of DICE_ROLLS_2

Template sets are populated with the same rules a user would build in
the rule editor, so a template is just a diagram with rules applied.
"""

import itertools
import logging
from typing import List, Optional, Tuple

from .diagram import Diagram
from .errors import InvalidElementFormat, UnknownTemplate
from .rules import CardRule, CardRuleKind, Comparator, DiceRule, DiceRuleKind, Rule, RuleMatcher
from .types import ElementKind, MAX_DICE, RANKS, SUITS


logger = logging.getLogger(__name__)

DECK_OF_CARDS = "DECK_OF_CARDS"
DICE_ROLLS_PREFIX = "DICE_ROLLS_"
TWO_DICE_ROLLS = "TWO_DICE_ROLLS"

DECK_SETS: List[Tuple[str, Rule]] = [
    ("Hearts", CardRule(CardRuleKind.SUIT, "H")),
    ("Diamonds", CardRule(CardRuleKind.SUIT, "D")),
    ("Clubs", CardRule(CardRuleKind.SUIT, "C")),
    ("Spades", CardRule(CardRuleKind.SUIT, "S")),
    ("Aces", CardRule(CardRuleKind.RANK, "A")),
    ("Face Cards", CardRule(CardRuleKind.FACE_CARD)),
    ("Red Cards", CardRule(CardRuleKind.COLOR, "RED")),
]

MULTI_DICE_SETS: List[Tuple[str, Rule]] = [
    ("Sum is 7", DiceRule(DiceRuleKind.SUM, Comparator.EQ, 7)),
    ("Doubles (All Same)", DiceRule(DiceRuleKind.DOUBLES)),
    ("Sum > 8", DiceRule(DiceRuleKind.SUM, Comparator.GT, 8)),
]

FIRST_DIE_EVEN: Tuple[str, Rule] = ("First Die Even", DiceRule(DiceRuleKind.FIRST_DIE, Comparator.EVEN))


def template_names() -> List[str]:
    return [DECK_OF_CARDS] + [f"{DICE_ROLLS_PREFIX}{n}" for n in range(1, MAX_DICE + 1)]


def build_template(name: str, max_sets: Optional[int] = None) -> Diagram:
    """Create a populated diagram from a template name."""
    if name == DECK_OF_CARDS:
        return build_deck_of_cards(max_sets=max_sets)
    if name == TWO_DICE_ROLLS:
        return build_dice_rolls(2, max_sets=max_sets)
    if isinstance(name, str) and name.startswith(DICE_ROLLS_PREFIX):
        suffix = name[len(DICE_ROLLS_PREFIX):]
        if not suffix.isdigit():
            raise InvalidElementFormat(f"Invalid dice count in template: {name}")
        return build_dice_rolls(int(suffix), max_sets=max_sets)
    raise UnknownTemplate(f"Unknown template name: {name}", details={"template": name})


def build_deck_of_cards(max_sets: Optional[int] = None) -> Diagram:
    cards = [{"rank": rank, "suit": suit} for suit in SUITS for rank in RANKS]
    diagram = Diagram.build(ElementKind.PLAYING_CARD, cards, max_sets=max_sets, name="52-Card Deck")
    _populate(diagram, DECK_SETS)
    return diagram


def build_dice_rolls(num_dice: int, max_sets: Optional[int] = None) -> Diagram:
    if not 1 <= num_dice <= MAX_DICE:
        raise InvalidElementFormat(f"Number of dice must be between 1 and {MAX_DICE}")

    rolls = [{"dice": list(faces)} for faces in itertools.product(range(1, 7), repeat=num_dice)]
    diagram = Diagram.build(ElementKind.DICE_ROLL, rolls, max_sets=max_sets, name=f"{num_dice} Dice Rolls")

    sets = list(MULTI_DICE_SETS) if num_dice >= 2 else []
    sets.append(FIRST_DIE_EVEN)
    _populate(diagram, sets)
    return diagram


def _populate(diagram: Diagram, sets: List[Tuple[str, Rule]]) -> None:
    matcher = RuleMatcher(diagram.universe)
    for set_name, rule in sets:
        diagram.create_set(set_name)
        diagram.set_membership(set_name, matcher.match(rule))
    logger.info(f"Built template '{diagram.name}': {len(diagram.universe)} elements, {len(sets)} sets")
