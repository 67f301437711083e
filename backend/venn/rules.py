"""
Rule Matcher
============

Typed predicates ("rules") used to bulk-select set membership.

Each rule is a frozen dataclass tagged with the element kind it applies
to and carries its own evaluator (matches). Rules validate their
parameters on construction, so evaluating a constructed rule against a
universe of the same kind never fails.

Dice rules (DICE_ROLL):
    SUM        compare the sum of all faces
    DOUBLES    all faces equal, at least two dice (comparator unused)
    DIE_VALUE  ANY face satisfies the comparator (existential)
    FIRST_DIE  the first face satisfies the comparator

Card rules (PLAYING_CARD):
    SUIT / RANK  exact equality
    COLOR        H, D -> RED; C, S -> BLACK
    FACE_CARD    J, Q, K (Ace excluded)

Number rules (NUMBER) and text rules (STRING / IMAGE_URL) follow the same
shape for the remaining kinds.

Applying a rule REPLACES the membership under construction: previously
selected elements that do not match are deselected.

RuleMatcher never mutates state; persisting the result is the caller's
job (Diagram.set_membership).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Union

from .diagram import DiagramSnapshot, Universe
from .elements import normalize_rank, normalize_suit
from .errors import InvalidElementFormat, InvalidRuleSpec, RuleTypeMismatch
from .types import Card, DiceRoll, ElementKey, ElementKind, ImageUrl, Number, Text


logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS
# =============================================================================

class Comparator(Enum):
    EQ = "EQ"
    GT = "GT"
    LT = "LT"
    EVEN = "EVEN"
    ODD = "ODD"


class DiceRuleKind(Enum):
    SUM = "SUM"
    DOUBLES = "DOUBLES"
    DIE_VALUE = "DIE_VALUE"
    FIRST_DIE = "FIRST_DIE"


class CardRuleKind(Enum):
    SUIT = "SUIT"
    RANK = "RANK"
    COLOR = "COLOR"
    FACE_CARD = "FACE_CARD"


class TextMatch(Enum):
    EQUALS = "EQUALS"
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"


COLORS = ("RED", "BLACK")


def compare(value: Union[int, float], comparator: Comparator, threshold: Union[int, float] = 0) -> bool:
    """Apply a comparator; threshold is ignored for EVEN/ODD."""
    if comparator == Comparator.EQ:
        return value == threshold
    if comparator == Comparator.GT:
        return value > threshold
    if comparator == Comparator.LT:
        return value < threshold
    if not float(value).is_integer():
        return False
    if comparator == Comparator.EVEN:
        return int(value) % 2 == 0
    return int(value) % 2 == 1


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            pass
    allowed = ", ".join(m.value for m in enum_cls)
    raise InvalidRuleSpec(f"Invalid {field_name} {value!r} (expected one of {allowed})")


def _coerce_number(value, field_name: str):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRuleSpec(f"{field_name} must be a number, got {value!r}")
    return value


# =============================================================================
# RULE SPECS
# =============================================================================

@dataclass(frozen=True)
class DiceRule:
    rule_kind: DiceRuleKind
    comparator: Comparator = Comparator.EQ
    threshold: int = 0

    element_kind = ElementKind.DICE_ROLL

    def __post_init__(self):
        object.__setattr__(self, "rule_kind", _coerce_enum(DiceRuleKind, self.rule_kind, "dice rule kind"))
        object.__setattr__(self, "comparator", _coerce_enum(Comparator, self.comparator, "comparator"))
        object.__setattr__(self, "threshold", _coerce_number(self.threshold, "threshold"))

    def matches(self, roll: DiceRoll) -> bool:
        faces = roll.faces
        if self.rule_kind == DiceRuleKind.SUM:
            return compare(sum(faces), self.comparator, self.threshold)
        if self.rule_kind == DiceRuleKind.DOUBLES:
            return len(faces) >= 2 and len(set(faces)) == 1
        if self.rule_kind == DiceRuleKind.DIE_VALUE:
            return any(compare(face, self.comparator, self.threshold) for face in faces)
        return compare(faces[0], self.comparator, self.threshold)


@dataclass(frozen=True)
class CardRule:
    rule_kind: CardRuleKind
    value: str = ""

    element_kind = ElementKind.PLAYING_CARD

    def __post_init__(self):
        kind = _coerce_enum(CardRuleKind, self.rule_kind, "card rule kind")
        object.__setattr__(self, "rule_kind", kind)

        if kind == CardRuleKind.FACE_CARD:
            normalized = ""
        elif kind == CardRuleKind.SUIT:
            normalized = normalize_suit(self.value)
        elif kind == CardRuleKind.RANK:
            normalized = normalize_rank(self.value)
        else:
            normalized = self.value.strip().upper() if isinstance(self.value, str) else None
            if normalized not in COLORS:
                normalized = None

        if normalized is None:
            raise InvalidRuleSpec(f"Invalid value {self.value!r} for card rule {kind.value}")
        object.__setattr__(self, "value", normalized)

    def matches(self, card: Card) -> bool:
        if self.rule_kind == CardRuleKind.SUIT:
            return card.suit == self.value
        if self.rule_kind == CardRuleKind.RANK:
            return card.rank == self.value
        if self.rule_kind == CardRuleKind.COLOR:
            return card.color == self.value
        return card.is_face_card


@dataclass(frozen=True)
class NumberRule:
    comparator: Comparator
    threshold: float = 0

    element_kind = ElementKind.NUMBER

    def __post_init__(self):
        object.__setattr__(self, "comparator", _coerce_enum(Comparator, self.comparator, "comparator"))
        object.__setattr__(self, "threshold", _coerce_number(self.threshold, "threshold"))

    def matches(self, number: Number) -> bool:
        return compare(number.value, self.comparator, self.threshold)


@dataclass(frozen=True)
class TextRule:
    """Substring-style rule for STRING and IMAGE_URL universes."""
    mode: TextMatch
    value: str
    case_sensitive: bool = False
    kind: ElementKind = ElementKind.TEXT

    def __post_init__(self):
        object.__setattr__(self, "mode", _coerce_enum(TextMatch, self.mode, "text match mode"))
        try:
            kind = ElementKind.parse(self.kind)
        except InvalidElementFormat as e:
            raise InvalidRuleSpec(e.message) from e
        if kind not in (ElementKind.TEXT, ElementKind.IMAGE_URL):
            raise InvalidRuleSpec(f"Text rules apply to STRING or IMAGE_URL, not {kind.value}")
        object.__setattr__(self, "kind", kind)
        if not isinstance(self.value, str):
            raise InvalidRuleSpec(f"Text rule value must be a string, got {self.value!r}")

    @property
    def element_kind(self) -> ElementKind:
        return self.kind

    def matches(self, element: Union[Text, ImageUrl]) -> bool:
        subject = element.value if isinstance(element, Text) else element.url
        needle = self.value
        if not self.case_sensitive:
            subject, needle = subject.casefold(), needle.casefold()
        if self.mode == TextMatch.EQUALS:
            return subject == needle
        if self.mode == TextMatch.CONTAINS:
            return needle in subject
        if self.mode == TextMatch.STARTS_WITH:
            return subject.startswith(needle)
        return subject.endswith(needle)


Rule = Union[DiceRule, CardRule, NumberRule, TextRule]
RULE_TYPES = (DiceRule, CardRule, NumberRule, TextRule)


# =============================================================================
# MATCHER
# =============================================================================

@dataclass(frozen=True)
class RuleApplication:
    """Replacement membership for a set under construction."""
    members: FrozenSet[ElementKey]
    added: FrozenSet[ElementKey]    # newly selected by the rule
    removed: FrozenSet[ElementKey]  # previously selected, unchecked by the rule


class RuleMatcher:
    """Evaluates rules over every element of one universe."""

    def __init__(self, universe: Universe):
        self.universe = universe

    @classmethod
    def from_snapshot(cls, snapshot: DiagramSnapshot) -> "RuleMatcher":
        return cls(snapshot.universe)

    def match(self, rule: Rule) -> FrozenSet[ElementKey]:
        """Keys of all elements satisfying the rule."""
        if not isinstance(rule, RULE_TYPES):
            raise InvalidRuleSpec(f"Not a rule: {rule!r}")
        if rule.element_kind != self.universe.kind:
            raise RuleTypeMismatch(
                f"Rule for {rule.element_kind.value} cannot be applied to a "
                f"{self.universe.kind.value} universe",
                details={"rule_kind": rule.element_kind.value, "universe_kind": self.universe.kind.value},
            )
        matched = frozenset(
            key for key, element in zip(self.universe.keys(), self.universe.elements())
            if rule.matches(element)
        )
        logger.debug(f"{rule} matched {len(matched)} of {len(self.universe)} elements")
        return matched

    def apply(self, draft: Iterable[ElementKey], rule: Rule) -> RuleApplication:
        """Replace a draft selection with the rule's matches."""
        matched = self.match(rule)
        previous = frozenset(draft)
        return RuleApplication(
            members=matched,
            added=matched - previous,
            removed=previous - matched,
        )
