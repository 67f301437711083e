"""
Core Types for the Venn Engine
==============================

This module contains pure data structures with no algorithms.
Parsing, keys and ordering live in elements.py; computation lives in
partition.py, algebra.py and rules.py.

Element kinds:
  STRING       Text(value)
  NUMBER       Number(value)
  IMAGE_URL    ImageUrl(url)
  DICE_ROLL    DiceRoll(faces)      1-5 dice, faces 1-6
  PLAYING_CARD Card(rank, suit)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Tuple, Union

from .errors import InvalidElementFormat


# =============================================================================
# ENUMS
# =============================================================================

class ElementKind(Enum):
    """The five built-in element kinds. Values are the wire names."""
    TEXT = "STRING"
    NUMBER = "NUMBER"
    IMAGE_URL = "IMAGE_URL"
    DICE_ROLL = "DICE_ROLL"
    PLAYING_CARD = "PLAYING_CARD"

    @classmethod
    def parse(cls, raw: Union[str, "ElementKind"]) -> "ElementKind":
        """Resolve a wire name or alias (case-insensitive) to a kind."""
        if isinstance(raw, ElementKind):
            return raw
        if not isinstance(raw, str):
            raise InvalidElementFormat(f"Element kind must be a string, got {type(raw).__name__}")
        name = raw.strip().upper()
        kind = _KIND_ALIASES.get(name)
        if kind is None:
            raise InvalidElementFormat(f"Unknown element kind: {raw}")
        return kind


_KIND_ALIASES: Dict[str, ElementKind] = {
    "STRING": ElementKind.TEXT,
    "TEXT": ElementKind.TEXT,
    "NUMBER": ElementKind.NUMBER,
    "IMAGE_URL": ElementKind.IMAGE_URL,
    "DICE_ROLL": ElementKind.DICE_ROLL,
    "DICE": ElementKind.DICE_ROLL,
    "PLAYING_CARD": ElementKind.PLAYING_CARD,
    "CARD": ElementKind.PLAYING_CARD,
}


class DuplicatePolicy(Enum):
    """What insert does when the element key already exists."""
    ERROR = "error"     # raise DuplicateElement
    IGNORE = "ignore"   # no-op, return the existing key


# =============================================================================
# CARD VOCABULARY
# =============================================================================

RANKS: Tuple[str, ...] = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A")
SUITS: Tuple[str, ...] = ("H", "D", "C", "S")

RANK_NAMES: Dict[str, str] = {
    "JACK": "J",
    "QUEEN": "Q",
    "KING": "K",
    "ACE": "A",
}

SUIT_NAMES: Dict[str, str] = {
    "HEARTS": "H",
    "DIAMONDS": "D",
    "CLUBS": "C",
    "SPADES": "S",
}

RED_SUITS: FrozenSet[str] = frozenset({"H", "D"})
FACE_RANKS: FrozenSet[str] = frozenset({"J", "Q", "K"})  # Ace is not a face card

DIE_FACES = range(1, 7)
MAX_DICE = 5


# =============================================================================
# ELEMENT VALUES
# =============================================================================

@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class ImageUrl:
    url: str


@dataclass(frozen=True)
class DiceRoll:
    """An ordered roll of 1-5 dice. (1,6) and (6,1) are different rolls."""
    faces: Tuple[int, ...]

    @property
    def total(self) -> int:
        return sum(self.faces)

    def __len__(self) -> int:
        return len(self.faces)


@dataclass(frozen=True)
class Card:
    rank: str  # 2-10, J, Q, K, A
    suit: str  # H, D, C, S

    @property
    def color(self) -> str:
        return "RED" if self.suit in RED_SUITS else "BLACK"

    @property
    def is_face_card(self) -> bool:
        return self.rank in FACE_RANKS


Element = Union[Text, Number, ImageUrl, DiceRoll, Card]
ElementKey = str


# =============================================================================
# NAMED SETS
# =============================================================================

@dataclass(frozen=True)
class NamedSet:
    """
    A uniquely named subset of the universe.

    Membership is a frozenset of element keys; updates replace the whole
    NamedSet so a half-applied membership change is never visible.
    """
    name: str
    members: FrozenSet[ElementKey] = field(default_factory=frozenset)

    def __contains__(self, key: ElementKey) -> bool:
        return key in self.members

    def __len__(self) -> int:
        return len(self.members)

    def with_members(self, members) -> "NamedSet":
        return NamedSet(name=self.name, members=frozenset(members))

    def renamed(self, name: str) -> "NamedSet":
        return NamedSet(name=name, members=self.members)


@dataclass(frozen=True)
class SetSummary:
    """Set name with its size and share of the universe (probability view)."""
    name: str
    size: int
    probability: float
