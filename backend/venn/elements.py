"""
Element Type Registry
=====================

Parses, encodes, keys and orders elements for each of the five kinds.

Every kind has one codec. The registry for a diagram is bound to the
diagram's declared kind when the diagram is created and never changes.

Key contract:
    Two elements with the same semantic value produce the same key no
    matter which wire encoding produced them. For dice this covers the
    legacy {"die1", "die2"} payload, the generalized {"dice": [...]}
    payload, bare lists and the "(a,b,...)" display string.

Usage:
    registry = ElementTypeRegistry.for_kind(ElementKind.DICE_ROLL)
    roll = registry.parse({"die1": 1, "die2": 6})
    registry.key(roll)            # "(1,6)"
    registry.key_of({"dice": [1, 6]})  # "(1,6)"
"""

import math
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from .errors import InvalidElementFormat
from .types import (
    Card,
    DiceRoll,
    Element,
    ElementKey,
    ElementKind,
    ImageUrl,
    Number,
    Text,
    DIE_FACES,
    MAX_DICE,
    RANKS,
    RANK_NAMES,
    SUITS,
    SUIT_NAMES,
)


# =============================================================================
# CODECS (one per kind)
# =============================================================================

class ElementCodec(ABC):
    """Parse/key/order/encode contract for one element kind."""

    kind: ElementKind
    element_type: type

    @abstractmethod
    def parse(self, raw: Any) -> Element:
        """Turn a wire value into an element, or raise InvalidElementFormat."""

    @abstractmethod
    def key(self, element: Element) -> ElementKey:
        pass

    @abstractmethod
    def display_order(self, element: Element) -> Any:
        pass

    @abstractmethod
    def encode(self, element: Element) -> Any:
        """Wire representation of an element."""

    def render(self, element: Element) -> str:
        return self.key(element)

    def _invalid(self, raw: Any, reason: str) -> InvalidElementFormat:
        return InvalidElementFormat(
            f"{raw!r} is not a valid {self.kind.value} element: {reason}",
            details={"kind": self.kind.value},
        )

    def _check(self, element: Element) -> None:
        if not isinstance(element, self.element_type):
            raise InvalidElementFormat(
                f"Expected a {self.element_type.__name__}, got {type(element).__name__}",
                details={"kind": self.kind.value},
            )


class TextCodec(ElementCodec):
    kind = ElementKind.TEXT
    element_type = Text

    def parse(self, raw: Any) -> Text:
        if isinstance(raw, Text):
            raw = raw.value
        if not isinstance(raw, str):
            raise self._invalid(raw, "expected a string")
        value = raw.strip()
        if not value:
            raise self._invalid(raw, "text is blank")
        return Text(value)

    def key(self, element: Text) -> ElementKey:
        self._check(element)
        return element.value

    def display_order(self, element: Text) -> str:
        return element.value

    def encode(self, element: Text) -> str:
        return element.value


class NumberCodec(ElementCodec):
    """
    Integral values are stored as int so 2, 2.0 and "2" collapse to one
    element keyed "2". Other values keep their float repr.
    """
    kind = ElementKind.NUMBER
    element_type = Number

    def parse(self, raw: Any) -> Number:
        if isinstance(raw, Number):
            raw = raw.value
        if isinstance(raw, bool):
            raise self._invalid(raw, "booleans are not numbers")
        if isinstance(raw, str):
            text = raw.strip()
            try:
                raw = int(text)
            except ValueError:
                try:
                    raw = float(text)
                except ValueError:
                    raise self._invalid(raw, "not a numeric string") from None
        if isinstance(raw, int):
            return Number(raw)
        if isinstance(raw, float):
            if math.isnan(raw) or math.isinf(raw):
                raise self._invalid(raw, "NaN and infinities are not allowed")
            if raw.is_integer():
                return Number(int(raw))
            return Number(raw)
        raise self._invalid(raw, "expected a number")

    def key(self, element: Number) -> ElementKey:
        self._check(element)
        if isinstance(element.value, int):
            return str(element.value)
        return repr(element.value)

    def display_order(self, element: Number) -> float:
        return element.value

    def encode(self, element: Number):
        return element.value


class ImageUrlCodec(ElementCodec):
    kind = ElementKind.IMAGE_URL
    element_type = ImageUrl

    def parse(self, raw: Any) -> ImageUrl:
        if isinstance(raw, ImageUrl):
            raw = raw.url
        if not isinstance(raw, str):
            raise self._invalid(raw, "expected a URL string")
        url = raw.strip()
        if not url:
            raise self._invalid(raw, "URL is blank")
        if any(ch.isspace() for ch in url):
            raise self._invalid(raw, "URL contains whitespace")
        return ImageUrl(url)

    def key(self, element: ImageUrl) -> ElementKey:
        self._check(element)
        return element.url

    def display_order(self, element: ImageUrl) -> str:
        return element.url

    def encode(self, element: ImageUrl) -> str:
        return element.url


class DiceRollCodec(ElementCodec):
    kind = ElementKind.DICE_ROLL
    element_type = DiceRoll

    def parse(self, raw: Any) -> DiceRoll:
        if isinstance(raw, DiceRoll):
            faces = list(raw.faces)
        elif isinstance(raw, Mapping):
            faces = self._faces_from_mapping(raw)
        elif isinstance(raw, (list, tuple)):
            faces = list(raw)
        elif isinstance(raw, str):
            faces = self._faces_from_string(raw)
        else:
            raise self._invalid(raw, "expected a dice payload")

        if not 1 <= len(faces) <= MAX_DICE:
            raise self._invalid(raw, f"a roll has 1 to {MAX_DICE} dice")
        for face in faces:
            if isinstance(face, bool) or not isinstance(face, int) or face not in DIE_FACES:
                raise self._invalid(raw, f"die face {face!r} is not an integer between 1 and 6")
        return DiceRoll(tuple(faces))

    def _faces_from_mapping(self, raw: Mapping) -> List[Any]:
        # Generalized n-dice form wins over the legacy two-field form
        if "dice" in raw:
            dice = raw["dice"]
            if not isinstance(dice, (list, tuple)):
                raise self._invalid(raw, "'dice' must be a list")
            return list(dice)
        if "die1" in raw and "die2" in raw:
            return [raw["die1"], raw["die2"]]
        raise self._invalid(raw, "expected 'dice' or 'die1'/'die2'")

    def _faces_from_string(self, raw: str) -> List[int]:
        text = raw.strip()
        if not (text.startswith("(") and text.endswith(")")):
            raise self._invalid(raw, "expected '(a,b,...)'")
        parts = text[1:-1].split(",")
        try:
            return [int(p.strip()) for p in parts]
        except ValueError:
            raise self._invalid(raw, "faces must be integers") from None

    def key(self, element: DiceRoll) -> ElementKey:
        self._check(element)
        return "(" + ",".join(str(f) for f in element.faces) + ")"

    def display_order(self, element: DiceRoll) -> Tuple[int, ...]:
        return element.faces

    def encode(self, element: DiceRoll) -> Dict[str, List[int]]:
        return {"dice": list(element.faces)}


class CardCodec(ElementCodec):
    kind = ElementKind.PLAYING_CARD
    element_type = Card

    def parse(self, raw: Any) -> Card:
        if isinstance(raw, Card):
            rank, suit = raw.rank, raw.suit
        elif isinstance(raw, Mapping):
            if "rank" not in raw or raw["rank"] is None:
                raise self._invalid(raw, "card payload is missing 'rank'")
            if "suit" not in raw or raw["suit"] is None:
                raise self._invalid(raw, "card payload is missing 'suit'")
            rank, suit = raw["rank"], raw["suit"]
        elif isinstance(raw, str):
            text = raw.strip().upper()
            if len(text) < 2:
                raise self._invalid(raw, "expected '<rank><suit>'")
            rank, suit = text[:-1], text[-1]
        else:
            raise self._invalid(raw, "expected a card payload")

        normalized_rank = normalize_rank(rank)
        if normalized_rank is None:
            raise self._invalid(raw, f"unknown rank {rank!r}")
        normalized_suit = normalize_suit(suit)
        if normalized_suit is None:
            raise self._invalid(raw, f"unknown suit {suit!r}")
        return Card(rank=normalized_rank, suit=normalized_suit)

    def key(self, element: Card) -> ElementKey:
        self._check(element)
        return f"{element.rank}{element.suit}"

    def display_order(self, element: Card) -> Tuple[int, int]:
        return (RANKS.index(element.rank), SUITS.index(element.suit))

    def encode(self, element: Card) -> Dict[str, str]:
        return {"rank": element.rank, "suit": element.suit}


def normalize_rank(rank: Any):
    """Canonical rank ("2".."10", "J", "Q", "K", "A") or None."""
    if isinstance(rank, bool):
        return None
    if isinstance(rank, int):
        rank = str(rank)
    if not isinstance(rank, str):
        return None
    text = rank.strip().upper()
    text = RANK_NAMES.get(text, text)
    return text if text in RANKS else None


def normalize_suit(suit: Any):
    """Canonical suit ("H", "D", "C", "S") or None."""
    if not isinstance(suit, str):
        return None
    text = suit.strip().upper()
    text = SUIT_NAMES.get(text, text)
    return text if text in SUITS else None


_CODECS: Dict[ElementKind, ElementCodec] = {
    codec.kind: codec
    for codec in (TextCodec(), NumberCodec(), ImageUrlCodec(), DiceRollCodec(), CardCodec())
}

_missing = set(ElementKind) - set(_CODECS)
if _missing:
    raise RuntimeError(f"No codec registered for kinds: {sorted(k.value for k in _missing)}")


# =============================================================================
# REGISTRY
# =============================================================================

class ElementTypeRegistry:
    """
    Immutable element registry bound to one declared kind.

    Obtain instances through for_kind(); they are shared and stateless.
    """

    __slots__ = ("_kind", "_codec")

    def __init__(self, kind: ElementKind):
        object.__setattr__(self, "_kind", ElementKind.parse(kind))
        object.__setattr__(self, "_codec", _CODECS[self._kind])

    def __setattr__(self, name, value):
        raise AttributeError("ElementTypeRegistry is immutable")

    @classmethod
    def for_kind(cls, kind) -> "ElementTypeRegistry":
        return _REGISTRIES[ElementKind.parse(kind)]

    @property
    def kind(self) -> ElementKind:
        return self._kind

    def parse(self, raw: Any) -> Element:
        return self._codec.parse(raw)

    def key(self, element: Element) -> ElementKey:
        return self._codec.key(element)

    def key_of(self, raw: Any) -> ElementKey:
        """Key of a raw wire value (parse + key)."""
        return self._codec.key(self._codec.parse(raw))

    def display_order(self, element: Element) -> Any:
        return self._codec.display_order(element)

    def encode(self, element: Element) -> Any:
        return self._codec.encode(element)

    def render(self, element: Element) -> str:
        return self._codec.render(element)

    def sorted(self, elements: Iterable[Element]) -> List[Element]:
        """Elements in canonical display order (ties broken by key)."""
        return sorted(elements, key=lambda e: (self.display_order(e), self.key(e)))

    def __repr__(self) -> str:
        return f"<ElementTypeRegistry kind={self._kind.value}>"


_REGISTRIES: Dict[ElementKind, ElementTypeRegistry] = {
    kind: ElementTypeRegistry(kind) for kind in ElementKind
}
