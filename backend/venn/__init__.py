"""
Venn Engine
===========

Typed set-algebra and partition engine for Venn diagrams.

A diagram has one element kind (text, numbers, image URLs, dice rolls or
playing cards), a universe of elements of that kind, and an ordered list
of named subsets. On top of that the engine computes:

    PartitionEngine  all 2^M regions of M named sets
    SetAlgebra       union / intersection / difference / complement
    RuleMatcher      typed predicates for bulk set membership

The computational components are pure functions of a DiagramSnapshot.
Mutations go through Diagram, which keeps elements and sets consistent
and serializes writers.

PUBLIC API:
- ElementKind, Text, Number, ImageUrl, DiceRoll, Card: element types
- ElementTypeRegistry: parse / key / order / encode per kind
- Diagram, Universe, DiagramSnapshot, NamedSet: bookkeeping
- PartitionEngine, SetAlgebra, RuleMatcher: computation
- build_template: probability templates
- venn.errors: error taxonomy
"""

from .types import (
    Card,
    DiceRoll,
    DuplicatePolicy,
    Element,
    ElementKey,
    ElementKind,
    ImageUrl,
    NamedSet,
    Number,
    SetSummary,
    Text,
)
from .errors import ErrorCode, VennError
from .elements import ElementTypeRegistry
from .diagram import Diagram, DiagramSnapshot, Universe, DEFAULT_MAX_SETS, HARD_MAX_SETS
from .partition import PartitionEngine, PartitionResult, Region, describe_mask
from .algebra import Operation, SetAlgebra
from .rules import (
    CardRule,
    CardRuleKind,
    Comparator,
    DiceRule,
    DiceRuleKind,
    NumberRule,
    Rule,
    RuleApplication,
    RuleMatcher,
    TextMatch,
    TextRule,
)
from .templates import build_template, template_names

__all__ = [
    # Types
    "Card",
    "DiceRoll",
    "DuplicatePolicy",
    "Element",
    "ElementKey",
    "ElementKind",
    "ImageUrl",
    "NamedSet",
    "Number",
    "SetSummary",
    "Text",
    # Errors
    "ErrorCode",
    "VennError",
    # Registry
    "ElementTypeRegistry",
    # Bookkeeping
    "Diagram",
    "DiagramSnapshot",
    "Universe",
    "DEFAULT_MAX_SETS",
    "HARD_MAX_SETS",
    # Partition
    "PartitionEngine",
    "PartitionResult",
    "Region",
    "describe_mask",
    # Algebra
    "Operation",
    "SetAlgebra",
    # Rules
    "CardRule",
    "CardRuleKind",
    "Comparator",
    "DiceRule",
    "DiceRuleKind",
    "NumberRule",
    "Rule",
    "RuleApplication",
    "RuleMatcher",
    "TextMatch",
    "TextRule",
    # Templates
    "build_template",
    "template_names",
]
