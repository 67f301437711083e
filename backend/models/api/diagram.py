"""
Diagram API Models (Pydantic schemas)

Wire shapes for diagram snapshots, queries, partitions and rules.

The engine itself works on typed dataclasses (venn.types, venn.rules);
these models are the boundary between JSON payloads and those types.
Rule payloads are discriminated on element_kind, so a dice rule can
never be parsed as a card rule.
"""
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from enum import Enum

from venn.errors import InvalidRuleSpec, VennError
from venn.rules import (
    CardRule,
    CardRuleKind,
    Comparator,
    DiceRule,
    DiceRuleKind,
    NumberRule,
    Rule,
    TextMatch,
    TextRule,
)


# =============================================================================
# ENUMS FOR VALIDATION
# =============================================================================

class ElementKindEnum(str, Enum):
    STRING = "STRING"
    NUMBER = "NUMBER"
    IMAGE_URL = "IMAGE_URL"
    DICE_ROLL = "DICE_ROLL"
    PLAYING_CARD = "PLAYING_CARD"


class PartitionStyleEnum(str, Enum):
    LINES = "lines"
    REPORT = "report"
    DEBUG = "debug"


# =============================================================================
# REQUEST MODELS
# =============================================================================

class NamedSetModel(BaseModel):
    """A named set; members are element keys or raw element payloads."""
    name: str
    members: List[Any] = []


class DiagramSnapshotModel(BaseModel):
    """Complete diagram as exchanged with the hosting application."""
    element_kind: ElementKindEnum
    name: str = ""
    elements: List[Any] = []
    sets: List[NamedSetModel] = []
    version: Optional[int] = None


class QueryRequest(BaseModel):
    """Set-algebra query; operation is validated by the engine."""
    operation: str = Field(..., description="union | intersection | difference | complement")
    operands: List[str] = []


class DiceRuleModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    element_kind: Literal["DICE_ROLL"] = "DICE_ROLL"
    rule_kind: DiceRuleKind = Field(..., alias="ruleKind")
    comparator: Comparator = Comparator.EQ
    threshold: int = 0

    def to_rule(self) -> DiceRule:
        return DiceRule(self.rule_kind, self.comparator, self.threshold)


class CardRuleModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    element_kind: Literal["PLAYING_CARD"] = "PLAYING_CARD"
    rule_kind: CardRuleKind = Field(..., alias="cardRuleKind")
    value: str = ""

    def to_rule(self) -> CardRule:
        return CardRule(self.rule_kind, self.value)


class NumberRuleModel(BaseModel):
    element_kind: Literal["NUMBER"] = "NUMBER"
    comparator: Comparator
    threshold: float = 0

    def to_rule(self) -> NumberRule:
        return NumberRule(self.comparator, self.threshold)


class TextRuleModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    element_kind: Literal["STRING", "IMAGE_URL"] = "STRING"
    mode: TextMatch
    value: str
    case_sensitive: bool = Field(False, alias="caseSensitive")

    def to_rule(self) -> TextRule:
        return TextRule(self.mode, self.value, self.case_sensitive, self.element_kind)


RuleModel = Annotated[
    Union[DiceRuleModel, CardRuleModel, NumberRuleModel, TextRuleModel],
    Field(discriminator="element_kind"),
]


class RuleRequest(BaseModel):
    """Apply a rule to a set; draft is the selection the rule replaces."""
    rule: RuleModel
    draft: List[Any] = []


def parse_rule(payload: Dict[str, Any]) -> Rule:
    """
    Turn a rule payload into a typed engine rule.

    Raises InvalidRuleSpec for unknown rule kinds, missing fields and
    out-of-range values alike.
    """
    try:
        model = RuleRequest.model_validate({"rule": payload}).rule
    except ValidationError as e:
        errors = [
            {"loc": ".".join(str(p) for p in err["loc"][1:]), "msg": err["msg"]}
            for err in e.errors()
        ]
        raise InvalidRuleSpec(f"Invalid rule: {errors[0]['msg'] if errors else e}",
                              details={"errors": errors}) from None
    return model.to_rule()


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class RegionModel(BaseModel):
    mask: int
    description: str
    element_count: int
    probability: float
    elements: List[Any] = []


class PartitionResponse(BaseModel):
    """All 2^M regions, ascending by mask."""
    set_names: List[str]
    total: int
    regions: List[RegionModel]


class SetSummaryModel(BaseModel):
    name: str
    size: int
    probability: float


class RuleApplicationModel(BaseModel):
    set_name: str
    members: List[str]
    added: List[str]
    removed: List[str]


class ErrorModel(BaseModel):
    code: str
    message: str
    details: Dict[str, Any] = {}


class OperationResult(BaseModel):
    """Result value returned for every service call; never raised."""
    ok: bool
    value: Any = None
    error: Optional[ErrorModel] = None
    version: Optional[int] = None

    @classmethod
    def success(cls, value: Any = None, version: Optional[int] = None) -> "OperationResult":
        return cls(ok=True, value=value, version=version)

    @classmethod
    def failure(cls, error: VennError, version: Optional[int] = None) -> "OperationResult":
        return cls(
            ok=False,
            error=ErrorModel(code=error.code.value, message=error.message, details=error.details),
            version=version,
        )
