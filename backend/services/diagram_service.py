"""
Diagram service - boundary between wire payloads and the Venn engine.

Wraps one Diagram and exposes every engine operation with JSON-shaped
inputs and outputs. Engine errors never escape an operation: each call
returns an OperationResult carrying either the value or the error code
and message, plus the diagram version after the call.

Construction (create / from_snapshot / from_template) raises VennError,
since there is no diagram yet to report a version for.

Usage:
    service = DiagramService.from_template("DICE_ROLLS_2")
    service.query({"operation": "intersection", "operands": ["Sum is 7", "First Die Even"]})
    service.apply_rule("Big", {"rule": {"element_kind": "DICE_ROLL", "rule_kind": "SUM",
                                        "comparator": "GT", "threshold": 9}})
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from config.settings import Settings, get_settings
from models.api.diagram import (
    DiagramSnapshotModel,
    NamedSetModel,
    OperationResult,
    PartitionResponse,
    QueryRequest,
    RegionModel,
    RuleApplicationModel,
    RuleRequest,
    SetSummaryModel,
    parse_rule,
)
from venn.algebra import SetAlgebra
from venn.diagram import Diagram
from venn.errors import InvalidElementFormat, InvalidOperands, InvalidRuleSpec, VennError
from venn.explain import PartitionStyle, format_partition
from venn.partition import PartitionEngine
from venn.rules import RuleMatcher
from venn.templates import build_template
from venn.types import DuplicatePolicy, Element


logger = logging.getLogger(__name__)


def _validation_summary(e: ValidationError) -> str:
    first = e.errors()[0] if e.errors() else {}
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first.get('msg', str(e))}" if loc else first.get("msg", str(e))


class DiagramService:
    """One diagram behind a result-returning API."""

    def __init__(self, diagram: Diagram, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.diagram = diagram
        self.duplicate_policy = DuplicatePolicy(self.settings.venn_duplicate_policy)

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def create(cls, element_kind: str, name: str = "", settings: Optional[Settings] = None) -> "DiagramService":
        settings = settings or get_settings()
        diagram = Diagram(element_kind, max_sets=settings.venn_max_named_sets, name=name)
        logger.info(f"Created {diagram.kind.value} diagram '{name}'")
        return cls(diagram, settings)

    @classmethod
    def from_snapshot(
        cls,
        payload: Union[Dict[str, Any], DiagramSnapshotModel],
        settings: Optional[Settings] = None,
    ) -> "DiagramService":
        """Rebuild a diagram from a stored snapshot payload."""
        settings = settings or get_settings()
        if not isinstance(payload, DiagramSnapshotModel):
            try:
                payload = DiagramSnapshotModel.model_validate(payload)
            except ValidationError as e:
                raise InvalidElementFormat(f"Invalid diagram snapshot: {_validation_summary(e)}") from None

        diagram = Diagram.build(
            payload.element_kind.value,
            payload.elements,
            [(s.name, s.members) for s in payload.sets],
            max_sets=settings.venn_max_named_sets,
            name=payload.name,
            on_duplicate=DuplicatePolicy(settings.venn_duplicate_policy),
        )
        if payload.version is not None:
            diagram.advance_version(payload.version)
        logger.info(f"Loaded diagram '{payload.name}' ({len(diagram.universe)} elements, {len(diagram.sets)} sets)")
        return cls(diagram, settings)

    @classmethod
    def from_template(cls, template: str, settings: Optional[Settings] = None) -> "DiagramService":
        settings = settings or get_settings()
        return cls(build_template(template, max_sets=settings.venn_max_named_sets), settings)

    # =========================================================================
    # PLUMBING
    # =========================================================================

    def _call(self, action: str, fn, *args, **kwargs) -> OperationResult:
        try:
            value = fn(*args, **kwargs)
        except VennError as e:
            logger.warning(f"{action} failed on diagram '{self.diagram.name}': [{e.code.value}] {e.message}")
            return OperationResult.failure(e, version=self.diagram.version)
        return OperationResult.success(value, version=self.diagram.version)

    def _encode(self, elements: Sequence[Element]) -> List[Any]:
        registry = self.diagram.registry
        return [registry.encode(e) for e in elements]

    # =========================================================================
    # SNAPSHOT
    # =========================================================================

    def to_snapshot(self) -> OperationResult:
        return self._call("to_snapshot", self._to_snapshot)

    def _to_snapshot(self) -> Dict[str, Any]:
        snapshot = self.diagram.snapshot()
        model = DiagramSnapshotModel(
            element_kind=snapshot.kind.value,
            name=self.diagram.name,
            elements=self._encode(snapshot.universe.elements()),
            sets=[
                NamedSetModel(name=s.name, members=[k for k in snapshot.universe.keys() if k in s.members])
                for s in snapshot.sets
            ],
            version=snapshot.version,
        )
        return model.model_dump(mode="json")

    # =========================================================================
    # ELEMENTS
    # =========================================================================

    def insert_element(self, raw: Any, expected_version: Optional[int] = None) -> OperationResult:
        return self._call(
            "insert_element", self.diagram.insert_element,
            raw, on_duplicate=self.duplicate_policy, expected_version=expected_version,
        )

    def insert_elements(self, raws: Sequence[Any], expected_version: Optional[int] = None) -> OperationResult:
        return self._call(
            "insert_elements", self.diagram.insert_elements,
            raws, on_duplicate=self.duplicate_policy, expected_version=expected_version,
        )

    def rename_element(self, old_key: str, new_raw: Any, expected_version: Optional[int] = None) -> OperationResult:
        return self._call(
            "rename_element", self.diagram.rename_element,
            old_key, new_raw, expected_version=expected_version,
        )

    def remove_element(self, key: str, expected_version: Optional[int] = None) -> OperationResult:
        return self._call("remove_element", self.diagram.remove_element, key, expected_version=expected_version)

    def sets_for_element(self, ref: Any) -> OperationResult:
        return self._call("sets_for_element", self.diagram.sets_for_element, ref)

    def update_element_membership(
        self,
        ref: Any,
        set_names: Sequence[str],
        expected_version: Optional[int] = None,
    ) -> OperationResult:
        return self._call(
            "update_element_membership", self.diagram.update_element_membership,
            ref, set_names, expected_version=expected_version,
        )

    # =========================================================================
    # NAMED SETS
    # =========================================================================

    def create_set(self, name: str, expected_version: Optional[int] = None) -> OperationResult:
        return self._call(
            "create_set", lambda: self.diagram.create_set(name, expected_version=expected_version).name
        )

    def rename_set(self, old: str, new: str, expected_version: Optional[int] = None) -> OperationResult:
        return self._call(
            "rename_set", lambda: self.diagram.rename_set(old, new, expected_version=expected_version).name
        )

    def delete_set(self, name: str, expected_version: Optional[int] = None) -> OperationResult:
        return self._call("delete_set", self.diagram.delete_set, name, expected_version=expected_version)

    def set_membership(self, name: str, members: Sequence[Any], expected_version: Optional[int] = None) -> OperationResult:
        def replace():
            with self.diagram.lock:
                self.diagram.set_membership(name, members, expected_version=expected_version)
                return self.diagram.member_keys(name)
        return self._call("set_membership", replace)

    def elements_in_set(self, name: str) -> OperationResult:
        return self._call("elements_in_set", lambda: self._encode(self.diagram.elements_in_set(name)))

    def set_summaries(self) -> OperationResult:
        def summaries():
            return [
                SetSummaryModel(name=s.name, size=s.size, probability=s.probability).model_dump()
                for s in self.diagram.set_summaries()
            ]
        return self._call("set_summaries", summaries)

    # =========================================================================
    # QUERIES AND PARTITIONS
    # =========================================================================

    def query(self, request: Union[Dict[str, Any], QueryRequest]) -> OperationResult:
        return self._call("query", self._query, request)

    def _query(self, request) -> List[Any]:
        if not isinstance(request, QueryRequest):
            try:
                request = QueryRequest.model_validate(request)
            except ValidationError as e:
                raise InvalidOperands(f"Invalid query: {_validation_summary(e)}") from None
        algebra = SetAlgebra.from_snapshot(self.diagram.snapshot())
        return self._encode(algebra.evaluate(request.operation, request.operands))

    def partition(self) -> OperationResult:
        return self._call("partition", self._partition)

    def _partition(self) -> Dict[str, Any]:
        result = PartitionEngine(self.diagram.max_sets).compute_snapshot(self.diagram.snapshot())
        response = PartitionResponse(
            set_names=list(result.set_names),
            total=result.total,
            regions=[
                RegionModel(
                    mask=r.mask,
                    description=r.description,
                    element_count=r.element_count,
                    probability=r.probability(result.total),
                    elements=self._encode(r.elements),
                )
                for r in result.regions
            ],
        )
        return response.model_dump()

    def render_partition(self, style: str = "lines") -> OperationResult:
        def render():
            try:
                partition_style = PartitionStyle(style)
            except ValueError:
                raise InvalidOperands(f"Unknown partition style: {style}") from None
            result = PartitionEngine(self.diagram.max_sets).compute_snapshot(self.diagram.snapshot())
            return format_partition(result, self.diagram.registry, partition_style)
        return self._call("render_partition", render)

    # =========================================================================
    # RULES
    # =========================================================================

    def match_rule(self, rule: Dict[str, Any]) -> OperationResult:
        """Keys matching a rule payload, in display order (no mutation)."""
        def match():
            snapshot = self.diagram.snapshot()
            matched = RuleMatcher.from_snapshot(snapshot).match(parse_rule(rule))
            return [k for k in snapshot.universe.keys() if k in matched]
        return self._call("match_rule", match)

    def apply_rule(
        self,
        set_name: str,
        request: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> OperationResult:
        """
        Replace a set's membership with the elements matching a rule.

        request is {"rule": {...}, "draft": [...]}; draft defaults to the
        set's current members and only feeds the added/removed report.
        """
        return self._call("apply_rule", self._apply_rule, set_name, request, expected_version)

    def _apply_rule(self, set_name: str, request: Dict[str, Any], expected_version: Optional[int]) -> Dict[str, Any]:
        if isinstance(request, RuleRequest):
            request = request.model_dump(by_alias=True)
        if not isinstance(request, dict):
            raise InvalidRuleSpec(f"Rule request must be an object, got {type(request).__name__}")
        rule = parse_rule(request.get("rule"))
        draft_refs = request.get("draft") or []

        # Read, match and write as one step so the draft can't go stale
        with self.diagram.lock:
            snapshot = self.diagram.snapshot()
            if draft_refs:
                draft = {k for k in (snapshot.universe.resolve_key(r) for r in draft_refs) if k is not None}
            else:
                draft = set(self.diagram.get_set(set_name).members)

            application = RuleMatcher.from_snapshot(snapshot).apply(draft, rule)
            self.diagram.set_membership(set_name, application.members, expected_version=expected_version)

        order = snapshot.universe.keys()
        return RuleApplicationModel(
            set_name=set_name,
            members=[k for k in order if k in application.members],
            added=[k for k in order if k in application.added],
            removed=[k for k in order if k in application.removed],
        ).model_dump()
