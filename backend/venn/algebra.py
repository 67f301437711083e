"""
Set Algebra (query executor)
============================

Union, intersection, difference and complement over named sets,
resolved against one universe snapshot.

All results are lists of resolved elements in universe display order.
Nothing here mutates the universe or the sets.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Sequence, Union

from .diagram import DiagramSnapshot, Universe
from .errors import InvalidOperands, SetNotFound, UnknownOperation
from .types import Element, ElementKey, NamedSet


logger = logging.getLogger(__name__)


class Operation(Enum):
    UNION = "union"
    INTERSECTION = "intersection"
    DIFFERENCE = "difference"
    COMPLEMENT = "complement"

    @classmethod
    def parse(cls, raw: Union[str, "Operation"]) -> "Operation":
        if isinstance(raw, Operation):
            return raw
        if isinstance(raw, str):
            try:
                return cls(raw.strip().lower())
            except ValueError:
                pass
        raise UnknownOperation(f"Unknown operation: {raw}", details={"operation": str(raw)})


# (min operands, max operands); None = unbounded
OPERAND_ARITY: Dict[Operation, tuple] = {
    Operation.UNION: (2, None),
    Operation.INTERSECTION: (2, None),
    Operation.DIFFERENCE: (2, 2),
    Operation.COMPLEMENT: (1, 1),
}


class SetAlgebra:
    """
    Query executor bound to one universe and its named sets.

    Usage:
        algebra = SetAlgebra.from_snapshot(diagram.snapshot())
        algebra.difference("A", "B")
        algebra.evaluate("union", ["A", "B", "C"])
    """

    def __init__(self, universe: Universe, sets: Sequence[NamedSet]):
        self.universe = universe
        self._members: Dict[str, FrozenSet[ElementKey]] = {s.name: s.members for s in sets}

    @classmethod
    def from_snapshot(cls, snapshot: DiagramSnapshot) -> "SetAlgebra":
        return cls(snapshot.universe, snapshot.sets)

    def _keys(self, name: str) -> FrozenSet[ElementKey]:
        try:
            return self._members[name]
        except KeyError:
            raise SetNotFound(f"No set found with name: {name}", details={"set": name}) from None

    def _resolve(self, keys) -> List[Element]:
        return self.universe.elements_for(keys)

    def union(self, *names: str) -> List[Element]:
        keys = set()
        for name in names:
            keys |= self._keys(name)
        return self._resolve(keys)

    def intersection(self, *names: str) -> List[Element]:
        operands = [self._keys(name) for name in names]
        if not operands:
            return []
        keys = set(operands[0])
        for other in operands[1:]:
            keys &= other
        return self._resolve(keys)

    def difference(self, a: str, b: str) -> List[Element]:
        """Elements of a that are not in b (order-sensitive)."""
        return self._resolve(self._keys(a) - self._keys(b))

    def complement(self, a: str) -> List[Element]:
        """Universe elements outside a."""
        excluded = self._keys(a)
        return [e for k, e in zip(self.universe.keys(), self.universe.elements()) if k not in excluded]

    def evaluate(self, operation: Union[str, Operation], operands: Sequence[str]) -> List[Element]:
        op = Operation.parse(operation)
        operands = list(operands)
        low, high = OPERAND_ARITY[op]
        if len(operands) < low or (high is not None and len(operands) > high):
            expected = str(low) if low == high else f"at least {low}"
            raise InvalidOperands(
                f"{op.value} takes {expected} operand(s), got {len(operands)}",
                details={"operation": op.value, "operands": operands},
            )

        if op == Operation.UNION:
            result = self.union(*operands)
        elif op == Operation.INTERSECTION:
            result = self.intersection(*operands)
        elif op == Operation.DIFFERENCE:
            result = self.difference(operands[0], operands[1])
        else:
            result = self.complement(operands[0])

        logger.debug(f"{op.value}({', '.join(operands)}) -> {len(result)} elements")
        return result
