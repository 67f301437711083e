"""
Partition Engine
================

Decomposes a universe into the 2^M regions of a Venn diagram over M
ordered named sets.

ALGORITHM:
1. mask(e): bit i is 1 iff e is a member of set i (declared order)
2. Group elements by mask                         O(|U|·M) + O(|U|)
3. Emit one Region per mask 0 .. 2^M-1, ascending  O(2^M)

Every mask is emitted, including empty regions (element_count == 0),
so the output shape depends only on M and never on the data.

Because 2^M grows fast the engine refuses more than max_sets named sets
(default 16, hard ceiling 20) before doing any work.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence

from .diagram import DEFAULT_MAX_SETS, HARD_MAX_SETS, DiagramSnapshot, Universe
from .errors import SetLimitExceeded
from .types import Element, ElementKey, NamedSet


logger = logging.getLogger(__name__)

NO_SETS_DESCRIPTION = "in none of the sets"


@dataclass(frozen=True)
class Region:
    """One equivalence class of elements sharing identical membership."""
    mask: int
    description: str
    member_keys: FrozenSet[ElementKey]
    elements: tuple  # resolved elements, universe display order

    @property
    def element_count(self) -> int:
        return len(self.member_keys)

    def probability(self, total: int) -> float:
        """Share of the universe in this region (0 for an empty universe)."""
        return self.element_count / total if total else 0.0

    def __contains__(self, key: ElementKey) -> bool:
        return key in self.member_keys


@dataclass(frozen=True)
class PartitionResult:
    """All 2^M regions of a diagram snapshot, ascending by mask."""
    set_names: tuple
    total: int
    regions: tuple

    @property
    def set_count(self) -> int:
        return len(self.set_names)

    def region(self, mask: int) -> Region:
        if not 0 <= mask < len(self.regions):
            raise IndexError(f"Mask {mask} outside 0..{len(self.regions) - 1}")
        return self.regions[mask]

    def non_empty(self) -> List[Region]:
        return [r for r in self.regions if r.element_count]

    def region_of(self, key: ElementKey) -> Optional[Region]:
        for region in self.regions:
            if key in region.member_keys:
                return region
        return None

    def full_intersection(self) -> List[Element]:
        """Elements in every set (the all-ones region); empty when M == 0."""
        if not self.set_names:
            return []
        return list(self.regions[-1].elements)


def compute_mask(key: ElementKey, sets: Sequence[NamedSet]) -> int:
    mask = 0
    for bit, named in enumerate(sets):
        if key in named.members:
            mask |= 1 << bit
    return mask


def describe_mask(mask: int, set_names: Sequence[str]) -> str:
    """
    Conjunction over set names, in declared order.

    describe_mask(0b01, ["A", "B"]) -> "in A and not in B"
    describe_mask(0, [...])         -> "in none of the sets"
    """
    if mask == 0:
        return NO_SETS_DESCRIPTION
    parts = []
    for bit, name in enumerate(set_names):
        parts.append(f"in {name}" if mask & (1 << bit) else f"not in {name}")
    return " and ".join(parts)


class PartitionEngine:
    """Pure region decomposition over a universe and ordered named sets."""

    def __init__(self, max_sets: Optional[int] = None):
        self.max_sets = min(max_sets or DEFAULT_MAX_SETS, HARD_MAX_SETS)

    def compute_snapshot(self, snapshot: DiagramSnapshot) -> PartitionResult:
        return self.compute(snapshot.universe, snapshot.sets)

    def compute(self, universe: Universe, sets: Sequence[NamedSet]) -> PartitionResult:
        set_count = len(sets)
        if set_count > self.max_sets:
            raise SetLimitExceeded(
                f"Cannot partition {set_count} sets: 2^{set_count} regions exceeds "
                f"the limit of {self.max_sets} sets",
                details={"sets": set_count, "limit": self.max_sets},
            )

        set_names = tuple(s.name for s in sets)

        # Step 1-2: masks in display order, grouped
        grouped: Dict[int, List[ElementKey]] = defaultdict(list)
        for key in universe.keys():
            grouped[compute_mask(key, sets)].append(key)

        # Step 3: every region, ascending
        regions = []
        for mask in range(1 << set_count):
            keys = grouped.get(mask, [])
            regions.append(Region(
                mask=mask,
                description=describe_mask(mask, set_names),
                member_keys=frozenset(keys),
                elements=tuple(universe.get(k) for k in keys),
            ))

        logger.debug(
            f"Partitioned {len(universe)} elements over {set_count} sets "
            f"({len(grouped)} non-empty of {len(regions)} regions)"
        )
        return PartitionResult(set_names=set_names, total=len(universe), regions=tuple(regions))
