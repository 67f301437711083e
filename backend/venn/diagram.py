"""
Universe and Named-Set Bookkeeping
==================================

A Diagram owns one typed Universe and an ordered list of NamedSets.
The declared order of the sets fixes the bit positions used by the
partition engine.

Integrity rules:
1. Universe keys are unique (ElementTypeRegistry.key)
2. Every key in every NamedSet resolves in the Universe
3. Set names are unique and non-blank

Mutations are serialized per diagram (re-entrant lock) and carry a
monotonic version. A writer may pass expected_version to get
optimistic-concurrency rejection (StaleVersion) instead of a lost update.
Every mutation validates first and commits last, so a failed call leaves
the diagram exactly as it was.

The pure components (partition, algebra, rules) read a DiagramSnapshot,
never the live Diagram.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from .elements import ElementTypeRegistry
from .errors import (
    DanglingMembershipReference,
    DuplicateElement,
    DuplicateSetName,
    ElementNotFound,
    EmptyName,
    InvalidElementFormat,
    SetLimitExceeded,
    SetNotFound,
    StaleVersion,
)
from .types import DuplicatePolicy, Element, ElementKey, ElementKind, NamedSet, SetSummary


logger = logging.getLogger(__name__)

# Region count is 2^M; 16 sets already means 65,536 regions per partition.
DEFAULT_MAX_SETS = 16
HARD_MAX_SETS = 20


# =============================================================================
# UNIVERSE
# =============================================================================

class Universe:
    """
    Ordered, typed collection of the elements of one diagram.

    Iteration, keys() and elements() always follow the kind's display
    order, which is the output order for every engine result.

    A live Universe is written only under its Diagram's lock; read it
    through Diagram methods or through a snapshot copy.
    """

    def __init__(self, kind, elements: Optional[Dict[ElementKey, Element]] = None):
        self.registry = ElementTypeRegistry.for_kind(kind)
        self._elements: Dict[ElementKey, Element] = dict(elements or {})
        self._ordered: Optional[List[ElementKey]] = None
        self._generation = 0  # bumped by every write

    @property
    def kind(self) -> ElementKind:
        return self.registry.kind

    def __len__(self) -> int:
        return len(self._elements)

    def __contains__(self, key: ElementKey) -> bool:
        return key in self._elements

    def __iter__(self) -> Iterator[ElementKey]:
        return iter(self.keys())

    def keys(self) -> List[ElementKey]:
        cached = self._ordered
        if cached is not None:
            return list(cached)
        generation = self._generation
        ordered = [self.registry.key(e) for e in self.registry.sorted(list(self._elements.values()))]
        # A write that landed while sorting makes this order stale; don't cache it
        if generation == self._generation:
            self._ordered = ordered
        return list(ordered)

    def elements(self) -> List[Element]:
        return [self._elements[k] for k in self.keys()]

    def get(self, key: ElementKey) -> Element:
        try:
            return self._elements[key]
        except KeyError:
            raise ElementNotFound(f"No element with key {key!r}", details={"key": key}) from None

    def elements_for(self, keys: Iterable[ElementKey]) -> List[Element]:
        """Resolve a key collection to elements in display order."""
        wanted = set(keys)
        return [self._elements[k] for k in self.keys() if k in wanted]

    def resolve_key(self, ref: Any) -> Optional[ElementKey]:
        """
        Key for an element reference: either an existing key or a raw
        wire value of this kind. Returns None if it names nothing here.
        """
        if isinstance(ref, str) and ref in self._elements:
            return ref
        try:
            key = self.registry.key_of(ref)
        except InvalidElementFormat:
            return None
        return key if key in self._elements else None

    def require_key(self, ref: Any) -> ElementKey:
        key = self.resolve_key(ref)
        if key is None:
            raise ElementNotFound(f"No element matching {ref!r}", details={"ref": repr(ref)})
        return key

    def copy(self) -> "Universe":
        clone = Universe(self.kind, self._elements)
        clone._ordered = self._ordered
        return clone

    # --- low-level writes (callers keep named sets consistent) ---

    def _add(self, key: ElementKey, element: Element) -> None:
        self._generation += 1
        self._elements[key] = element
        self._ordered = None

    def _discard(self, key: ElementKey) -> None:
        self._generation += 1
        del self._elements[key]
        self._ordered = None

    def __repr__(self) -> str:
        return f"<Universe kind={self.kind.value} size={len(self)}>"


# =============================================================================
# SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class DiagramSnapshot:
    """Consistent read-only view handed to the pure components."""
    kind: ElementKind
    universe: Universe
    sets: Tuple[NamedSet, ...]
    version: int

    @property
    def set_names(self) -> List[str]:
        return [s.name for s in self.sets]


# =============================================================================
# DIAGRAM
# =============================================================================

class Diagram:
    """
    Typed universe plus ordered named sets, with single-writer mutations.

    Diagram lifecycle (create/rename/delete a diagram, persistence) is owned
    by the hosting service; this class only keeps elements and sets
    consistent with each other.
    """

    def __init__(self, kind, max_sets: Optional[int] = None, name: str = ""):
        self.name = name
        self.universe = Universe(kind)
        self.max_sets = min(max_sets or DEFAULT_MAX_SETS, HARD_MAX_SETS)
        self._sets: List[NamedSet] = []
        self._version = 0
        self._lock = threading.RLock()

    @classmethod
    def build(
        cls,
        kind,
        elements: Iterable[Any] = (),
        sets: Iterable[Tuple[str, Iterable[Any]]] = (),
        max_sets: Optional[int] = None,
        name: str = "",
        on_duplicate: DuplicatePolicy = DuplicatePolicy.ERROR,
    ) -> "Diagram":
        """Build a diagram from raw elements and (name, members) pairs."""
        diagram = cls(kind, max_sets=max_sets, name=name)
        diagram.insert_elements(elements, on_duplicate=on_duplicate)
        for set_name, members in sets:
            diagram.create_set(set_name)
            diagram.set_membership(set_name, members)
        return diagram

    @property
    def kind(self) -> ElementKind:
        return self.universe.kind

    @property
    def registry(self) -> ElementTypeRegistry:
        return self.universe.registry

    @property
    def version(self) -> int:
        return self._version

    @property
    def sets(self) -> Tuple[NamedSet, ...]:
        return tuple(self._sets)

    @contextmanager
    def _mutation(self, expected_version: Optional[int]):
        with self._lock:
            if expected_version is not None and expected_version != self._version:
                logger.warning(
                    f"Rejected stale write on diagram '{self.name}' "
                    f"(expected v{expected_version}, at v{self._version})"
                )
                raise StaleVersion(expected_version, self._version)
            yield
            self._version += 1

    def snapshot(self) -> DiagramSnapshot:
        with self._lock:
            return DiagramSnapshot(
                kind=self.kind,
                universe=self.universe.copy(),
                sets=tuple(self._sets),
                version=self._version,
            )

    def advance_version(self, at_least: int) -> int:
        """
        Move the version forward to at least `at_least`, never back.

        Used when a diagram is rebuilt from a stored snapshot so that
        writers holding an older version are still rejected.
        """
        with self._lock:
            if at_least > self._version:
                self._version = at_least
            return self._version

    # ---------------- Reads ----------------

    @property
    def lock(self) -> threading.RLock:
        """Hold to combine several calls into one consistent step."""
        return self._lock

    def set_names(self) -> List[str]:
        with self._lock:
            return [s.name for s in self._sets]

    def get_set(self, name: str) -> NamedSet:
        with self._lock:
            return self._sets[self._index_of(name)]

    def member_keys(self, name: str) -> List[ElementKey]:
        """Keys of a set in display order."""
        with self._lock:
            members = self._sets[self._index_of(name)].members
            return [k for k in self.universe.keys() if k in members]

    def elements_in_set(self, name: str) -> List[Element]:
        with self._lock:
            return self.universe.elements_for(self.get_set(name).members)

    def sets_for_element(self, ref: Any) -> List[str]:
        with self._lock:
            key = self.universe.require_key(ref)
            return [s.name for s in self._sets if key in s.members]

    def set_summaries(self) -> List[SetSummary]:
        with self._lock:
            total = len(self.universe)
            return [
                SetSummary(
                    name=s.name,
                    size=len(s.members),
                    probability=(len(s.members) / total) if total else 0.0,
                )
                for s in self._sets
            ]

    def _index_of(self, name: str) -> int:
        for i, s in enumerate(self._sets):
            if s.name == name:
                return i
        raise SetNotFound(f"No set found with name: {name}", details={"set": name})

    # ---------------- Elements ----------------

    def insert_element(
        self,
        raw: Any,
        on_duplicate: DuplicatePolicy = DuplicatePolicy.ERROR,
        expected_version: Optional[int] = None,
    ) -> ElementKey:
        with self._mutation(expected_version):
            element = self.registry.parse(raw)
            key = self.registry.key(element)
            if key in self.universe:
                if on_duplicate == DuplicatePolicy.IGNORE:
                    return key
                raise DuplicateElement(f"Element '{key}' already exists", details={"key": key})
            self.universe._add(key, element)
            logger.info(f"Inserted element '{key}' into diagram '{self.name}'")
            return key

    def insert_elements(
        self,
        raws: Iterable[Any],
        on_duplicate: DuplicatePolicy = DuplicatePolicy.ERROR,
        expected_version: Optional[int] = None,
    ) -> List[ElementKey]:
        """Insert many elements; either all are inserted or none."""
        with self._mutation(expected_version):
            staged: Dict[ElementKey, Element] = {}
            keys: List[ElementKey] = []
            for raw in raws:
                element = self.registry.parse(raw)
                key = self.registry.key(element)
                if key in self.universe or key in staged:
                    if on_duplicate == DuplicatePolicy.ERROR:
                        raise DuplicateElement(f"Element '{key}' already exists", details={"key": key})
                else:
                    staged[key] = element
                keys.append(key)
            for key, element in staged.items():
                self.universe._add(key, element)
            if staged:
                logger.info(f"Inserted {len(staged)} elements into diagram '{self.name}'")
            return keys

    def rename_element(
        self,
        old_key: ElementKey,
        new_raw: Any,
        expected_version: Optional[int] = None,
    ) -> ElementKey:
        """Change an element's value, rewriting its key in every named set."""
        with self._mutation(expected_version):
            old_key = self.universe.require_key(old_key)
            element = self.registry.parse(new_raw)
            new_key = self.registry.key(element)
            if new_key == old_key:
                return old_key
            if new_key in self.universe:
                raise DuplicateElement(
                    f"New element name '{new_key}' already exists.", details={"key": new_key}
                )

            rewritten = [
                s.with_members((s.members - {old_key}) | {new_key}) if old_key in s.members else s
                for s in self._sets
            ]
            self.universe._discard(old_key)
            self.universe._add(new_key, element)
            self._sets = rewritten
            logger.info(f"Renamed element '{old_key}' -> '{new_key}' in diagram '{self.name}'")
            return new_key

    def remove_element(self, key: ElementKey, expected_version: Optional[int] = None) -> None:
        with self._mutation(expected_version):
            key = self.universe.require_key(key)
            pruned = [s.with_members(s.members - {key}) if key in s.members else s for s in self._sets]
            self.universe._discard(key)
            self._sets = pruned
            logger.info(f"Removed element '{key}' from diagram '{self.name}'")

    # ---------------- Named sets ----------------

    def create_set(self, name: str, expected_version: Optional[int] = None) -> NamedSet:
        with self._mutation(expected_version):
            name = self._validate_new_name(name)
            if len(self._sets) >= self.max_sets:
                raise SetLimitExceeded(
                    f"Diagram already has {len(self._sets)} sets (limit {self.max_sets})",
                    details={"limit": self.max_sets},
                )
            named = NamedSet(name=name)
            self._sets.append(named)
            logger.info(f"Created set '{name}' in diagram '{self.name}'")
            return named

    def rename_set(self, old: str, new: str, expected_version: Optional[int] = None) -> NamedSet:
        with self._mutation(expected_version):
            index = self._index_of(old)
            if isinstance(new, str) and new.strip() == old:
                return self._sets[index]
            new = self._validate_new_name(new)
            renamed = self._sets[index].renamed(new)
            self._sets[index] = renamed
            logger.info(f"Renamed set '{old}' -> '{new}' in diagram '{self.name}'")
            return renamed

    def delete_set(self, name: str, expected_version: Optional[int] = None) -> None:
        with self._mutation(expected_version):
            index = self._index_of(name)
            del self._sets[index]
            logger.info(f"Deleted set '{name}' from diagram '{self.name}'")

    def set_membership(
        self,
        name: str,
        refs: Iterable[Any],
        expected_version: Optional[int] = None,
    ) -> NamedSet:
        """Replace the whole membership of a set (not a merge)."""
        with self._mutation(expected_version):
            index = self._index_of(name)
            members: Set[ElementKey] = set()
            missing: List[str] = []
            for ref in refs:
                key = self.universe.resolve_key(ref)
                if key is None:
                    missing.append(ref if isinstance(ref, str) else repr(ref))
                else:
                    members.add(key)
            if missing:
                logger.warning(f"Rejected membership update for set '{name}': {len(missing)} unknown elements")
                raise DanglingMembershipReference(name, missing)
            updated = self._sets[index].with_members(members)
            self._sets[index] = updated
            logger.info(f"Set '{name}' membership replaced ({len(members)} elements)")
            return updated

    def update_element_membership(
        self,
        ref: Any,
        set_names: Sequence[str],
        expected_version: Optional[int] = None,
    ) -> List[str]:
        """Make an element a member of exactly the given sets."""
        with self._mutation(expected_version):
            key = self.universe.require_key(ref)
            wanted = set(set_names)
            for set_name in wanted:
                self._index_of(set_name)
            self._sets = [
                s.with_members(s.members | {key}) if s.name in wanted else s.with_members(s.members - {key})
                for s in self._sets
            ]
            logger.info(f"Element '{key}' now in sets {sorted(wanted)}")
            return [s.name for s in self._sets if s.name in wanted]

    def _validate_new_name(self, name: str) -> str:
        if not isinstance(name, str) or not name.strip():
            raise EmptyName("Set name cannot be empty.")
        name = name.strip()
        if any(s.name == name for s in self._sets):
            raise DuplicateSetName(f"Set name already exists: {name}", details={"set": name})
        return name

    def __repr__(self) -> str:
        return f"<Diagram name={self.name!r} kind={self.kind.value} elements={len(self.universe)} sets={len(self._sets)} v{self._version}>"
