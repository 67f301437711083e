"""
Diagram bookkeeping tests.

Every mutation must leave the diagram consistent: unique keys, unique
non-blank set names, and no set member that is missing from the universe.
Failed mutations must leave no trace.
"""

import threading

import pytest

from venn import Diagram, DuplicatePolicy, ElementKind, ElementTypeRegistry, Number, PartitionEngine
from venn.diagram import Universe
from venn.errors import (
    DanglingMembershipReference,
    DuplicateElement,
    DuplicateSetName,
    ElementNotFound,
    EmptyName,
    ErrorCode,
    InvalidElementFormat,
    SetLimitExceeded,
    SetNotFound,
    StaleVersion,
)


def assert_consistent(diagram: Diagram):
    names = diagram.set_names()
    assert len(names) == len(set(names))
    assert all(n.strip() for n in names)
    for named in diagram.sets:
        assert named.members <= set(diagram.universe.keys())


# =============================================================================
# ELEMENTS
# =============================================================================

class TestElements:

    def test_insert_returns_key(self, empty_dice):
        assert empty_dice.insert_element({"die1": 1, "die2": 6}) == "(1,6)"
        assert "(1,6)" in empty_dice.universe

    def test_duplicate_insert_errors_by_default(self, empty_dice):
        empty_dice.insert_element([1, 6])
        with pytest.raises(DuplicateElement):
            empty_dice.insert_element({"dice": [1, 6]})
        assert len(empty_dice.universe) == 1

    def test_duplicate_insert_ignored_by_policy(self, empty_dice):
        empty_dice.insert_element([1, 6])
        key = empty_dice.insert_element("(1,6)", on_duplicate=DuplicatePolicy.IGNORE)
        assert key == "(1,6)"
        assert len(empty_dice.universe) == 1

    def test_bulk_insert_is_all_or_nothing(self, empty_dice):
        with pytest.raises(InvalidElementFormat):
            empty_dice.insert_elements([[1, 1], [2, 2], [9, 9]])
        assert len(empty_dice.universe) == 0

    def test_bulk_insert_rejects_internal_duplicates(self, empty_dice):
        with pytest.raises(DuplicateElement):
            empty_dice.insert_elements([[1, 2], {"die1": 1, "die2": 2}])
        assert len(empty_dice.universe) == 0

    def test_rename_rewrites_membership_everywhere(self):
        """Scenario: renaming "apple" to "apricot" updates both sets."""
        diagram = Diagram.build(
            ElementKind.TEXT,
            ["apple", "banana"],
            [("Fruit", ["apple", "banana"]), ("Red", ["apple"])],
        )
        assert diagram.rename_element("apple", "apricot") == "apricot"
        assert "apple" not in diagram.universe
        assert diagram.get_set("Fruit").members == {"apricot", "banana"}
        assert diagram.get_set("Red").members == {"apricot"}
        assert_consistent(diagram)

    def test_rename_to_existing_key_fails_cleanly(self, text_diagram):
        version = text_diagram.version
        with pytest.raises(DuplicateElement):
            text_diagram.rename_element("x", "y")
        assert text_diagram.get_set("A").members == {"x"}
        assert text_diagram.version == version

    def test_rename_to_same_value_is_noop(self, text_diagram):
        assert text_diagram.rename_element("x", " x ") == "x"
        assert text_diagram.get_set("A").members == {"x"}

    def test_rename_missing_element(self, text_diagram):
        with pytest.raises(ElementNotFound):
            text_diagram.rename_element("nope", "w")

    def test_remove_prunes_every_set(self, number_diagram):
        number_diagram.remove_element("3")
        assert "3" not in number_diagram.get_set("A").members
        assert "3" not in number_diagram.get_set("B").members
        assert_consistent(number_diagram)

    def test_remove_missing_element(self, number_diagram):
        with pytest.raises(ElementNotFound) as exc:
            number_diagram.remove_element("99")
        assert exc.value.code == ErrorCode.ELEMENT_NOT_FOUND


# =============================================================================
# NAMED SETS
# =============================================================================

class TestNamedSets:

    def test_create_and_order(self, number_diagram):
        number_diagram.create_set("C")
        assert number_diagram.set_names() == ["A", "B", "C"]

    def test_names_are_stripped(self, number_diagram):
        assert number_diagram.create_set("  Evens ").name == "Evens"

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_name(self, number_diagram, name):
        with pytest.raises(EmptyName):
            number_diagram.create_set(name)

    def test_duplicate_name(self, number_diagram):
        with pytest.raises(DuplicateSetName):
            number_diagram.create_set("A")
        with pytest.raises(DuplicateSetName):
            number_diagram.rename_set("B", "A")

    def test_rename_keeps_position_and_members(self, number_diagram):
        number_diagram.rename_set("A", "Small")
        assert number_diagram.set_names() == ["Small", "B"]
        assert number_diagram.get_set("Small").members == {"1", "2", "3", "4"}

    def test_rename_to_own_name(self, number_diagram):
        assert number_diagram.rename_set("A", " A ").name == "A"

    def test_delete(self, number_diagram):
        number_diagram.delete_set("A")
        assert number_diagram.set_names() == ["B"]
        with pytest.raises(SetNotFound):
            number_diagram.delete_set("A")

    def test_set_limit(self):
        diagram = Diagram(ElementKind.NUMBER, max_sets=2)
        diagram.create_set("A")
        diagram.create_set("B")
        with pytest.raises(SetLimitExceeded):
            diagram.create_set("C")

    def test_limit_is_capped(self):
        assert Diagram(ElementKind.NUMBER, max_sets=64).max_sets == 20


# =============================================================================
# MEMBERSHIP
# =============================================================================

class TestMembership:

    def test_set_membership_replaces(self, number_diagram):
        number_diagram.set_membership("A", [6])
        assert number_diagram.get_set("A").members == {"6"}

    def test_membership_accepts_keys_and_raw_values(self, number_diagram):
        number_diagram.set_membership("A", ["1", 2.0, "3"])
        assert number_diagram.get_set("A").members == {"1", "2", "3"}

    def test_dangling_reference_is_atomic(self, number_diagram):
        """Scenario: one unknown reference rejects the whole update."""
        before = number_diagram.get_set("A").members
        with pytest.raises(DanglingMembershipReference) as exc:
            number_diagram.set_membership("A", [1, 42])
        assert exc.value.details["missing"] == ["42"]
        assert number_diagram.get_set("A").members == before

    def test_membership_on_missing_set(self, number_diagram):
        with pytest.raises(SetNotFound):
            number_diagram.set_membership("Z", [1])

    def test_sets_for_element(self, number_diagram):
        assert number_diagram.sets_for_element("3") == ["A", "B"]
        assert number_diagram.sets_for_element(6) == []

    def test_update_element_membership(self, number_diagram):
        assert number_diagram.update_element_membership(6, ["B"]) == ["B"]
        assert number_diagram.sets_for_element(6) == ["B"]
        number_diagram.update_element_membership(3, [])
        assert number_diagram.sets_for_element(3) == []

    def test_update_element_membership_unknown_set(self, number_diagram):
        with pytest.raises(SetNotFound):
            number_diagram.update_element_membership(6, ["B", "Z"])
        assert number_diagram.sets_for_element(6) == []

    def test_elements_in_set_display_order(self, number_diagram):
        assert [e.value for e in number_diagram.elements_in_set("B")] == [3, 4, 5]

    def test_set_summaries(self, number_diagram):
        summaries = {s.name: s for s in number_diagram.set_summaries()}
        assert summaries["A"].size == 4
        assert summaries["B"].probability == pytest.approx(0.5)

    def test_summaries_of_empty_universe(self):
        diagram = Diagram(ElementKind.TEXT)
        diagram.create_set("A")
        assert diagram.set_summaries()[0].probability == 0.0


# =============================================================================
# VERSIONS AND CONCURRENCY
# =============================================================================

class TestVersions:

    def test_every_mutation_bumps_version(self, number_diagram):
        start = number_diagram.version
        number_diagram.create_set("C")
        number_diagram.set_membership("C", [1])
        assert number_diagram.version == start + 2

    def test_failed_mutation_keeps_version(self, number_diagram):
        start = number_diagram.version
        with pytest.raises(SetNotFound):
            number_diagram.delete_set("Z")
        assert number_diagram.version == start

    def test_stale_writer_rejected(self, number_diagram):
        version = number_diagram.version
        number_diagram.create_set("C", expected_version=version)
        with pytest.raises(StaleVersion) as exc:
            number_diagram.create_set("D", expected_version=version)
        assert exc.value.details == {"expected": version, "actual": version + 1}
        assert "D" not in number_diagram.set_names()

    def test_snapshot_is_isolated(self, number_diagram):
        snapshot = number_diagram.snapshot()
        number_diagram.remove_element("1")
        assert "1" in snapshot.universe
        assert snapshot.set_names == ["A", "B"]
        assert "1" in snapshot.sets[0].members

    def test_concurrent_writers_lose_nothing(self):
        diagram = Diagram(ElementKind.NUMBER)

        def insert(start):
            for n in range(start, start + 50):
                diagram.insert_element(n)

        threads = [threading.Thread(target=insert, args=(i * 50,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(diagram.universe) == 200
        assert diagram.version == 200

    def test_build_from_pairs(self):
        diagram = Diagram.build(ElementKind.PLAYING_CARD, ["AS", "KH"], [("Aces", ["AS"])])
        assert diagram.get_set("Aces").members == {"AS"}
        assert_consistent(diagram)


# =============================================================================
# READERS ALONGSIDE WRITERS
# =============================================================================

class TestReadersAndWriters:

    def test_order_cache_skips_writes_during_sort(self, monkeypatch):
        """An order computed while a write lands must not be cached."""
        universe = Universe(ElementKind.NUMBER)
        for n in (1, 2, 3):
            universe._add(str(n), Number(n))

        original_sorted = ElementTypeRegistry.sorted

        def sort_then_write(registry, elements):
            ordered = original_sorted(registry, elements)
            if "4" not in universe:
                universe._add("4", Number(4))
            return ordered

        monkeypatch.setattr(ElementTypeRegistry, "sorted", sort_then_write)
        assert universe.keys() == ["1", "2", "3"]
        monkeypatch.undo()

        assert universe.keys() == ["1", "2", "3", "4"]
        assert universe.copy().keys() == ["1", "2", "3", "4"]

    def test_reads_wait_for_writer(self, number_diagram):
        with number_diagram.lock:
            writer = threading.Thread(target=number_diagram.insert_element, args=(7,))
            writer.start()
            writer.join(timeout=0.2)
            assert "7" not in number_diagram.universe
            assert number_diagram.member_keys("B") == ["3", "4", "5"]
        writer.join()
        assert "7" in number_diagram.universe.keys()

    def test_partitions_stay_complete_under_writes(self):
        diagram = Diagram.build(ElementKind.NUMBER, [0], [("Even", [0])])
        engine = PartitionEngine()
        failures = []
        done = threading.Event()

        def write():
            for n in range(1, 200):
                diagram.insert_element(n)
                if n % 2 == 0:
                    diagram.set_membership("Even", diagram.member_keys("Even") + [n])
            done.set()

        def read():
            while not done.is_set():
                snapshot = diagram.snapshot()
                result = engine.compute_snapshot(snapshot)
                counted = sum(r.element_count for r in result.regions)
                if counted != result.total or len(snapshot.universe.keys()) != len(snapshot.universe):
                    failures.append((counted, result.total))

        reader = threading.Thread(target=read)
        writer = threading.Thread(target=write)
        reader.start()
        writer.start()
        writer.join()
        reader.join()

        assert failures == []
        assert len(diagram.universe.keys()) == 200
        assert len(diagram.member_keys("Even")) == 100
        assert_consistent(diagram)

    def test_advance_version_never_moves_back(self, number_diagram):
        current = number_diagram.version
        assert number_diagram.advance_version(current + 10) == current + 10
        assert number_diagram.advance_version(1) == current + 10
        with pytest.raises(StaleVersion):
            number_diagram.create_set("C", expected_version=current)
