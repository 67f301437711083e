"""
Pytest configuration and shared fixtures for Venn engine tests.
"""

import pytest

from config.settings import Settings, get_settings
from venn import Diagram, ElementKind
from venn.templates import build_template


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached process-wide; isolate each test from env changes."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def number_diagram() -> Diagram:
    """U = {1..6}, A = {1,2,3,4}, B = {3,4,5}."""
    return Diagram.build(
        ElementKind.NUMBER,
        [1, 2, 3, 4, 5, 6],
        [("A", [1, 2, 3, 4]), ("B", [3, 4, 5])],
        name="numbers",
    )


@pytest.fixture
def text_diagram() -> Diagram:
    """U = {x, y, z}, A = {x}, B = {y}."""
    return Diagram.build(
        ElementKind.TEXT,
        ["x", "y", "z"],
        [("A", ["x"]), ("B", ["y"])],
        name="letters",
    )


@pytest.fixture
def two_dice() -> Diagram:
    return build_template("DICE_ROLLS_2")


@pytest.fixture
def deck() -> Diagram:
    return build_template("DECK_OF_CARDS")


@pytest.fixture
def empty_dice() -> Diagram:
    return Diagram(ElementKind.DICE_ROLL, name="dice")
