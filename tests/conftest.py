"""
Shared test fixtures - a small calculus curriculum.

These lines are the kind of graph blocks the tutor model actually emits,
noise included.
"""

import shutil
import tempfile
from pathlib import Path

import pytest

from conceptmap.adjacency import EdgePolicy
from conceptmap.registry import GraphRegistry


@pytest.fixture
def temp_data_dir():
    """Create a temporary directory for test data."""
    temp_dir = Path(tempfile.mkdtemp())
    yield temp_dir
    # Cleanup after test
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def registry():
    """Fresh directed registry with chat-1 active."""
    reg = GraphRegistry()
    reg.set_active_session("chat-1")
    return reg


@pytest.fixture
def bidirectional_registry():
    """Fresh bidirectional registry with chat-1 active."""
    reg = GraphRegistry(edge_policy=EdgePolicy.BIDIRECTIONAL)
    reg.set_active_session("chat-1")
    return reg


@pytest.fixture
def first_turn():
    """Graph block after 'What do I need before calculus?'"""
    return [
        "ARITHMETIC::ALGEBRA",
        "ALGEBRA::FUNCTIONS",
        "FUNCTIONS::LIMITS",
        "LIMITS::DERIVATIVES",
    ]


@pytest.fixture
def second_turn():
    """Graph block after 'And what comes after derivatives?'

    Repeats part of the first turn, as the model usually does.
    """
    return [
        "// prerequisites carried over",
        "LIMITS::DERIVATIVES",
        "DERIVATIVES::INTEGRALS",
        "LIMITS::INTEGRALS",
        "Integrals are the reverse of derivatives.",
    ]


@pytest.fixture
def noisy_block():
    """Everything the parser has to survive."""
    return [
        "",
        "   ",
        "// a comment::with a delimiter",
        "# another::comment",
        "just prose without a delimiter",
        "A::B::C",
        "::ORPHAN",
        "ORPHAN::",
        "SELF::self",
        "  linear algebra :: matrices  ",
    ]
