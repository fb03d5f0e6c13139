"""Pytest configuration helpers for test collection.

Ensure the project root is on sys.path so tests can import the package
without requiring it to be installed.
"""
import sys
from pathlib import Path

import pytest

from tests.helpers import Address, Person


def pytest_configure(config):
    # Insert repo root (one level up from tests/) to sys.path
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))


@pytest.fixture
def person() -> Person:
    return Person(
        first_name="John",
        middle_initial=None,
        last_name="Smith",
        age=35,
        address=Address(
            street="123 Main St",
            apt="F22",
            city="Chicago",
            state="Illinois",
            zip="60606",
        ),
    )


@pytest.fixture
def store_path(tmp_path) -> Path:
    return tmp_path / "store.ogma"
