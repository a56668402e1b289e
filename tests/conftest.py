# tests/conftest.py
#
# Project-wide fixtures. Also adjusts Python's path so that `modules` and
# `main` are importable when pytest runs from the project root.

import sys
import os

import pytest

# Add the project root to the Python path to help pytest find your modules
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from modules.builtin_commands import initialize_database
from modules.dispatch_context import DispatchContext
from modules.store import SQLiteStore


@pytest.fixture
def test_config(tmp_path):
    """A minimal configuration with simulated delays switched off."""
    return {
        "ai_models": {"classifier": "test-model", "text_generator": "test-model"},
        "prompts": {
            "classifier": {"system": "Classify into {active_categories}.", "user_template": "{command}"},
            "text_generator": {"system": "Tools: {tool_context}", "user_template": "{input_text}"},
        },
        "categories": {"active": ["internal", "python", "unix", "windows", "sql", "excel", "typescript"]},
        "session": {"user_id": 1, "override_all_permissions": False},
        "simulation": {"enabled": False},
        "storage": {
            "data_dir": str(tmp_path / "data"),
            "sql_scripts_dir": str(tmp_path / "sql_scripts"),
        },
        "ui": {},
    }


@pytest.fixture
def store():
    """A fresh, empty in-memory store."""
    s = SQLiteStore()
    yield s
    s.close()


@pytest.fixture
def initialized_store(store):
    """An in-memory store after `init db` (admin is user 1, guest is user 2)."""
    initialize_database(store)
    return store


@pytest.fixture
def make_context(initialized_store, test_config):
    """Factory for DispatchContext objects over the initialized store."""
    def _make(**overrides):
        values = {
            "user_id": 1,
            "store": initialized_store,
            "user_permissions": frozenset(),
            "config": test_config,
        }
        values.update(overrides)
        return DispatchContext(**values)
    return _make
