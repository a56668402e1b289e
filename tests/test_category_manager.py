# tests/test_category_manager.py
#
# Unit tests for functions in modules/category_manager.py

import pytest
import logging
from unittest.mock import AsyncMock

from modules import category_manager
from modules.category_manager import (
    CLASSIFICATION_FAILED_REASON, classify_command, matches_internal_command,
    normalize_active_categories, parse_category_input,
)
from modules.shell_types import AMBIGUOUS_CATEGORY, UNKNOWN_CATEGORY, ALL_CATEGORIES


# --- Fast path ---

@pytest.mark.parametrize("command", [
    "help", "HELP", "  clear  ", "mode sql", "export log", "show requirements",
    "create sqlite mydb.db", "persist memory db to backup.db", "add_int_cmd s n \"d\" x",
    "init db", "list py vars", "ai what is sqlite", "add ai_tool t \"a\" \"d\"", "@bat:run.bat",
])
def test_matches_internal_command_known_heads(command):
    assert matches_internal_command(command) is True

@pytest.mark.parametrize("command", [
    "helping", "clearly", "history2", "echo hello", "SELECT 1;", "create sqlite", "exporting log", "",
])
def test_matches_internal_command_rejects_near_misses(command):
    assert matches_internal_command(command) is False

def test_matches_internal_command_includes_custom_names():
    assert matches_internal_command("greet", custom_command_names=["Greet"]) is True
    assert matches_internal_command("greet") is False

@pytest.mark.asyncio
async def test_fast_path_does_not_call_oracle():
    oracle = AsyncMock()
    result = await classify_command("help", ["internal", "sql"], oracle)
    assert result.category == "internal"
    oracle.assert_not_called()

@pytest.mark.asyncio
async def test_fast_path_skipped_when_internal_inactive():
    oracle = AsyncMock(return_value={"category": "unix", "reasoning": None})
    result = await classify_command("help", ["unix"], oracle)
    assert result.category == "unix"
    oracle.assert_awaited_once_with("help", ["unix"])


# --- Oracle path and post-validation ---

@pytest.mark.asyncio
async def test_oracle_receives_exact_active_list_in_canonical_order():
    oracle = AsyncMock(return_value={"category": "unix", "reasoning": None})
    result = await classify_command("echo hello", ["unix", "internal"], oracle)
    assert result.category == "unix"
    oracle.assert_awaited_once_with("echo hello", ["internal", "unix"])

@pytest.mark.asyncio
async def test_inactive_category_is_downgraded_to_unknown():
    oracle = AsyncMock(return_value={"category": "sql", "reasoning": None})
    result = await classify_command("SELECT 1;", ["unix", "python"], oracle)
    assert result.category == UNKNOWN_CATEGORY
    assert result.reasoning == "Command classified as 'sql', but this category was not active."

@pytest.mark.asyncio
async def test_unexpected_category_is_downgraded_to_unknown():
    oracle = AsyncMock(return_value={"category": "cobol", "reasoning": "looks old"})
    result = await classify_command("MOVE A TO B", ["unix"], oracle)
    assert result.category == UNKNOWN_CATEGORY
    assert result.reasoning == "AI returned unexpected category 'cobol'. Command: MOVE A TO B"

@pytest.mark.asyncio
async def test_ambiguous_without_reasoning_gets_synthesized_reason():
    oracle = AsyncMock(return_value={"category": "ambiguous", "reasoning": ""})
    result = await classify_command("echo hello", ["unix", "windows"], oracle)
    assert result.category == AMBIGUOUS_CATEGORY
    assert result.reasoning == ("AI classified as ambiguous but provided no reasoning. "
                                "Command did not fit active categories: unix, windows.")

@pytest.mark.asyncio
async def test_ambiguous_reasoning_is_kept():
    oracle = AsyncMock(return_value={"category": "ambiguous", "reasoning": "Matches both Unix and Windows echo"})
    result = await classify_command("echo hello", ["unix", "windows"], oracle)
    assert result.reasoning == "Matches both Unix and Windows echo"
    assert result.is_dispatchable is False

@pytest.mark.asyncio
@pytest.mark.parametrize("oracle_output", [None, {}, {"category": None}, "sql"])
async def test_missing_oracle_result_is_unknown(oracle_output):
    oracle = AsyncMock(return_value=oracle_output)
    result = await classify_command("???", ["sql"], oracle)
    assert result.category == UNKNOWN_CATEGORY
    assert result.reasoning == CLASSIFICATION_FAILED_REASON

@pytest.mark.asyncio
async def test_oracle_exception_is_unknown(caplog):
    oracle = AsyncMock(side_effect=RuntimeError("model offline"))
    with caplog.at_level(logging.ERROR, logger=category_manager.__name__):
        result = await classify_command("ls", ["unix"], oracle)
    assert result.category == UNKNOWN_CATEGORY
    assert result.reasoning == CLASSIFICATION_FAILED_REASON
    assert "model offline" in caplog.text

@pytest.mark.asyncio
async def test_empty_command_is_unknown_without_oracle():
    oracle = AsyncMock()
    result = await classify_command("   ", ["unix"], oracle)
    assert result.category == UNKNOWN_CATEGORY
    assert result.reasoning == "Empty command."
    oracle.assert_not_called()

@pytest.mark.asyncio
async def test_no_active_categories_is_unknown():
    oracle = AsyncMock()
    result = await classify_command("ls", [], oracle)
    assert result.reasoning == "No active categories selected."
    oracle.assert_not_called()

@pytest.mark.asyncio
async def test_no_oracle_configured():
    result = await classify_command("ls", ["unix"], None)
    assert result.category == UNKNOWN_CATEGORY


# --- Category input helpers ---

def test_parse_category_input_accepts_numbers_names_and_aliases():
    assert parse_category_input("1") == "internal"
    assert parse_category_input(" SQL ") == "sql"
    assert parse_category_input("ts") == "typescript"
    assert parse_category_input("cobol") is None

def test_normalize_active_categories_deduplicates_and_orders(caplog):
    with caplog.at_level(logging.WARNING, logger=category_manager.__name__):
        result = normalize_active_categories(["sql", "1", "SQL", "bogus", "unix"])
    assert result == ["internal", "unix", "sql"]
    assert "bogus" in caplog.text

def test_every_category_has_description_and_suggestions():
    for category in ALL_CATEGORIES:
        assert category_manager.CATEGORY_DESCRIPTIONS[category]
        assert category in category_manager.CATEGORY_SUGGESTIONS
