# tests/test_command_executor.py
#
# Unit tests for modules/command_executor.py

import pytest
from unittest.mock import AsyncMock

from modules import command_executor
from modules.cancellation import CancellationToken
from modules.command_executor import execute_command, required_permission_for
from modules.session_log import Severity, make_log_entry
from modules.shell_types import OutputType
from modules.variables import get_variable


@pytest.mark.parametrize("category, command, expected", [
    ("internal", "x = 5", "manage_variables"),
    ("python", "rate = 0.5", "manage_variables"),
    ("python", "x == 5", None),
    ("unix", "x = 5", None),
    ("sql", "  select * from t", "execute_sql_select"),
    ("sql", "DELETE FROM t", "execute_sql_modify"),
    ("internal", "help", None),
])
def test_required_permission_for(category, command, expected):
    assert required_permission_for(category, command) == expected


@pytest.mark.asyncio
async def test_echoed_command_line_comes_first(make_context):
    result = await execute_command(make_context(), "unix", "  ls  ")
    assert result.output_lines[0].type == OutputType.COMMAND
    assert result.output_lines[0].text == "ls"
    assert result.output_lines[1].text == "file1.txt  directoryA  script.sh"

@pytest.mark.asyncio
async def test_internal_commands_are_dispatched(make_context):
    result = await execute_command(make_context(), "internal", "pause")
    assert [line.type for line in result.output_lines] == [OutputType.COMMAND, OutputType.INFO]


# --- Variable assignment ---

@pytest.mark.asyncio
async def test_assignment_requires_manage_variables(make_context, initialized_store):
    result = await execute_command(make_context(), "internal", "answer = 42")
    assert result.output_lines[1].text == "Permission denied: Requires 'manage_variables' permission."
    assert result.new_log[-1].flag == 1
    assert get_variable(initialized_store, "answer") is None

@pytest.mark.asyncio
async def test_internal_assignment_stores_typed_variable(make_context, initialized_store):
    context = make_context(user_permissions=frozenset({"manage_variables"}))
    result = await execute_command(context, "internal", "answer = 42")

    assert len(result.output_lines) == 1
    assert result.variables_changed is True
    stored = get_variable(initialized_store, "answer")
    assert (stored.datatype, stored.value) == ("integer", "42")
    assert result.new_log[-1].text == "Stored/Updated internal variable 'answer' with type 'integer' and value: 42"

@pytest.mark.asyncio
async def test_python_assignment_uses_python_label(make_context):
    context = make_context(user_permissions=frozenset({"manage_variables"}))
    result = await execute_command(context, "python", "name = 'Ada'")
    assert result.new_log[-1].text.startswith("Stored/Updated Python variable 'name'")


# --- SQL permissions ---

@pytest.mark.asyncio
async def test_select_needs_only_select_permission(make_context):
    context = make_context(user_permissions=frozenset({"execute_sql_select"}))
    result = await execute_command(context, "sql", "SELECT 1;")
    assert result.output_lines[1].text.endswith("(1 row)")

@pytest.mark.asyncio
async def test_modify_denied_with_select_permission_only(make_context):
    context = make_context(user_permissions=frozenset({"execute_sql_select"}))
    result = await execute_command(context, "sql", "CREATE TABLE t (id INTEGER)")
    assert result.output_lines[1].text == "Permission denied: Requires 'execute_sql_modify' permission."
    assert result.new_log[-1].severity == Severity.ERROR

@pytest.mark.asyncio
async def test_override_bypass_is_logged_before_the_outcome(make_context):
    result = await execute_command(make_context(override_all=True), "sql", "CREATE TABLE t (id INTEGER)")
    assert result.output_lines[1].text == "Query executed successfully. 0 rows affected."
    bypass, outcome = result.new_log[-2:]
    assert bypass.text == "Permission check bypassed by override for 'sql' command (User: 1)"
    assert (bypass.severity, bypass.flag) == (Severity.WARNING, 1)
    assert outcome.severity == Severity.INFO

@pytest.mark.asyncio
async def test_create_sqlite_then_select(make_context):
    admin = frozenset({"manage_users", "execute_sql_select"})
    await execute_command(make_context(user_permissions=admin), "internal", "create sqlite mydb.db")
    result = await execute_command(make_context(user_permissions=admin), "sql", "SELECT 1;")
    assert result.output_lines[1].text == "1\n-\n1\n(1 row)"


# --- Failures ---

@pytest.mark.asyncio
async def test_unexpected_exception_becomes_error_line(make_context, mocker):
    mocker.patch.dict(command_executor.SIMULATORS, {"unix": AsyncMock(side_effect=RuntimeError("disk on fire"))})
    result = await execute_command(make_context(), "unix", "ls")
    assert result.output_lines[1].text == "Error: disk on fire"
    assert result.output_lines[1].type == OutputType.ERROR
    assert result.new_log[-1].severity == Severity.ERROR

@pytest.mark.asyncio
async def test_unknown_category(make_context):
    result = await execute_command(make_context(), "cobol", "MOVE A TO B")
    assert result.output_lines[1].text == "Error: Command execution logic not implemented for category 'cobol'."

@pytest.mark.asyncio
async def test_cancelled_simulation(make_context):
    token = CancellationToken()
    token.cancel()
    result = await execute_command(make_context(cancel_token=token), "windows", "dir")
    assert result.output_lines[1].text == "Operation cancelled: dir"
    assert result.new_log[-1].severity == Severity.WARNING

@pytest.mark.asyncio
async def test_previous_log_is_preserved(make_context):
    previous = (make_log_entry("earlier"),)
    result = await execute_command(make_context(log=previous), "unix", "pwd")
    assert result.new_log[0] == previous[0]
    assert len(result.new_log) == 2
