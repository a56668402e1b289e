# tests/test_sql_script_runner.py
#
# Unit tests for modules/sql_script_runner.py

import os

import pytest

from modules.session_log import Severity
from modules.shell_types import OutputType
from modules.sql_script_runner import (
    ScriptValidationError, list_sql_scripts, run_sql_script, split_sql_statements, validate_script_filename,
)

PROJECT_SCRIPTS_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'sql_scripts'))


@pytest.fixture
def scripts_dir(tmp_path):
    directory = tmp_path / "sql_scripts"
    directory.mkdir()
    return directory


def test_list_sql_scripts_hides_admin_scripts(scripts_dir):
    for name in ("b.sql", "a.sql", "admin_setup.sql", "notes.txt"):
        (scripts_dir / name).write_text("SELECT 1;")
    assert list_sql_scripts(str(scripts_dir)) == ["a.sql", "b.sql"]
    assert list_sql_scripts(str(scripts_dir), include_admin=True) == ["a.sql", "admin_setup.sql", "b.sql"]

def test_list_sql_scripts_missing_directory(tmp_path):
    assert list_sql_scripts(str(tmp_path / "nowhere")) == []

def test_shipped_scripts_are_listed():
    assert "sample_inventory.sql" in list_sql_scripts(PROJECT_SCRIPTS_DIR)

@pytest.mark.parametrize("filename", ["../etc/passwd.sql", "script.txt", "sub/dir.sql", "bad name.sql"])
def test_validate_script_filename_rejects(filename):
    with pytest.raises(ScriptValidationError):
        validate_script_filename(filename)

def test_split_sql_statements_drops_comment_lines():
    script = "-- header; with a semicolon\nCREATE TABLE t (id INTEGER);\n\n-- trailing\nSELECT 1;\n"
    assert split_sql_statements(script) == ["CREATE TABLE t (id INTEGER)", "SELECT 1"]


def test_run_sql_script_invalid_name(store, scripts_dir):
    result = run_sql_script(store, str(scripts_dir), "../escape.sql")
    assert result.output_lines[0].text == "Error: Invalid SQL script filename '../escape.sql'."
    assert result.log_entries[0].flag == 1

def test_run_sql_script_missing_file(store, scripts_dir):
    result = run_sql_script(store, str(scripts_dir), "absent.sql")
    assert result.output_lines[0].text == "Error processing SQL script 'absent.sql': File not found."
    assert result.output_lines[0].type == OutputType.ERROR

def test_run_sql_script_empty(store, scripts_dir):
    (scripts_dir / "empty.sql").write_text("-- nothing here\n")
    result = run_sql_script(store, str(scripts_dir), "empty.sql")
    assert [line.text for line in result.output_lines] == [
        "SQL script 'empty.sql' is empty or contains no valid commands."]
    assert result.variables_changed is False

def test_run_sql_script_continues_after_a_failing_statement(store, scripts_dir):
    (scripts_dir / "mixed.sql").write_text(
        "CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT);\n"
        "INSERT INTO missing VALUES (1);\n"
        "INSERT INTO t (name) VALUES ('x');\n"
        "SELECT name FROM t;\n"
    )
    result = run_sql_script(store, str(scripts_dir), "mixed.sql")

    texts = [line.text for line in result.output_lines]
    assert texts[0] == "Executing SQL script: mixed.sql"
    assert any(t.startswith("Error in SQL script 'mixed.sql', command 2") for t in texts)
    assert "Query executed successfully. 1 row affected. Last inserted row ID: 1" in texts
    assert texts[-1] == "name\n----\nx   \n(1 row)"
    assert [e.severity for e in result.log_entries].count(Severity.ERROR) == 1
    assert result.log_entries[-1].text == "Finished executing SQL script: mixed.sql"
    assert result.variables_changed is True

def test_run_shipped_sample_script(store):
    result = run_sql_script(store, PROJECT_SCRIPTS_DIR, "sample_inventory.sql")
    assert not any(line.type == OutputType.ERROR for line in result.output_lines)
    assert result.output_lines[-1].text.endswith("(3 rows)")
