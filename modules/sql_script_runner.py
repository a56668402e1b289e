# --- API DOCUMENTATION for modules/sql_script_runner.py ---
#
# **Purpose:** Lists and runs `.sql` scripts from the configured scripts
# directory against the session store (used by the `/sqlscript` command).
#
# **Public Functions:**
#
# def validate_script_filename(filename: str) -> None
#     """Raises ScriptValidationError unless the name is a plain `<name>.sql`."""
#
# def list_sql_scripts(scripts_dir: str, include_admin: bool = False) -> list[str]
#     """Sorted `.sql` names; `admin_` scripts are hidden unless include_admin is set."""
#
# def run_sql_script(store: SQLiteStore, scripts_dir: str, filename: str) -> HandlerResult:
#     """
#     Splits the script on ';' and runs each statement in order. A failing
#     statement is reported and the remaining statements still run.
#     """
#
# --- END API DOCUMENTATION ---

# modules/sql_script_runner.py

import os
import re
import logging
from typing import List

from modules.formatting import format_results_as_table
from modules.session_log import Severity, current_timestamp, make_log_entry
from modules.shell_types import Category, HandlerResult, OutputType, make_output_line
from modules.simulators import describe_write_result
from modules.store import SQLiteStore, StoreError

logger = logging.getLogger(__name__)

SQL_SCRIPT_FILENAME_PATTERN = re.compile(r'^[a-zA-Z0-9_.-]+\.sql$')
# Scripts with this prefix are administrative and hidden from listings
ADMIN_SCRIPT_PREFIX = "admin_"

SQL = Category.SQL.value


class ScriptValidationError(Exception):
    """The requested script name is not an acceptable file name."""
    pass


def validate_script_filename(filename: str):
    if not SQL_SCRIPT_FILENAME_PATTERN.match(filename) or ".." in filename or "/" in filename:
        raise ScriptValidationError(f"Error: Invalid SQL script filename '{filename}'.")


def list_sql_scripts(scripts_dir: str, include_admin: bool = False) -> List[str]:
    if not os.path.isdir(scripts_dir):
        logger.warning(f"SQL scripts directory not found: {scripts_dir}")
        return []
    scripts = sorted(
        name for name in os.listdir(scripts_dir)
        if name.endswith(".sql") and os.path.isfile(os.path.join(scripts_dir, name))
    )
    if not include_admin:
        scripts = [name for name in scripts if not name.startswith(ADMIN_SCRIPT_PREFIX)]
    return scripts


def split_sql_statements(script_text: str) -> List[str]:
    """Splits on ';' after dropping full-line '--' comments."""
    lines = [line for line in script_text.splitlines() if not line.strip().startswith("--")]
    return [statement.strip() for statement in "\n".join(lines).split(";") if statement.strip()]


def _error(message: str, timestamp: str) -> HandlerResult:
    return HandlerResult(
        output_lines=[make_output_line(message, OutputType.ERROR, SQL, timestamp, 1)],
        log_entries=[make_log_entry(message, Severity.ERROR, 1, timestamp)],
    )


def run_sql_script(store: SQLiteStore, scripts_dir: str, filename: str) -> HandlerResult:
    timestamp = current_timestamp()
    try:
        validate_script_filename(filename)
    except ScriptValidationError as e:
        logger.warning(str(e))
        return _error(str(e), timestamp)

    path = os.path.join(scripts_dir, filename)
    if not os.path.realpath(path).startswith(os.path.realpath(scripts_dir)):
        return _error(f"Error: Access denied for SQL script path '{filename}'.", timestamp)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            statements = split_sql_statements(f.read())
    except FileNotFoundError:
        return _error(f"Error processing SQL script '{filename}': File not found.", timestamp)
    except OSError as e:
        logger.error(f"Error reading SQL script {path}: {e}", exc_info=True)
        return _error(f"Error processing SQL script '{filename}': {e}", timestamp)

    result = HandlerResult()
    if not statements:
        message = f"SQL script '{filename}' is empty or contains no valid commands."
        result.output_lines.append(make_output_line(message, OutputType.INFO, SQL, timestamp, 0))
        result.log_entries.append(make_log_entry(message, Severity.INFO, 0, timestamp))
        return result

    logger.info(f"Executing SQL script {path} ({len(statements)} statement(s))")
    result.output_lines.append(make_output_line(f"Executing SQL script: {filename}", OutputType.INFO, SQL, timestamp, 0))
    result.log_entries.append(make_log_entry(f"Started executing SQL script: {filename}", Severity.INFO, 0, timestamp))

    total = len(statements)
    for index, statement in enumerate(statements, start=1):
        statement_ts = current_timestamp()
        result.output_lines.append(make_output_line(statement, OutputType.COMMAND, SQL, statement_ts))
        log_text = f"SQL script '{filename}', command {index}/{total}: {statement}"
        try:
            query_result = store.execute(statement)
        except StoreError as e:
            message = f"Error in SQL script '{filename}', command {index} ('{statement[:50]}...'): {e}"
            result.output_lines.append(make_output_line(message, OutputType.ERROR, SQL, statement_ts, 1))
            result.log_entries.append(make_log_entry(message, Severity.ERROR, 1, statement_ts))
            continue

        if query_result.rows is not None:
            result.output_lines.append(make_output_line(format_results_as_table(query_result.rows),
                                                        OutputType.OUTPUT, SQL))
            log_text += f" | Result: {len(query_result.rows)} row(s)."
        else:
            info = describe_write_result(query_result.rows_affected, query_result.inserted_id)
            result.output_lines.append(make_output_line(info, OutputType.INFO, SQL, statement_ts, 0))
            log_text += f" | Info: {info}"
        result.log_entries.append(make_log_entry(log_text, Severity.INFO, 0, statement_ts))

    result.log_entries.append(make_log_entry(f"Finished executing SQL script: {filename}", Severity.INFO, 0))
    result.variables_changed = True
    return result
