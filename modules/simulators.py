# --- API DOCUMENTATION for modules/simulators.py ---
#
# **Purpose:** Simulated executors for the non-internal categories. Nothing
# here runs real Python, shell or spreadsheet code; each simulator pattern
# matches a few well-known forms and answers everything else with a
# placeholder. SQL is the exception: it runs against the session store.
#
# **Public Functions:**
#
# async def simulate_python(context, command) -> HandlerResult
# async def simulate_unix(context, command) -> HandlerResult
# async def simulate_windows(context, command) -> HandlerResult
# async def simulate_sql(context, command) -> HandlerResult
# async def simulate_excel(context, command) -> HandlerResult
# async def simulate_typescript(context, command) -> HandlerResult
#
# Every simulator waits a random, configurable delay first (see
# `simulation.delays_ms`); a cancelled token raises OperationCancelled, which
# the command executor turns into an 'Operation cancelled' warning.
#
# **Key Global Constants/Variables:**
# - SIMULATORS: dict mapping category name -> simulator.
#
# --- END API DOCUMENTATION ---

# modules/simulators.py

import re
import logging

from modules.cancellation import simulated_delay
from modules.dispatch_context import DispatchContext
from modules.formatting import format_results_as_table
from modules.session_log import Severity, make_log_entry
from modules.shell_types import Category, HandlerResult, OutputType, make_output_line
from modules.store import StoreError

logger = logging.getLogger(__name__)

PRINT_PATTERN = re.compile(r'print\(([\'"]?)(.*?)\1\)')
EXCEL_SUM_PATTERN = re.compile(r'sum\(([\d\s,.]+)\)', re.IGNORECASE)
CONSOLE_LOG_PATTERN = re.compile(r'console\.log\(([\'"`]?)(.*?)\1\)\s*;?\s*$')

UNIX_LS_OUTPUT = "file1.txt  directoryA  script.sh"
WINDOWS_DIR_OUTPUT = (
    " Volume in drive C has no label.\n"
    " Volume Serial Number is XXXX-YYYY\n\n"
    " Directory of C:\\Users\\User\n\n"
    "file1.txt\n"
    "<DIR>          directoryA\n"
    "script.bat\n"
    "               3 File(s) ... bytes\n"
    "               1 Dir(s)  ... bytes free"
)

# Per-category (min_ms, max_ms) used when the configuration has no entry
DEFAULT_DELAYS_MS = {
    Category.PYTHON.value: (100, 600),
    Category.UNIX.value: (100, 900),
    Category.WINDOWS.value: (150, 1050),
    Category.SQL.value: (50, 250),
    Category.EXCEL.value: (100, 600),
    Category.TYPESCRIPT.value: (100, 600),
}


async def _wait(context: DispatchContext, category: str):
    low, high = context.delay_range(category, DEFAULT_DELAYS_MS[category])
    await simulated_delay(low, high, context.cancel_token)


def _result(context: DispatchContext, category: str, text: str, log_text: str,
            line_type=OutputType.OUTPUT, severity=Severity.INFO) -> HandlerResult:
    # Plain output lines carry no timestamp so they render without a status prefix
    timestamp = None if line_type == OutputType.OUTPUT else context.timestamp
    return HandlerResult(
        output_lines=[make_output_line(text, line_type, category, timestamp, 0)],
        log_entries=[make_log_entry(log_text, severity, 0, context.timestamp)],
    )


def _echo_argument(command: str):
    if command.lower().startswith("echo "):
        return command[5:]
    return None


async def simulate_python(context: DispatchContext, command: str) -> HandlerResult:
    category = Category.PYTHON.value
    if command.lower().startswith("print("):
        match = PRINT_PATTERN.search(command)
        if not match:
            return _result(context, category, "Syntax Error in print", "Python print: Syntax Error in print",
                           OutputType.ERROR, Severity.ERROR)
        return _result(context, category, match.group(2), f"Python print: {match.group(2)}")

    await _wait(context, category)
    text = f"Simulating Python: {command} (output placeholder)"
    return _result(context, category, text, text)


async def simulate_unix(context: DispatchContext, command: str) -> HandlerResult:
    category = Category.UNIX.value
    await _wait(context, category)
    echoed = _echo_argument(command)
    if command.lower() == "ls":
        text = UNIX_LS_OUTPUT
    elif echoed is not None:
        text = echoed
    else:
        text = f"Simulating Unix: {command} (output placeholder)"
    return _result(context, category, text, f"Unix simulation output: {text}")


async def simulate_windows(context: DispatchContext, command: str) -> HandlerResult:
    category = Category.WINDOWS.value
    await _wait(context, category)
    echoed = _echo_argument(command)
    if command.lower() == "dir":
        text = WINDOWS_DIR_OUTPUT
    elif echoed is not None:
        text = echoed
    else:
        text = f"Simulating Windows: {command} (output placeholder)"
    return _result(context, category, text, f"Windows simulation output: {text}")


def describe_write_result(rows_affected, inserted_id) -> str:
    """`Query executed successfully. N row(s) affected.` plus the last inserted id when positive."""
    if rows_affected is None:
        return "Query executed successfully."
    text = f"Query executed successfully. {rows_affected} row{'' if rows_affected == 1 else 's'} affected."
    if inserted_id is not None and inserted_id > 0:
        text += f" Last inserted row ID: {inserted_id}"
    return text


async def simulate_sql(context: DispatchContext, command: str) -> HandlerResult:
    category = Category.SQL.value
    await _wait(context, category)
    try:
        result = context.store.execute(command)
    except StoreError as e:
        logger.warning(f"SQL execution error for '{command}': {e}")
        # StoreError messages already carry the 'SQL Error:' prefix
        return _result(context, category, str(e), str(e), OutputType.ERROR, Severity.ERROR)

    if result.rows is not None:
        table = format_results_as_table(result.rows)
        return _result(context, category, table, f"SQL query result: {table}")
    text = describe_write_result(result.rows_affected, result.inserted_id)
    return _result(context, category, text, text, OutputType.INFO)


def _sum_values(raw: str) -> float:
    """Raises ValueError when any argument is empty or not a number."""
    return sum(float(part.strip()) for part in raw.split(","))


def _format_number(value: float) -> str:
    return str(int(value)) if value.is_integer() else str(value)


async def simulate_excel(context: DispatchContext, command: str) -> HandlerResult:
    category = Category.EXCEL.value
    await _wait(context, category)
    text = f"Simulating Excel: {command} (output placeholder)"
    if not command.lower().startswith("sum("):
        return _result(context, category, text, f"Excel simulation output: {text}")

    match = EXCEL_SUM_PATTERN.search(command)
    if not match:
        return _result(context, category, "#NAME?", "Excel simulation output: #NAME?",
                       OutputType.ERROR, Severity.ERROR)
    try:
        text = _format_number(_sum_values(match.group(1)))
    except (ValueError, OverflowError) as e:
        logger.warning(f"Excel SUM evaluation failed for '{command}': {e}")
        return _result(context, category, "#VALUE!", "Excel simulation output: #VALUE!",
                       OutputType.ERROR, Severity.ERROR)
    return _result(context, category, text, f"Excel simulation output: {text}")


async def simulate_typescript(context: DispatchContext, command: str) -> HandlerResult:
    category = Category.TYPESCRIPT.value
    await _wait(context, category)
    match = CONSOLE_LOG_PATTERN.match(command)
    if match:
        text = match.group(2)
    else:
        text = f"Simulating TypeScript: {command} (output placeholder)"
    return _result(context, category, text, f"TypeScript simulation output: {text}")


SIMULATORS = {
    Category.PYTHON.value: simulate_python,
    Category.UNIX.value: simulate_unix,
    Category.WINDOWS.value: simulate_windows,
    Category.SQL.value: simulate_sql,
    Category.EXCEL.value: simulate_excel,
    Category.TYPESCRIPT.value: simulate_typescript,
}
