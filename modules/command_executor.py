# --- API DOCUMENTATION for modules/command_executor.py ---
#
# **Purpose:** Runs one already-classified command and returns the effects
# descriptor for the ShellEngine to apply.
#
# **Public Functions:**
#
# async def execute_command(context: DispatchContext, category: str, command: str) -> ExecutionResult:
#     """
#     - The first output line is always the echoed command (type 'command').
#     - `name = value` in 'internal' or 'python' stores a variable
#       (requires 'manage_variables'); no output lines on success.
#     - Other internal commands go to the internal dispatcher.
#     - 'sql' requires 'execute_sql_select' for SELECT, otherwise 'execute_sql_modify'.
#     - Other categories go to their simulator.
#     - Any unexpected exception becomes 'Error: <message>' plus an E entry.
#     """
#
# def required_permission_for(category: str, command: str) -> str | None
#
# --- END API DOCUMENTATION ---

# modules/command_executor.py

import logging
from typing import Optional

from modules.cancellation import OperationCancelled
from modules.dispatch_context import DispatchContext
from modules.internal_dispatcher import dispatch_internal_command
from modules.permissions import has_permission
from modules.session_log import Severity, make_log_entry
from modules.shell_types import (
    Category, ExecutionResult, HandlerResult, OutputType, cancelled_result, error_result,
    make_output_line, merge_handler_result,
)
from modules.simulators import SIMULATORS
from modules.store import StoreError
from modules.variables import infer_variable_type, parse_assignment, store_variable

logger = logging.getLogger(__name__)

MANAGE_VARIABLES_PERMISSION = "manage_variables"
SQL_SELECT_PERMISSION = "execute_sql_select"
SQL_MODIFY_PERMISSION = "execute_sql_modify"

_ASSIGNMENT_CATEGORIES = (Category.INTERNAL.value, Category.PYTHON.value)


def required_permission_for(category: str, command: str) -> Optional[str]:
    """The permission the executor itself enforces for a category-level action, if any."""
    if category in _ASSIGNMENT_CATEGORIES and parse_assignment(command):
        return MANAGE_VARIABLES_PERMISSION
    if category == Category.SQL.value:
        return SQL_SELECT_PERMISSION if command.lstrip().upper().startswith("SELECT") else SQL_MODIFY_PERMISSION
    return None


def _assign_variable(context: DispatchContext, category: str, command: str) -> HandlerResult:
    name, literal = parse_assignment(command)
    python_mode = category == Category.PYTHON.value
    label = "Python" if python_mode else "internal"
    datatype, value = infer_variable_type(literal, python_mode=python_mode)

    try:
        store_variable(context.store, name, value, datatype)
    except StoreError as e:
        message = f"Error storing {label} variable '{name}': {e}"
        logger.error(message, exc_info=True)
        return error_result(message, category, context.timestamp)

    return HandlerResult(
        log_entries=[make_log_entry(
            f"Stored/Updated {label} variable '{name}' with type '{datatype}' and value: {value}",
            Severity.INFO, 0, context.timestamp)],
        variables_changed=True,
    )


def _permission_denied(context: DispatchContext, category: str, required: str) -> HandlerResult:
    message = f"Permission denied: Requires '{required}' permission."
    logger.warning(f"{message} (User: {context.user_id}, category: {category})")
    return error_result(message, category, context.timestamp, flag=1,
                        log_text=f"{message} (User: {context.user_id})")


async def execute_command(context: DispatchContext, category: str, command: str) -> ExecutionResult:
    command = command.strip()
    command_line = make_output_line(command, OutputType.COMMAND, category, context.timestamp)
    logger.info(f"Executing [{category}] command: {command} (User: {context.user_id})")

    required = None
    try:
        required = required_permission_for(category, command)
        if not has_permission(context.user_permissions, required, context.override_all):
            return merge_handler_result(context.log, _permission_denied(context, category, required),
                                        leading_lines=[command_line])

        if category in _ASSIGNMENT_CATEGORIES and parse_assignment(command):
            result = _assign_variable(context, category, command)
        elif category == Category.INTERNAL.value:
            dispatched = await dispatch_internal_command(context, command)
            dispatched.output_lines = [command_line] + dispatched.output_lines
            return dispatched
        elif category in SIMULATORS:
            result = await SIMULATORS[category](context, command)
        else:
            message = f"Error: Command execution logic not implemented for category '{category}'."
            result = error_result(message, Category.INTERNAL.value, context.timestamp)
    except OperationCancelled:
        logger.info(f"Command cancelled: {command}")
        result = cancelled_result(command, category, context.timestamp)
    except Exception as e:
        logger.error(f"Unhandled error during command execution: {e}", exc_info=True)
        result = error_result(f"Error: {e}", Category.INTERNAL.value, context.timestamp)

    if required and required not in context.user_permissions:
        result.log_entries.insert(0, make_log_entry(
            f"Permission check bypassed by override for '{category}' command (User: {context.user_id})",
            Severity.WARNING, 1, context.timestamp))
    return merge_handler_result(context.log, result, leading_lines=[command_line])
