# --- API DOCUMENTATION for modules/builtin_commands.py ---
#
# **Purpose:** One async handler per built-in internal command. Handlers
# parse their own arguments and describe their effects in a HandlerResult;
# they never check permissions (the dispatcher has already done so) and never
# mutate session state.
#
# **Handler signature:**
#
# async def handle_x(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult
#
# **Key Global Constants/Variables:**
# - BUILTIN_HANDLERS: dict mapping built-in name -> handler.
# - AI_TOOLS_TABLE_SQL / RBAC_SCHEMA_SQL: schema created by `add ai_tool` and `init db`.
#
# --- END API DOCUMENTATION ---

# modules/builtin_commands.py

import os
import re
import logging
from typing import Dict, List

from modules.command_definitions import (
    INTERNAL_COMMAND_DEFINITIONS, LIMITED_HELP_COMMANDS, is_builtin_name, verb_heads,
)
from modules.category_manager import CATEGORY_DESCRIPTIONS
from modules.dispatch_context import DispatchContext, ParsedCommand
from modules.formatting import format_results_as_table
from modules.permissions import OVERRIDE_ALL_PERMISSION, has_permission, is_override_active
from modules.session_log import (
    NO_LOG_ENTRIES_MESSAGE, Severity, export_log_to_csv, log_requirements_csv, make_log_entry,
)
from modules.shell_types import (
    ALL_CATEGORIES, Category, CustomCommand, HandlerResult, OutputType, make_output_line,
)
from modules.store import StoreError
from modules.variables import (
    DATATYPE_BOOLEAN, DATATYPE_INTEGER, DATATYPE_REAL, DATATYPE_STRING,
    ensure_variables_table, get_variable, list_variables, store_variable,
)

logger = logging.getLogger(__name__)

INTERNAL = Category.INTERNAL.value

ADD_INT_CMD_PATTERN = re.compile(r'^add_int_cmd\s+(\S+)\s+(\S+)\s+"([^"]+)"\s+(.+)$', re.IGNORECASE)
ADD_AI_TOOL_PATTERN = re.compile(r'^(\S+)\s+"([^"]+)"\s+"([^"]+)"$')
DB_FILENAME_PATTERN = re.compile(r'^[a-zA-Z0-9_.-]+\.db$')
VARIABLE_PLACEHOLDER_PATTERN = re.compile(r'\{([a-zA-Z_]\w*)\}')

AI_ANSWER_VARIABLE = "ai_answer"
CLIPBOARD_PLACEHOLDER_MESSAGE = ("Clipboard variable placeholder created. Assign with `clipboard = get()` "
                                 "command (requires clipboard access).")

DEFAULT_INIT_VARIABLES = (
    ("max_iterations", "100", DATATYPE_INTEGER),
    ("learning_rate", "0.01", DATATYPE_REAL),
    ("model_name", "default_model", DATATYPE_STRING),
    ("is_training_enabled", "True", DATATYPE_BOOLEAN),
)

AI_TOOLS_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS ai_tools (
        name VARCHAR(255) NOT NULL PRIMARY KEY,
        description TEXT,
        args_description TEXT,
        isactive INTEGER NOT NULL DEFAULT 1
    )
"""

UPSERT_AI_TOOL_SQL = """
    INSERT INTO ai_tools (name, description, args_description)
    VALUES (?, ?, ?)
    ON CONFLICT(name) DO UPDATE SET
        description = excluded.description,
        args_description = excluded.args_description
"""

RBAC_SCHEMA_SQL = (
    """CREATE TABLE IF NOT EXISTS users (
        user_id INTEGER PRIMARY KEY AUTOINCREMENT,
        username VARCHAR(50) NOT NULL UNIQUE
    )""",
    """CREATE TABLE IF NOT EXISTS roles (
        role_id INTEGER PRIMARY KEY AUTOINCREMENT,
        role_name VARCHAR(50) NOT NULL UNIQUE
    )""",
    """CREATE TABLE IF NOT EXISTS permissions (
        permission_id INTEGER PRIMARY KEY AUTOINCREMENT,
        permission_name VARCHAR(100) NOT NULL UNIQUE
    )""",
    """CREATE TABLE IF NOT EXISTS user_roles (
        user_id INTEGER NOT NULL REFERENCES users(user_id),
        role_id INTEGER NOT NULL REFERENCES roles(role_id),
        PRIMARY KEY (user_id, role_id)
    )""",
    """CREATE TABLE IF NOT EXISTS role_permissions (
        role_id INTEGER NOT NULL REFERENCES roles(role_id),
        permission_id INTEGER NOT NULL REFERENCES permissions(permission_id),
        PRIMARY KEY (role_id, permission_id)
    )""",
    """CREATE TABLE IF NOT EXISTS command_metadata (
        command_name VARCHAR(100) NOT NULL PRIMARY KEY,
        description TEXT,
        args_format TEXT,
        example_usage TEXT,
        required_permission VARCHAR(100)
    )""",
    """CREATE TABLE IF NOT EXISTS command_input_arguments (
        command_name VARCHAR(100) NOT NULL REFERENCES command_metadata(command_name),
        argument_name VARCHAR(100) NOT NULL,
        description TEXT,
        is_optional INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (command_name, argument_name)
    )""",
)

SEED_USERS = ((1, "admin"), (2, "guest"))
SEED_ROLES = ("administrator", "viewer")
SEED_USER_ROLES = ((1, "administrator"), (2, "viewer"))
VIEWER_PERMISSIONS = ("read_variables", "view_history", "execute_sql_select")
EXTRA_PERMISSIONS = ("execute_python_code", "execute_sql_select", OVERRIDE_ALL_PERMISSION)


# --- Result helpers ---

def _lines_result(context: DispatchContext, lines, log_text: str, severity=Severity.INFO, flag: int = 0,
                  **effects) -> HandlerResult:
    return HandlerResult(
        output_lines=list(lines),
        log_entries=[make_log_entry(f"{log_text} (User: {context.user_id})", severity, flag, context.timestamp)],
        **effects,
    )


def _single(context: DispatchContext, text: str, line_type=OutputType.INFO, severity=Severity.INFO,
            flag: int = 0, log_text: str = None, **effects) -> HandlerResult:
    line = make_output_line(text, line_type, INTERNAL, context.timestamp, flag)
    return _lines_result(context, [line], log_text or text, severity, flag, **effects)


def _syntax_error(context: DispatchContext, usage: str) -> HandlerResult:
    return _single(context, f"Error: Invalid syntax. Use: {usage}", OutputType.ERROR, Severity.ERROR, 1)


def _data_dir(context: DispatchContext) -> str:
    return context.setting("storage.data_dir", "data")


# --- help / mode / clear / history / placeholders ---

def _format_definition(definition, prefix: str = "\n\n") -> str:
    text = f"{prefix}**{definition.name}**"
    if definition.args_format:
        text += f" {definition.args_format}"
    text += f"\n  *Description*: {definition.description}"
    if definition.args_details:
        text += "\n  *Arguments*:"
        for arg in definition.args_details:
            optional = " (optional)" if arg.optional else ""
            text += f"\n    - `{arg.name}`{optional}: {arg.description}"
    if definition.example_usage:
        text += f"\n  *Example*: `{definition.example_usage}`"
    return text


def _visible_definitions(context: DispatchContext, db_initialized: bool):
    definitions = INTERNAL_COMMAND_DEFINITIONS
    if not db_initialized and not context.override_all:
        definitions = [d for d in definitions if d.name in LIMITED_HELP_COMMANDS]
    return [d for d in definitions
            if has_permission(context.user_permissions, d.required_permission, context.override_all)]


def _suggestion_visible(context: DispatchContext, category: str) -> bool:
    if is_override_active(context.user_permissions, context.override_all):
        return True
    if category == Category.SQL.value:
        return bool({"execute_sql_select", "execute_sql_modify"} & context.user_permissions)
    if category == Category.PYTHON.value:
        return "execute_python_code" in context.user_permissions
    return True


async def handle_help(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    db_initialized = context.store.is_initialized()
    limited = not db_initialized and not context.override_all

    if parsed.args:
        requested = parsed.args[0].lower()
        if requested not in ALL_CATEGORIES:
            message = (f"Error: Unknown command category '{parsed.args[0]}'. "
                       f"Available categories: {', '.join(ALL_CATEGORIES)}.")
            return _single(context, message, OutputType.ERROR, Severity.ERROR, 1,
                           log_text=f"Help requested for invalid category: {parsed.args[0]}.")

        help_text = f"--- Help for Category: {requested.upper()} ---"
        log_text = f"Displayed help for category: {requested}."
        if requested == INTERNAL:
            if limited:
                help_text += ("\n\n**Note:** Database not fully initialized. Some internal commands "
                              "may be unavailable. Run 'init_db'.")
                log_text += " (Database not initialized - showing limited internal commands)."
            for definition in _visible_definitions(context, db_initialized):
                help_text += _format_definition(definition)
            for custom in context.custom_commands.values():
                help_text += f"\n\n**{custom.name}** (custom)\n  *Description*: {custom.description}"
        else:
            suggestions = context.suggestions.get(requested, [])
            if not suggestions:
                help_text += f"\nNo commands or suggestions found for category '{requested}'."
            elif not _suggestion_visible(context, requested):
                help_text += (f"\nNo commands/suggestions available for category '{requested}' "
                              f"with current permissions, or category is empty.")
            else:
                help_text += "".join(f"\n- {s}" for s in suggestions)
        line = make_output_line(help_text, OutputType.OUTPUT, INTERNAL, flag=0)
        return _lines_result(context, [line], log_text)

    help_text = ("Command category is automatically detected.\n"
                 "@bat:<filename><.bat/.sh/.sim>(experimental).\n"
                 f"Available categories: {', '.join(ALL_CATEGORIES)}.\n"
                 "Type 'help <category_name>' for category-specific commands.\n\n"
                 "--- Command Suggestions by Category ---")
    log_text = "Displayed general help."
    if limited:
        help_text += "\n\n**Note:** Database not fully initialized. Some commands may be unavailable. Run 'init_db'."
        log_text += " (Database not initialized - showing limited help)"

    help_text += "\n\n**Internal**"
    for definition in _visible_definitions(context, db_initialized):
        help_text += _format_definition(definition, prefix="\n- ")

    for category in ALL_CATEGORIES:
        if category == INTERNAL:
            continue
        suggestions = context.suggestions.get(category, [])
        if suggestions and _suggestion_visible(context, category):
            help_text += f"\n\n**{category.capitalize()}**" + "".join(f"\n- {s}" for s in suggestions)

    help_text += "\n\nNote: Variable assignments in 'internal' or 'python' mode use `var_name = value`."
    line = make_output_line(help_text, OutputType.OUTPUT, INTERNAL, flag=0)
    return _lines_result(context, [line], log_text)


async def handle_mode(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    if not parsed.args:
        lines = [make_output_line(
            f"Command category is automatically detected. Available categories: {', '.join(ALL_CATEGORIES)}. "
            f"Use 'help' for more info.", OutputType.INFO, INTERNAL)]
        lines.extend(make_output_line(f"  {name}: {CATEGORY_DESCRIPTIONS[name]}", OutputType.OUTPUT, INTERNAL)
                     for name in ALL_CATEGORIES)
        return _lines_result(context, lines, "Displayed mode information.")

    requested = parsed.args[0].lower()
    if requested in ALL_CATEGORIES:
        text = (f"Info: You requested mode '{requested}'. Command category is automatically detected. "
                f"{requested}: {CATEGORY_DESCRIPTIONS[requested]}")
        return _single(context, text, OutputType.INFO, log_text=f"Displayed mode information for '{requested}'.")

    text = (f"Info: '{parsed.args[0]}' is not a recognized category. Categories are automatically detected. "
            f"Valid categories: {', '.join(ALL_CATEGORIES)}")
    return _single(context, text, OutputType.ERROR, Severity.WARNING,
                   log_text=f"Mode requested for unrecognized category: {parsed.args[0]}.")


async def handle_clear(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    return _lines_result(context, [], "Cleared output display.", clear_screen=True)


async def handle_history(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    return _single(context, "History command placeholder (fetch from SQLite).", OutputType.INFO,
                   log_text="Displayed history placeholder.")


def _not_implemented(context: DispatchContext, parsed: ParsedCommand, label: str) -> HandlerResult:
    message = f"{label} command not yet implemented."
    return _single(context, message, OutputType.WARNING, Severity.WARNING,
                   log_text=f"{message} Args: {parsed.arg_text}")


async def handle_define(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    return _not_implemented(context, parsed, "Define")


async def handle_refine(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    return _not_implemented(context, parsed, "Refine")


async def handle_pause(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    return _single(context, "'pause' command acknowledged server-side (actual stop is client-side).",
                   OutputType.INFO)


# --- custom commands and AI tools ---

def _strip_surrounding_quotes(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ('"', "'"):
        return text[1:-1]
    return text


async def handle_add_int_cmd(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    match = ADD_INT_CMD_PATTERN.match(parsed.raw)
    if not match:
        return _syntax_error(context, 'add_int_cmd <short> <name> "<description>" <whatToDo>')

    short, name, description, action = match.groups()
    action = _strip_surrounding_quotes(action)
    lowered = name.lower()

    if is_builtin_name(lowered) or lowered in verb_heads():
        message = f'Error: Cannot redefine built-in command "{name}".'
        logger.warning(f"Rejected custom command shadowing a built-in: {name}")
        return _single(context, message, OutputType.ERROR, Severity.ERROR)

    registry: Dict[str, CustomCommand] = dict(context.custom_commands)
    registry[lowered] = CustomCommand(name=name, short=short, description=description, action=action)
    message = f'Added internal command: "{name}" (short: {short}). Desc: "{description}". Action: "{action}".'
    logger.info(message)
    return _single(context, message, OutputType.INFO,
                   new_custom_commands=registry, new_suggestions=[(INTERNAL, name)])


async def handle_add_ai_tool(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    match = ADD_AI_TOOL_PATTERN.match(parsed.arg_text)
    if not match:
        return _syntax_error(context, 'add ai_tool <toolname> "<args_description>" "<description>"')

    tool_name, args_description, description = match.groups()
    try:
        context.store.execute(AI_TOOLS_TABLE_SQL)
        context.store.execute(UPSERT_AI_TOOL_SQL, (tool_name, description, args_description))
    except StoreError as e:
        logger.error(f"Error storing AI tool metadata for '{tool_name}': {e}", exc_info=True)
        return _single(context, f"Error storing AI tool metadata: {e}", OutputType.ERROR, Severity.ERROR)

    message = (f'AI tool metadata stored/updated for: "{tool_name}". Args Description: "{args_description}", '
               f'Description: "{description}". Tool is active by default or retains previous status.')
    return _single(context, message, OutputType.INFO)


async def handle_set_ai_tool(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    args = parsed.args
    if len(args) != 3 or args[1].lower() != "active" or args[2] not in ("0", "1"):
        return _syntax_error(context, "set ai_tool <name> active <0|1>")

    tool_name, is_active = args[0], int(args[2])
    try:
        result = context.store.execute("UPDATE ai_tools SET isactive = ? WHERE name = ?", (is_active, tool_name))
    except StoreError as e:
        logger.error(f"Error updating AI tool status for '{tool_name}': {e}", exc_info=True)
        return _single(context, f"Error updating AI tool status: {e}", OutputType.ERROR, Severity.ERROR)

    if not result.rows_affected:
        return _single(context, f"Error: AI tool '{tool_name}' not found.", OutputType.ERROR, Severity.WARNING)
    state = "active" if is_active == 1 else "inactive"
    return _single(context, f"AI tool '{tool_name}' set to {state}.", OutputType.INFO)


async def handle_set_sim_mode(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    if len(parsed.args) != 1 or parsed.args[0] not in ("0", "1"):
        return _syntax_error(context, "set sim_mode <0|1>")
    mode = parsed.args[0]
    try:
        store_variable(context.store, "sim_mode", mode, DATATYPE_INTEGER)
    except StoreError as e:
        logger.error(f"Error storing sim_mode: {e}", exc_info=True)
        return _single(context, f"Error setting simulation mode: {e}", OutputType.ERROR, Severity.ERROR)
    return _single(context, f"Simulation mode set to {mode}.", OutputType.INFO, variables_changed=True)


# --- roles ---

async def handle_add_role(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    if len(parsed.args) != 1:
        return _syntax_error(context, "add_role <role_name>")
    role_name = parsed.args[0]
    try:
        result = context.store.execute("INSERT OR IGNORE INTO roles (role_name) VALUES (?)", (role_name,))
    except StoreError as e:
        logger.error(f"Error adding role '{role_name}': {e}", exc_info=True)
        return _single(context, f"Error adding role: {e}", OutputType.ERROR, Severity.ERROR)

    if not result.rows_affected:
        return _single(context, f"Role '{role_name}' already exists.", OutputType.WARNING, Severity.WARNING)
    return _single(context, f"Role '{role_name}' added successfully with ID {result.inserted_id}.", OutputType.INFO)


# --- log and database export ---

async def handle_export_log(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    csv_text = export_log_to_csv(context.log)
    if csv_text is None:
        return _single(context, NO_LOG_ENTRIES_MESSAGE, OutputType.INFO)
    return _single(context, f"Session log prepared for export ({len(context.log)} entries).", OutputType.INFO,
                   log_csv=csv_text)


async def handle_show_requirements(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    line = make_output_line(log_requirements_csv(), OutputType.OUTPUT, INTERNAL)
    return _lines_result(context, [line], "Displayed log entry requirements.")


def _persist(context: DispatchContext, filename: str, success_message: str, failure_prefix: str) -> HandlerResult:
    path = os.path.join(_data_dir(context), filename)
    try:
        context.store.persist_to(path)
    except StoreError as e:
        return _single(context, f"{failure_prefix}: {e}", OutputType.ERROR, Severity.ERROR, 1)
    return _single(context, f"{success_message}{path}", OutputType.INFO)


async def handle_export_db(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    filename = context.setting("storage.export_filename", "simshell_export.db")
    return _persist(context, filename, "Database successfully exported to: ",
                    f"Error exporting database to {filename}")


async def handle_persist_memory_db_to(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    if len(parsed.args) > 1:
        return _syntax_error(context, "persist memory db to <filename.db>")
    filename = parsed.args[0] if parsed.args else context.setting("storage.default_persist_filename", "sim_shell.db")
    if not DB_FILENAME_PATTERN.match(filename) or ".." in filename:
        message = (f"Error: Invalid filename '{filename}'. Use letters, digits, '_', '.', '-' "
                   f"and the .db extension (no '..').")
        return _single(context, message, OutputType.ERROR, Severity.ERROR, 1)
    return _persist(context, filename, "Successfully persisted in-memory database to file: ",
                    "Error persisting database")


async def handle_create_sqlite(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    if parsed.args:
        logger.debug(f"create sqlite: ignoring filename argument {parsed.args[0]}")
    return _single(context, "Internal SQLite in-memory database is ready.", OutputType.INFO)


# --- initialization ---

async def handle_init(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    if parsed.args:
        return _syntax_error(context, "init")
    user = f"(User: {context.user_id})"
    lines, entries = [], []
    overall_success = True

    try:
        ensure_variables_table(context.store)
    except StoreError as e:
        logger.error(f"Initialization failed: {e}", exc_info=True)
        message = f"Initialization failed: {e}"
        return HandlerResult(
            output_lines=[make_output_line(message, OutputType.ERROR, INTERNAL, context.timestamp)],
            log_entries=[
                make_log_entry(f"{message} {user}", Severity.ERROR, 0, context.timestamp),
                make_log_entry(f"Overall Initialization Status: Failed with errors. {message} {user}",
                               Severity.ERROR, 0, context.timestamp),
            ],
        )

    db_message = "Database initialized successfully. 'variables' table ensured."
    entries.append(make_log_entry(f"{db_message} {user}", Severity.INFO, 0, context.timestamp))
    lines.append(make_output_line(db_message, OutputType.INFO, INTERNAL, context.timestamp))

    added, errors = 0, []
    for name, value, datatype in DEFAULT_INIT_VARIABLES:
        try:
            store_variable(context.store, name, value, datatype)
            added += 1
        except StoreError as e:
            message = f"Error storing default variable '{name}': {e}"
            logger.error(message)
            entries.append(make_log_entry(f"{message} {user}", Severity.ERROR, 0, context.timestamp))
            errors.append(message)
            overall_success = False

    entries.append(make_log_entry(f"{CLIPBOARD_PLACEHOLDER_MESSAGE} {user}", Severity.INFO, 0, context.timestamp))

    vars_message = f"Initialized {added} default Python variable(s)."
    entries.append(make_log_entry(f"{vars_message} {user}", Severity.INFO, 0, context.timestamp))
    lines.append(make_output_line(vars_message, OutputType.INFO, INTERNAL, context.timestamp))
    if errors:
        lines.append(make_output_line("Errors encountered during variable initialization:\n" + "\n".join(errors),
                                      OutputType.ERROR, INTERNAL, context.timestamp))

    final_message = f"Initialization complete. {db_message} {vars_message} {CLIPBOARD_PLACEHOLDER_MESSAGE}"
    if not overall_success:
        final_message += " Some errors occurred during variable initialization."
    status = "Success" if overall_success else "Failed with errors"
    entries.append(make_log_entry(f"Overall Initialization Status: {status}. {final_message} {user}",
                                  Severity.INFO if overall_success else Severity.ERROR, 0, context.timestamp))
    return HandlerResult(output_lines=lines, log_entries=entries, variables_changed=added > 0)


def _seed_permissions() -> List[str]:
    names = {d.required_permission for d in INTERNAL_COMMAND_DEFINITIONS if d.required_permission}
    names.update(EXTRA_PERMISSIONS)
    return sorted(names)


def _seed_rbac(store):
    for user_id, username in SEED_USERS:
        store.execute("INSERT OR IGNORE INTO users (user_id, username) VALUES (?, ?)", (user_id, username))
    for role_name in SEED_ROLES:
        store.execute("INSERT OR IGNORE INTO roles (role_name) VALUES (?)", (role_name,))
    for permission_name in _seed_permissions():
        store.execute("INSERT OR IGNORE INTO permissions (permission_name) VALUES (?)", (permission_name,))

    for user_id, role_name in SEED_USER_ROLES:
        store.execute(
            "INSERT OR IGNORE INTO user_roles (user_id, role_id) SELECT ?, role_id FROM roles WHERE role_name = ?",
            (user_id, role_name))

    store.execute(
        """INSERT OR IGNORE INTO role_permissions (role_id, permission_id)
           SELECT r.role_id, p.permission_id FROM roles r, permissions p
           WHERE r.role_name = 'administrator' AND p.permission_name != ?""",
        (OVERRIDE_ALL_PERMISSION,))
    placeholders = ", ".join("?" for _ in VIEWER_PERMISSIONS)
    store.execute(
        f"""INSERT OR IGNORE INTO role_permissions (role_id, permission_id)
            SELECT r.role_id, p.permission_id FROM roles r, permissions p
            WHERE r.role_name = 'viewer' AND p.permission_name IN ({placeholders})""",
        VIEWER_PERMISSIONS)


def _seed_command_metadata(store):
    for definition in INTERNAL_COMMAND_DEFINITIONS:
        store.execute(
            """INSERT OR IGNORE INTO command_metadata
               (command_name, description, args_format, example_usage, required_permission)
               VALUES (?, ?, ?, ?, ?)""",
            (definition.name, definition.description, definition.args_format,
             definition.example_usage, definition.required_permission))
        for arg in definition.args_details:
            store.execute(
                """INSERT OR IGNORE INTO command_input_arguments
                   (command_name, argument_name, description, is_optional) VALUES (?, ?, ?, ?)""",
                (definition.name, arg.name, arg.description, 1 if arg.optional else 0))


def initialize_database(store):
    """Creates every table `init db` owns and seeds the sample RBAC data. Safe to repeat."""
    ensure_variables_table(store)
    store.execute(AI_TOOLS_TABLE_SQL)
    for statement in RBAC_SCHEMA_SQL:
        store.execute(statement)
    _seed_rbac(store)
    _seed_command_metadata(store)


async def handle_init_db(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    if parsed.args:
        return _syntax_error(context, "init db")
    try:
        initialize_database(context.store)
    except StoreError as e:
        logger.error(f"Error initializing database: {e}", exc_info=True)
        return _single(context, f"Error initializing database: {e}", OutputType.ERROR, Severity.ERROR, 1)

    logger.info("Database schema ensured and RBAC sample data seeded.")
    message = ("Database initialized successfully. Tables ensured: variables, ai_tools, users, roles, "
               "permissions, user_roles, role_permissions, command_metadata, command_input_arguments. "
               "Sample RBAC data seeded.")
    return _single(context, message, OutputType.INFO, variables_changed=True)


# --- variables and AI ---

async def handle_list_py_vars(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    try:
        variables = list_variables(context.store)
    except StoreError as e:
        logger.error(f"Error retrieving variables: {e}", exc_info=True)
        return _single(context, f"Error retrieving variables: {e}", OutputType.ERROR, Severity.ERROR)

    if not variables:
        return _single(context, "No variables found in the database.", OutputType.INFO)
    rows = [{"name": v.name, "datatype": v.datatype, "value": v.value} for v in variables]
    line = make_output_line(format_results_as_table(rows), OutputType.OUTPUT, INTERNAL)
    return _lines_result(context, [line], f"Listed {len(rows)} variable(s).")


def _substitute_variables(context: DispatchContext, text: str):
    """Replaces {name} placeholders with stored values. Returns (text, warning log entries)."""
    warnings = []

    def replace(match):
        name = match.group(1)
        variable = get_variable(context.store, name)
        if variable is None:
            warnings.append(make_log_entry(
                f"Variable '{{{name}}}' not found during AI command processing. (User: {context.user_id})",
                Severity.WARNING, 0, context.timestamp))
            return f"<variable '{name}' not found>"
        return "" if variable.value is None else str(variable.value)

    return VARIABLE_PLACEHOLDER_PATTERN.sub(replace, text), warnings


def _active_tools_context(context: DispatchContext) -> str:
    if not context.store.table_exists("ai_tools"):
        return ""
    result = context.store.execute(
        "SELECT name, description, args_description FROM ai_tools WHERE isactive = 1 ORDER BY name")
    return "\n".join(
        f"[Tool: @{row['name']}, Args: {row['args_description']}, Does: {row['description']}]"
        for row in result.rows or []
    )


async def handle_ai(context: DispatchContext, parsed: ParsedCommand) -> HandlerResult:
    if not parsed.arg_text:
        return _single(context, 'Error: No input text provided for the "ai" command. Usage: ai <inputtext>',
                       OutputType.ERROR, Severity.ERROR, 1)

    try:
        input_text, warnings = _substitute_variables(context, parsed.arg_text)
        tool_context = _active_tools_context(context)
        if context.text_generator is None:
            raise RuntimeError("AI text generation is not configured.")
        answer = await context.text_generator(input_text, tool_context)
    except Exception as e:
        logger.error(f"Error processing AI command: {e}", exc_info=True)
        return _single(context, f"Error processing AI command: {e}", OutputType.ERROR, Severity.ERROR)

    entries = list(warnings)
    try:
        store_variable(context.store, AI_ANSWER_VARIABLE, answer, DATATYPE_STRING)
    except StoreError as e:
        message = f"AI generated a response, but failed to store it in variable '{AI_ANSWER_VARIABLE}': {e}"
        logger.error(message)
        entries.append(make_log_entry(f"{message} (User: {context.user_id})", Severity.ERROR, 0, context.timestamp))
        return HandlerResult(
            output_lines=[
                make_output_line(message, OutputType.ERROR, INTERNAL, context.timestamp),
                make_output_line(f"AI Answer (generated but not stored): {answer}", OutputType.OUTPUT, INTERNAL),
            ],
            log_entries=entries,
        )

    stored_message = f"AI response stored successfully in variable '{AI_ANSWER_VARIABLE}'."
    entries.append(make_log_entry(f'AI command processed. Input: "{input_text}". {stored_message} '
                                  f'(User: {context.user_id})', Severity.INFO, 0, context.timestamp))
    return HandlerResult(
        output_lines=[
            make_output_line(stored_message, OutputType.INFO, INTERNAL, context.timestamp),
            make_output_line(f"AI Answer: {answer}", OutputType.OUTPUT, INTERNAL),
        ],
        log_entries=entries,
        variables_changed=True,
    )


BUILTIN_HANDLERS = {
    "help": handle_help,
    "clear": handle_clear,
    "mode": handle_mode,
    "history": handle_history,
    "define": handle_define,
    "refine": handle_refine,
    "add_int_cmd": handle_add_int_cmd,
    "add_ai_tool": handle_add_ai_tool,
    "add_role": handle_add_role,
    "set_ai_tool": handle_set_ai_tool,
    "set_sim_mode": handle_set_sim_mode,
    "export_log": handle_export_log,
    "export_db": handle_export_db,
    "pause": handle_pause,
    "create_sqlite": handle_create_sqlite,
    "init": handle_init,
    "init_db": handle_init_db,
    "list_py_vars": handle_list_py_vars,
    "show_requirements": handle_show_requirements,
    "persist_memory_db_to": handle_persist_memory_db_to,
    "ai": handle_ai,
}
