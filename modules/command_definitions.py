# --- API DOCUMENTATION for modules/command_definitions.py ---
#
# **Purpose:** Static metadata for every built-in internal command and the
# token grammar used to recognize their verbs.
#
# **Public Classes:**
#
# @dataclass(frozen=True) class ArgumentDetail
# @dataclass(frozen=True) class CommandDefinition
#     """{name, description, args_format, args_details, example_usage, required_permission}"""
# @dataclass(frozen=True) class VerbForm
#     """A built-in name and one accepted spelling as a tuple of literal leading tokens."""
#
# **Public Functions:**
#
# def get_command_definition(name: str) -> CommandDefinition | None
# def match_verb(tokens: list[str]) -> tuple[VerbForm | None, int]
#     """Longest literal-token match against VERB_GRAMMAR. Returns (form, tokens_consumed)."""
# def is_builtin_name(name: str) -> bool
#
# **Key Global Constants/Variables:**
# - INTERNAL_COMMAND_DEFINITIONS: tuple of CommandDefinition, in help order.
# - VERB_GRAMMAR: tuple of VerbForm, every accepted spelling of every built-in.
# - LIMITED_HELP_COMMANDS: commands shown by help before the database is initialized.
#
# --- END API DOCUMENTATION ---

# modules/command_definitions.py

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class ArgumentDetail:
    name: str
    description: str
    optional: bool = False


@dataclass(frozen=True)
class CommandDefinition:
    name: str
    description: str
    args_format: Optional[str] = None
    args_details: Tuple[ArgumentDetail, ...] = ()
    example_usage: Optional[str] = None
    required_permission: Optional[str] = None


@dataclass(frozen=True)
class VerbForm:
    name: str
    tokens: Tuple[str, ...]


BAT_PREFIX = "@bat:"

INTERNAL_COMMAND_DEFINITIONS: Tuple[CommandDefinition, ...] = (
    CommandDefinition(
        name="help",
        description="Displays this help message, listing available command categories and commands. Filters command visibility based on user permissions.",
        args_format="[category_name]",
        args_details=(ArgumentDetail("category_name", "Optional. Show only the commands or suggestions for this category.", optional=True),),
    ),
    CommandDefinition(
        name="clear",
        description="Clears the command output history from the display.",
    ),
    CommandDefinition(
        name="mode",
        description="Informational. Command category is automatically detected. Shows available categories.",
        args_format="[category_name]",
        args_details=(ArgumentDetail("category_name", "Optional. If provided, shows info about that category.", optional=True),),
    ),
    CommandDefinition(
        name="history",
        description="Placeholder command. Intended to show command history (currently only shows in output area).",
        required_permission="view_history",
    ),
    CommandDefinition(
        name="define",
        description="Placeholder command. Intended for defining or describing terms or concepts.",
        args_format="<term_to_define>",
        args_details=(ArgumentDetail("term_to_define", "The term or concept you want a definition for."),),
        required_permission="use_ai_tools",
    ),
    CommandDefinition(
        name="refine",
        description="Placeholder command. Intended for refining or elaborating on a previous topic or AI response.",
        args_format="<text_to_refine>",
        args_details=(ArgumentDetail("text_to_refine", "The text or concept to refine."),),
        required_permission="use_ai_tools",
    ),
    CommandDefinition(
        name="add_int_cmd",
        description="Adds a new custom internal command to the current session. The command can then be executed by its name.",
        args_format='<short_alias> <command_name> "<description>" <action_to_perform>',
        args_details=(
            ArgumentDetail("short_alias", "A short alias or code for the command (currently informational)."),
            ArgumentDetail("command_name", "The name used to invoke the custom command."),
            ArgumentDetail("description", "A brief description of what the custom command does (must be in quotes)."),
            ArgumentDetail("action_to_perform", "The text that will be output when the command is run."),
        ),
        example_usage='add_int_cmd mycmd greet "Greets the user" "Hello from my custom command!"',
        required_permission="manage_ai_tools",
    ),
    CommandDefinition(
        name="add_ai_tool",
        description="Defines a new AI tool that the AI model can potentially use. Stores tool metadata in the database.",
        args_format='<tool_name> "<args_description>" "<tool_description>"',
        args_details=(
            ArgumentDetail("tool_name", 'The unique name for the AI tool (e.g., "getStockPrice").'),
            ArgumentDetail("args_description", 'A description of the arguments the tool expects, enclosed in quotes (e.g., "ticker:string - The stock ticker symbol").'),
            ArgumentDetail("tool_description", "A detailed description of what the tool does, enclosed in quotes."),
        ),
        example_usage='add ai_tool getWeather "<location:string>" "Fetches the current weather for a given location."',
        required_permission="manage_ai_tools",
    ),
    CommandDefinition(
        name="add_role",
        description="Adds a new role to the RBAC roles table. Existing roles are left untouched.",
        args_format="<role_name>",
        args_details=(ArgumentDetail("role_name", "The unique name of the role to create."),),
        example_usage="add_role auditor",
        required_permission="manage_roles_permissions",
    ),
    CommandDefinition(
        name="set_ai_tool",
        description="Sets properties for an existing AI tool, such as its active status.",
        args_format="<tool_name> active <0|1>",
        args_details=(
            ArgumentDetail("tool_name", "The name of the AI tool to modify."),
            ArgumentDetail("active", 'Keyword indicating the "isactive" property is being set.'),
            ArgumentDetail("0|1", "Set to 1 to activate the tool, 0 to deactivate it."),
        ),
        example_usage="set ai_tool getWeather active 1",
        required_permission="manage_ai_tools",
    ),
    CommandDefinition(
        name="set_sim_mode",
        description="Sets the internal simulation mode variable. This variable can be used by other commands or AI logic to alter behavior.",
        args_format="<0|1>",
        args_details=(ArgumentDetail("0|1", "Set to 1 to enable a specific simulation mode, 0 to disable it. The meaning of the mode is context-dependent."),),
        example_usage="set sim_mode 1",
        required_permission="manage_variables",
    ),
    CommandDefinition(
        name="export_log",
        description="Exports the current session log as a CSV file in the data directory.",
    ),
    CommandDefinition(
        name="export_db",
        description='Persists the current in-memory database to the file "simshell_export.db" in the data directory.',
        required_permission="execute_sql_modify",
    ),
    CommandDefinition(
        name="pause",
        description="Acknowledges a stop request. Ongoing simulated work is stopped cooperatively with Ctrl+K.",
    ),
    CommandDefinition(
        name="create_sqlite",
        description="Initializes the internal SQLite in-memory database, making it ready for SQL commands. The filename argument is currently ignored.",
        args_format="[filename.db]",
        args_details=(ArgumentDetail("filename.db", "Optional. This argument is currently ignored as the database is always in-memory.", optional=True),),
        required_permission="manage_users",
    ),
    CommandDefinition(
        name="init",
        description='Initializes the system. Creates the "variables" table in the database if it doesn\'t exist and sets some default Python variables (max_iterations, learning_rate, model_name, is_training_enabled).',
        required_permission="manage_roles_permissions",
    ),
    CommandDefinition(
        name="init_db",
        description="Initializes the database with essential tables (variables, ai_tools, users, roles, permissions, user_roles, role_permissions, command_metadata, command_input_arguments) and populates them with sample RBAC data. This is a critical setup command.",
        required_permission="manage_roles_permissions",
    ),
    CommandDefinition(
        name="list_py_vars",
        description='Lists all variables currently stored in the "variables" table of the internal database, along with their data types and values.',
        required_permission="read_variables",
    ),
    CommandDefinition(
        name="show_requirements",
        description="Displays the structure of log entries (timestamp, type, flag, text) in CSV format.",
    ),
    CommandDefinition(
        name="persist_memory_db_to",
        description='Persists the current in-memory database to a specified file within the data directory. If no filename is provided, it defaults to "sim_shell.db".',
        args_format="[filename.db]",
        args_details=(ArgumentDetail("filename.db", 'Optional. The name of the file (e.g., "my_backup.db") to save the database to. Must end with .db. Defaults to "sim_shell.db" if not provided.', optional=True),),
        example_usage="persist memory db to backup.db",
        required_permission="execute_sql_modify",
    ),
    CommandDefinition(
        name="ai",
        description='Sends the input text to an AI model for processing. Supports variable substitution using {varname} syntax, where "varname" is a variable stored in the internal database. The AI\'s response is stored in the "ai_answer" variable. Active AI tools are offered to the model as context.',
        args_format="<input_text_with_optional_{varname}_and_@toolname>",
        args_details=(ArgumentDetail("input_text...", "The text prompt for the AI. Can include {variable_name} for substitution and @tool_name to suggest tool usage."),),
        example_usage="ai Tell me about {model_name} or ai @getWeather for London",
        required_permission="use_ai_tools",
    ),
)

_DEFINITIONS_BY_NAME: Dict[str, CommandDefinition] = {d.name: d for d in INTERNAL_COMMAND_DEFINITIONS}

LIMITED_HELP_COMMANDS = ("ai", "init_db", "help")

# Older spellings of built-ins; reserved so custom commands cannot take them
RESERVED_ALIASES = ("set_ai_tool_active",)


def _spellings(name: str, *phrases: str) -> List[VerbForm]:
    return [VerbForm(name, tuple(phrase.split())) for phrase in phrases]


VERB_GRAMMAR: Tuple[VerbForm, ...] = tuple(
    _spellings("help", "help")
    + _spellings("clear", "clear")
    + _spellings("mode", "mode")
    + _spellings("history", "history")
    + _spellings("define", "define")
    + _spellings("refine", "refine")
    + _spellings("add_int_cmd", "add_int_cmd")
    + _spellings("add_ai_tool", "add ai_tool", "add_ai_tool")
    + _spellings("add_role", "add_role")
    + _spellings("set_ai_tool", "set ai_tool", "set_ai_tool")
    + _spellings("set_sim_mode", "set sim_mode", "set_sim_mode")
    + _spellings("export_log", "export log", "export_log")
    + _spellings("export_db", "export db", "export_db")
    + _spellings("pause", "pause")
    + _spellings("create_sqlite", "create sqlite", "create_sqlite")
    + _spellings("init_db", "init db", "init_db")
    + _spellings("init", "init")
    + _spellings("list_py_vars", "list py vars", "list_py_vars")
    + _spellings("show_requirements", "show requirements", "show_requirements")
    + _spellings("persist_memory_db_to", "persist memory db to", "persist_memory_db_to")
    + _spellings("ai", "ai")
)

# Longest spelling first so `init db` wins over `init`
_GRAMMAR_BY_LENGTH = tuple(sorted(VERB_GRAMMAR, key=lambda form: len(form.tokens), reverse=True))


def get_command_definition(name: str) -> Optional[CommandDefinition]:
    return _DEFINITIONS_BY_NAME.get(name)


def match_verb(tokens: Sequence[str]) -> Tuple[Optional[VerbForm], int]:
    """
    Matches the leading tokens of a command against the verb grammar.

    Args:
        tokens: The command's tokens, already lowercased.

    Returns:
        (VerbForm, number of tokens consumed), or (None, 0) when no built-in matches.
    """
    for form in _GRAMMAR_BY_LENGTH:
        width = len(form.tokens)
        if tuple(tokens[:width]) == form.tokens:
            return form, width
    return None, 0


def verb_heads() -> Tuple[str, ...]:
    """Every accepted spelling as a space-joined string (e.g. 'persist memory db to')."""
    return tuple(" ".join(form.tokens) for form in VERB_GRAMMAR)


def is_builtin_name(name: str) -> bool:
    """True when `name` (any case) is a built-in name, a legacy alias, or the leading token of any spelling."""
    lowered = name.strip().lower()
    if lowered in _DEFINITIONS_BY_NAME or lowered in RESERVED_ALIASES:
        return True
    return any(form.tokens[0] == lowered for form in VERB_GRAMMAR)
