# --- API DOCUMENTATION for modules/category_manager.py ---
#
# **Purpose:** Classifies a raw command string into one of the active execution
# categories (internal, python, unix, windows, sql, excel, typescript), or into
# the 'ambiguous' / 'unknown' outcomes.
#
# **Public Functions:**
#
# async def classify_command(command: str, active_categories: list[str],
#                            oracle_func: callable | None,
#                            custom_command_names: Iterable[str] = ()) -> ClassificationResult:
#     """
#     1. If 'internal' is active and the command matches an internal command
#        name (exactly, or as a head followed by a space), returns 'internal'
#        without consulting the oracle.
#     2. Otherwise awaits `oracle_func(command, active_categories)`, which
#        returns a dict {'category': str, 'reasoning': str | None} or None.
#     3. Post-validates the oracle's answer: missing, unexpected or inactive
#        categories are downgraded to 'unknown'; ambiguous/unknown answers
#        without reasoning get a synthesized explanation.
#     """
#
# def matches_internal_command(command: str, custom_command_names: Iterable[str] = ()) -> bool
# def parse_category_input(value: str) -> str | None
# def normalize_active_categories(values: Iterable[str]) -> list[str]
#
# **Key Global Constants/Variables:**
# - AMBIGUOUS_CATEGORY / UNKNOWN_CATEGORY: classification sentinels.
# - CATEGORY_MAP: user-friendly inputs ("1", "sql", ...) -> category names.
# - CATEGORY_DESCRIPTIONS: one-line description of each category.
# - CATEGORY_SUGGESTIONS: starter commands per category, shown by `help`.
#
# --- END API DOCUMENTATION ---

# modules/category_manager.py

import logging
from typing import Awaitable, Callable, Iterable, List, Optional

from modules.command_definitions import verb_heads
from modules.shell_types import (
    ALL_CATEGORIES, AMBIGUOUS_CATEGORY, UNKNOWN_CATEGORY, Category, ClassificationResult,
)

# --- Module-specific logger ---
logger = logging.getLogger(__name__)

CLASSIFICATION_FAILED_REASON = "AI classification failed."

CATEGORY_MAP = {str(index): name for index, name in enumerate(ALL_CATEGORIES, start=1)}
CATEGORY_MAP.update({name: name for name in ALL_CATEGORIES})
CATEGORY_MAP.update({"ts": Category.TYPESCRIPT.value, "py": Category.PYTHON.value, "win": Category.WINDOWS.value})

CATEGORY_DESCRIPTIONS = {
    "internal": "SimShell commands (help, clear, init db, ai, add_int_cmd ...) and custom commands",
    "python": "Python snippets such as print(...), assignments, imports and definitions",
    "unix": "Unix/Linux shell commands such as ls, cd, grep, echo $PATH",
    "windows": "Windows Command Prompt or PowerShell commands such as dir C:\\, echo %VAR%",
    "sql": "SQL statements, executed against the shell's in-memory SQLite database",
    "excel": "Excel-like formulas such as SUM(1,2,3) or VLOOKUP(...)",
    "typescript": "TypeScript/JavaScript snippets such as console.log(...) or const x: number = 1",
}

CATEGORY_SUGGESTIONS = {
    "internal": [
        "help", "clear", "mode", "history", "define", "refine",
        'add_int_cmd <short> <name> "<description>" <whatToDo>',
        "export log", "pause", "create sqlite <filename.db>", "show requirements",
        "persist memory db to <filename.db>",
    ],
    "python": ["print(", "def ", "import ", "class ", "if ", "else:", "elif ", "for ", "while ",
               "try:", "except:", "return ", "yield "],
    "unix": ["ls", "cd", "pwd", "mkdir", "rm", "cp", "mv", "cat", "grep", "echo", "man", "sudo"],
    "windows": ["dir", "cd", "cls", "mkdir", "rmdir", "copy", "move", "type", "findstr", "echo", "help"],
    "sql": ["SELECT", "INSERT INTO", "UPDATE", "DELETE FROM", "CREATE TABLE", "ALTER TABLE",
            "DROP TABLE", "WHERE", "FROM", "JOIN", "GROUP BY", "ORDER BY", "SELECT 1;"],
    "excel": ["SUM(", "AVERAGE(", "COUNT(", "MAX(", "MIN(", "IF(", "VLOOKUP(", "HLOOKUP(", "INDEX(", "MATCH("],
    "typescript": ["console.log(", "const ", "let ", "function ", "interface ", "type ", "import ", "export "],
}

# Heads that only count as internal when followed by an argument
_HEADS_REQUIRING_ARGUMENT = ("add_int_cmd", "create sqlite", "persist memory db to")

# The fixed internal-command table consulted before the oracle
FAST_PATH_INTERNAL_COMMANDS = (
    "help", "clear", "mode", "history", "define", "refine", "add_int_cmd",
    "export log", "pause", "create sqlite", "show requirements", "persist memory db to",
)

ClassificationOracle = Callable[[str, List[str]], Awaitable[Optional[dict]]]


def _normalize_command(command: str) -> str:
    return " ".join(command.strip().lower().split())


def _head_matches(normalized: str, head: str) -> bool:
    if head in _HEADS_REQUIRING_ARGUMENT:
        return normalized.startswith(head + " ")
    return normalized == head or normalized.startswith(head + " ")


def matches_internal_command(command: str, custom_command_names: Iterable[str] = ()) -> bool:
    """
    True when the command is a known internal command.

    `helping` does not match `help`: a head must be the whole command or be
    followed by a space.
    """
    normalized = _normalize_command(command)
    if not normalized:
        return False
    heads = set(FAST_PATH_INTERNAL_COMMANDS) | set(verb_heads())
    heads.update(name.lower() for name in custom_command_names)
    if normalized.startswith("@bat:"):
        return True
    return any(_head_matches(normalized, head) for head in heads)


def parse_category_input(value: str) -> Optional[str]:
    """Maps user input like '5', 'SQL' or 'ts' to a category name, or None."""
    return CATEGORY_MAP.get(value.strip().lower())


def normalize_active_categories(values: Iterable[str]) -> List[str]:
    """Keeps known categories only, de-duplicated, in canonical order."""
    wanted = {parse_category_input(v) for v in values if isinstance(v, str)}
    wanted.discard(None)
    invalid = [v for v in values if isinstance(v, str) and parse_category_input(v) is None]
    if invalid:
        logger.warning(f"Ignoring unknown categories in active set: {invalid}")
    return [c for c in ALL_CATEGORIES if c in wanted]


def _validate_oracle_output(command: str, active_categories: List[str], output: Optional[dict]) -> ClassificationResult:
    if not output or not isinstance(output, dict) or not output.get("category"):
        return ClassificationResult(UNKNOWN_CATEGORY, CLASSIFICATION_FAILED_REASON)

    category = str(output["category"]).strip().lower()
    reasoning = output.get("reasoning") or None

    if category not in ALL_CATEGORIES and category not in (AMBIGUOUS_CATEGORY, UNKNOWN_CATEGORY):
        logger.warning(f"AI returned an unexpected category: {category}. Defaulting to 'unknown'.")
        return ClassificationResult(UNKNOWN_CATEGORY, f"AI returned unexpected category '{category}'. Command: {command}")

    if category in (AMBIGUOUS_CATEGORY, UNKNOWN_CATEGORY):
        if not reasoning:
            reasoning = (f"AI classified as {category} but provided no reasoning. "
                         f"Command did not fit active categories: {', '.join(active_categories)}.")
        return ClassificationResult(category, reasoning)

    if category not in active_categories:
        logger.warning(f"AI returned category '{category}' which was not in active list: "
                       f"{', '.join(active_categories)}. Treating as 'unknown'.")
        return ClassificationResult(UNKNOWN_CATEGORY, f"Command classified as '{category}', but this category was not active.")

    return ClassificationResult(category, reasoning)


async def classify_command(command: str, active_categories: Iterable[str],
                           oracle_func: Optional[ClassificationOracle],
                           custom_command_names: Iterable[str] = ()) -> ClassificationResult:
    """Classifies a command against the active categories. See the API documentation above."""
    active = normalize_active_categories(active_categories)

    if not command or not command.strip():
        return ClassificationResult(UNKNOWN_CATEGORY, "Empty command.")
    if not active:
        return ClassificationResult(UNKNOWN_CATEGORY, "No active categories selected.")

    if Category.INTERNAL.value in active and matches_internal_command(command, custom_command_names):
        logger.debug(f"Fast-path internal classification for: '{command}'")
        return ClassificationResult(Category.INTERNAL.value)

    if oracle_func is None:
        logger.warning("No classification oracle configured; command cannot be classified.")
        return ClassificationResult(UNKNOWN_CATEGORY, CLASSIFICATION_FAILED_REASON)

    try:
        output = await oracle_func(command.strip(), active)
    except Exception as e:
        logger.error(f"Classification oracle failed for '{command}': {e}", exc_info=True)
        return ClassificationResult(UNKNOWN_CATEGORY, CLASSIFICATION_FAILED_REASON)

    result = _validate_oracle_output(command.strip(), active, output)
    logger.info(f"Classified '{command}' as '{result.category}' (reasoning: {result.reasoning})")
    return result
