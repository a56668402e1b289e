# --- API DOCUMENTATION for modules/variables.py ---
#
# **Purpose:** Typed variable storage backed by the `variables` table, plus
# the literal-syntax type inference used by `name = value` assignments.
#
# **Public Functions:**
#
# def infer_variable_type(literal: str, python_mode: bool = False) -> tuple[str, str | None]
#     """
#     First match wins: integer -> real -> boolean -> quoted string ->
#     (python mode only) None -> unquoted string.
#     """
#
# def parse_assignment(command: str) -> tuple[str, str] | None
# def store_variable(store, name, value, datatype, min_value=None, max_value=None, default_value=None)
# def get_variable(store, name) -> Variable | None
# def list_variables(store) -> list[Variable]
#
# --- END API DOCUMENTATION ---

# modules/variables.py

import re
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from modules.store import SQLiteStore, StoreError

logger = logging.getLogger(__name__)

VARIABLES_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS variables (
        name VARCHAR(255) NOT NULL PRIMARY KEY,
        datatype VARCHAR(50) NOT NULL,
        value TEXT,
        max REAL,
        min REAL,
        default_value TEXT
    )
"""

UPSERT_VARIABLE_SQL = """
    INSERT INTO variables (name, datatype, value, min, max, default_value)
    VALUES (?, ?, ?, ?, ?, ?)
    ON CONFLICT(name) DO UPDATE SET
        datatype = excluded.datatype,
        value = excluded.value,
        min = excluded.min,
        max = excluded.max,
        default_value = excluded.default_value
"""

DATATYPE_INTEGER = "integer"
DATATYPE_REAL = "real"
DATATYPE_BOOLEAN = "boolean"
DATATYPE_STRING = "string"
DATATYPE_NONE = "none"
DATATYPE_UNKNOWN = "unknown"

ASSIGNMENT_PATTERN = re.compile(r'^\s*([a-zA-Z_]\w*)\s*=(?!=)\s*(.+)\s*$')
_INTEGER_PATTERN = re.compile(r'^\d+$')
_REAL_PATTERN = re.compile(r'^\d+\.\d+$')


@dataclass(frozen=True)
class Variable:
    name: str
    datatype: str
    value: Optional[str]
    min: Optional[float] = None
    max: Optional[float] = None
    default_value: Optional[str] = None


def infer_variable_type(literal: str, python_mode: bool = False) -> Tuple[str, Optional[str]]:
    """
    Infers the datatype of an assignment literal and the string value to store.

    Examples:
        "42" -> ("integer", "42"), "3.14" -> ("real", "3.14"),
        "True" -> ("boolean", "True"), '"abc"' -> ("string", "abc"),
        "xyz" -> ("string", "xyz"), "None" (python) -> ("none", None)
    """
    value = literal.strip()
    if _INTEGER_PATTERN.match(value):
        return DATATYPE_INTEGER, str(int(value))
    if _REAL_PATTERN.match(value):
        return DATATYPE_REAL, str(float(value))
    if value in ("True", "False"):
        return DATATYPE_BOOLEAN, value
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return DATATYPE_STRING, value[1:-1]
    if python_mode and value.lower() == "none":
        return DATATYPE_NONE, None
    return DATATYPE_STRING, value


def parse_assignment(command: str) -> Optional[Tuple[str, str]]:
    """Returns (name, literal) for `name = literal`, or None if the command is not an assignment."""
    match = ASSIGNMENT_PATTERN.match(command)
    if not match:
        return None
    return match.group(1), match.group(2).strip()


def ensure_variables_table(store: SQLiteStore):
    store.execute(VARIABLES_TABLE_SQL)


def store_variable(store: SQLiteStore, name: str, value: Optional[str], datatype: str,
                   min_value: Optional[float] = None, max_value: Optional[float] = None,
                   default_value: Optional[str] = None):
    """
    Upserts a variable by name; every column is overwritten on conflict.

    Raises:
        StoreError: If the statement fails.
    """
    ensure_variables_table(store)
    store.execute(UPSERT_VARIABLE_SQL, (name, datatype, value, min_value, max_value, default_value))
    logger.info(f"Stored/Updated variable '{name}' with value '{value}' and type '{datatype}'")


def _row_to_variable(row: dict) -> Variable:
    return Variable(
        name=row["name"],
        datatype=row["datatype"],
        value=row["value"],
        min=row.get("min"),
        max=row.get("max"),
        default_value=row.get("default_value"),
    )


def get_variable(store: SQLiteStore, name: str) -> Optional[Variable]:
    """Looks a variable up by name. Not-found (including a missing table) returns None."""
    if not store.table_exists("variables"):
        return None
    result = store.execute(
        "SELECT name, datatype, value, min, max, default_value FROM variables WHERE name = ?", (name,)
    )
    if not result.rows:
        return None
    return _row_to_variable(result.rows[0])


def list_variables(store: SQLiteStore) -> List[Variable]:
    """
    Raises:
        StoreError: If the variables table does not exist.
    """
    result = store.execute(
        "SELECT name, datatype, value, min, max, default_value FROM variables ORDER BY name"
    )
    return [_row_to_variable(row) for row in result.rows or []]
