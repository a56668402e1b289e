# --- API DOCUMENTATION for modules/store.py ---
#
# **Purpose:** The backing relational store. One SQLiteStore instance is created
# by main.py (or by a test) and passed explicitly to everything that needs it.
#
# **Public Classes:**
#
# class SQLiteStore:
#     def execute(self, sql: str, params=()) -> QueryResult
#         """Runs one statement. Read statements return rows; others return
#         rows_affected and, for INSERT/REPLACE, inserted_id."""
#     def table_exists(self, table_name: str) -> bool
#     def is_initialized(self) -> bool
#     def persist_to(self, filepath: str) -> str
#     def close(self)
#
# class StoreError(Exception): wraps any sqlite3.Error as "SQL Error: <msg>".
#
# --- END API DOCUMENTATION ---

# modules/store.py

import os
import sqlite3
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

IN_MEMORY_DATABASE = ":memory:"

# Tables that must exist before the shell counts as initialized
CORE_TABLES = ("variables", "users", "roles", "permissions", "user_roles", "role_permissions")


class StoreError(Exception):
    """Raised when a statement fails against the backing store."""
    pass


@dataclass
class QueryResult:
    rows: Optional[List[Dict[str, Any]]] = None
    rows_affected: Optional[int] = None
    inserted_id: Optional[int] = None


class SQLiteStore:
    """Thin wrapper around a single sqlite3 connection (in-memory by default)."""

    def __init__(self, database: str = IN_MEMORY_DATABASE):
        self.database = database
        try:
            self._connection = sqlite3.connect(database, check_same_thread=False)
        except sqlite3.Error as e:
            logger.error(f"Failed to open SQLite database '{database}': {e}", exc_info=True)
            raise StoreError(f"SQL Error: {e}") from e
        self._connection.row_factory = sqlite3.Row
        # Autocommit: every statement is durable in the connection immediately
        self._connection.isolation_level = None
        logger.info(f"SQLite store opened: {database}")

    def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        logger.debug(f"Executing SQL: {sql.strip()} | params={list(params)}")
        try:
            cursor = self._connection.execute(sql, tuple(params))
            if cursor.description is not None:
                rows = [dict(row) for row in cursor.fetchall()]
                return QueryResult(rows=rows)
            is_insert = sql.lstrip().upper().startswith(("INSERT", "REPLACE"))
            return QueryResult(
                rows_affected=max(cursor.rowcount, 0),
                inserted_id=cursor.lastrowid if is_insert else None,
            )
        except sqlite3.Error as e:
            logger.error(f"Error executing SQL: {sql.strip()} -> {e}")
            raise StoreError(f"SQL Error: {e}") from e

    def table_exists(self, table_name: str) -> bool:
        result = self.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name = ?", (table_name,)
        )
        return bool(result.rows)

    def is_initialized(self) -> bool:
        try:
            return all(self.table_exists(name) for name in CORE_TABLES)
        except StoreError:
            return False

    def persist_to(self, filepath: str) -> str:
        """Copies the whole database into `filepath` using the sqlite backup API."""
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        try:
            destination = sqlite3.connect(filepath)
            try:
                self._connection.backup(destination)
            finally:
                destination.close()
        except sqlite3.Error as e:
            logger.error(f"Failed to persist database to {filepath}: {e}", exc_info=True)
            raise StoreError(f"SQL Error: {e}") from e
        logger.info(f"Database persisted to {filepath}")
        return filepath

    def close(self):
        self._connection.close()
        logger.info(f"SQLite store closed: {self.database}")
