# modules/permissions.py

import logging
from typing import AbstractSet, FrozenSet

from modules.store import SQLiteStore, StoreError

logger = logging.getLogger(__name__)

# A grant that behaves like the session-wide override flag
OVERRIDE_ALL_PERMISSION = "override_all_permissions"

USER_PERMISSIONS_SQL = """
    SELECT DISTINCT p.permission_name
    FROM permissions p
    JOIN role_permissions rp ON p.permission_id = rp.permission_id
    JOIN user_roles ur ON rp.role_id = ur.role_id
    WHERE ur.user_id = ?
"""


class PermissionResolutionError(Exception):
    """Permissions for a user could not be resolved."""
    pass


class DatabaseNotInitializedError(PermissionResolutionError):
    """The RBAC tables do not exist yet; the user should run `init db`."""
    pass


def resolve_user_permissions(store: SQLiteStore, user_id) -> FrozenSet[str]:
    """
    Resolves the set of permission names granted to `user_id` via user -> role -> permission.

    Raises:
        DatabaseNotInitializedError: If the RBAC tables are missing.
        PermissionResolutionError: For an invalid user id or any other store failure.
    """
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
        logger.warning(f"Attempted to get permissions for invalid userId: {user_id}")
        raise PermissionResolutionError(f"Invalid user ID provided: {user_id}")

    try:
        result = store.execute(USER_PERMISSIONS_SQL, (user_id,))
    except StoreError as e:
        if "no such table" in str(e):
            logger.warning(f"RBAC tables missing while resolving permissions for user {user_id}.")
            raise DatabaseNotInitializedError("Database RBAC tables not initialized.") from e
        logger.error(f"Error retrieving permissions for user ID {user_id}: {e}", exc_info=True)
        raise PermissionResolutionError(f"Failed to retrieve user permissions: {e}") from e

    permissions = frozenset(row["permission_name"] for row in result.rows or [])
    logger.debug(f"User {user_id} permissions: {sorted(permissions)}")
    return permissions


def is_override_active(granted: AbstractSet[str], override_all: bool = False) -> bool:
    return override_all or OVERRIDE_ALL_PERMISSION in granted


def has_permission(granted: AbstractSet[str], required, override_all: bool = False) -> bool:
    """The single authorization predicate. A falsy `required` means no permission is needed."""
    if not required:
        return True
    return required in granted or is_override_active(granted, override_all)
