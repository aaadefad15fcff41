"""Repository functions for users table.

Passwords are hashed here; callers always pass plain text. Records
returned to the web layer never carry the hash unless asked for.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from school_cms.core.errors import DuplicateUsernameError
from school_cms.core.ids import new_user_id
from school_cms.core.security import hash_password
from school_cms.db.database import get_db
from school_cms.db.subjects_repository import require_subject

logger = structlog.get_logger(__name__)

ROLES = ("admin", "teacher", "user")

# Columns a caller may change through update_user (password handled apart)
UPDATABLE_COLUMNS = (
    "username",
    "full_name",
    "profile_picture",
    "assigned_subject_id",
    "role",
    "is_active",
)


@dataclass
class UserRecord:
    """User record from database."""

    id: str
    username: str
    password: str
    full_name: str | None
    role: str
    profile_picture: str | None
    assigned_subject_id: str | None
    is_active: bool
    created_at: str

    def to_dict(self, include_password: bool = False) -> dict[str, Any]:
        """Convert to dictionary; the hash is left out by default."""
        result = {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
            "profile_picture": self.profile_picture,
            "assigned_subject_id": self.assigned_subject_id,
            "is_active": self.is_active,
            "created_at": self.created_at,
        }
        if include_password:
            result["password"] = self.password
        return result


def create_user(
    username: str,
    password: str,
    full_name: str | None = None,
    role: str = "user",
    assigned_subject_id: str | None = None,
    is_active: bool = True,
) -> UserRecord:
    """Insert a new user.

    Raises:
        DuplicateUsernameError: If the username is taken
        InvalidReferenceError: If assigned_subject_id does not exist
    """
    user_id = new_user_id()
    hashed = hash_password(password)

    with get_db() as conn:
        if _username_taken(conn, username):
            raise DuplicateUsernameError(username)
        require_subject(conn, assigned_subject_id)
        conn.execute(
            """
            INSERT INTO users (
                id, username, password, full_name, role,
                assigned_subject_id, is_active
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                username,
                hashed,
                full_name,
                role,
                assigned_subject_id,
                1 if is_active else 0,
            ),
        )
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

    logger.info("users.created", user_id=user_id, username=username, role=role)
    return _row_to_record(row)


def get_user_by_id(user_id: str) -> UserRecord | None:
    """Get user by ID.

    Returns:
        UserRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_user_by_username(username: str) -> UserRecord | None:
    """Get user by username.

    Returns:
        UserRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_users() -> list[UserRecord]:
    """Get all users, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM users ORDER BY created_at DESC, rowid DESC"
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def update_user(user_id: str, changes: dict[str, Any]) -> UserRecord | None:
    """Apply a partial update.

    Args:
        user_id: User to update
        changes: Column -> value. Keys outside UPDATABLE_COLUMNS and
            "password" are ignored. A blank password is ignored; any other
            password is re-hashed.

    Returns:
        Updated UserRecord, or None if the user does not exist

    Raises:
        DuplicateUsernameError: If the new username belongs to another user
        InvalidReferenceError: If assigned_subject_id does not exist
    """
    updates: list[str] = []
    values: list[Any] = []

    with get_db() as conn:
        if conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is None:
            return None

        if "username" in changes and _username_taken(conn, changes["username"], user_id):
            raise DuplicateUsernameError(changes["username"])
        if "assigned_subject_id" in changes:
            require_subject(conn, changes["assigned_subject_id"])

        for column in UPDATABLE_COLUMNS:
            if column in changes:
                value = changes[column]
                if column == "is_active":
                    value = 1 if value else 0
                updates.append(f"{column} = ?")
                values.append(value)

        password = changes.get("password")
        if password is not None and password.strip():
            updates.append("password = ?")
            values.append(hash_password(password))

        if updates:
            conn.execute(
                f"UPDATE users SET {', '.join(updates)} WHERE id = ?",
                (*values, user_id),
            )
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

    logger.info("users.updated", user_id=user_id, fields=sorted(changes))
    return _row_to_record(row)


def set_password(user_id: str, password: str) -> bool:
    """Replace a user's password.

    Returns:
        True if updated, False if the user does not exist
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE users SET password = ? WHERE id = ?",
            (hash_password(password), user_id),
        )

    updated = cursor.rowcount > 0
    if updated:
        logger.info("users.password_changed", user_id=user_id)
    return updated


def delete_user(user_id: str) -> bool:
    """Delete user by ID.

    Content written by the user is kept with author_id set to NULL.

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("users.deleted", user_id=user_id)

    return deleted


def _username_taken(conn, username: str, exclude_id: str | None = None) -> bool:
    row = conn.execute(
        "SELECT id FROM users WHERE username = ? AND id != ?",
        (username, exclude_id or ""),
    ).fetchone()
    return row is not None


def _row_to_record(row) -> UserRecord:
    """Convert database row to UserRecord."""
    return UserRecord(
        id=row["id"],
        username=row["username"],
        password=row["password"],
        full_name=row["full_name"],
        role=row["role"],
        profile_picture=row["profile_picture"],
        assigned_subject_id=row["assigned_subject_id"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
    )
