"""Repository functions for subjects table.

Provides CRUD operations for the subjects table.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from school_cms.core.errors import InvalidReferenceError
from school_cms.core.ids import new_subject_id
from school_cms.db.database import get_db

logger = structlog.get_logger(__name__)


@dataclass
class SubjectRecord:
    """Subject record from database."""

    id: str
    name: str
    description: str | None
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def require_subject(conn: sqlite3.Connection, subject_id: str | None) -> None:
    """Raise InvalidReferenceError unless subject_id is None or exists."""
    if subject_id is None:
        return
    row = conn.execute("SELECT 1 FROM subjects WHERE id = ?", (subject_id,)).fetchone()
    if row is None:
        raise InvalidReferenceError("subject_id", subject_id)


def create_subject(
    name: str,
    description: str | None = None,
    subject_id: str | None = None,
) -> SubjectRecord:
    """Insert a new subject.

    Args:
        name: Display name
        description: Optional description
        subject_id: Explicit id (default: generated)

    Returns:
        The created SubjectRecord
    """
    subject_id = subject_id or new_subject_id()
    with get_db() as conn:
        conn.execute(
            "INSERT INTO subjects (id, name, description) VALUES (?, ?, ?)",
            (subject_id, name, description),
        )
        row = conn.execute("SELECT * FROM subjects WHERE id = ?", (subject_id,)).fetchone()

    logger.info("subjects.created", subject_id=subject_id)
    return _row_to_record(row)


def get_subject_by_id(subject_id: str) -> SubjectRecord | None:
    """Get subject by ID.

    Returns:
        SubjectRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM subjects WHERE id = ?", (subject_id,)).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_subjects() -> list[SubjectRecord]:
    """Get all subjects ordered by name."""
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM subjects ORDER BY name").fetchall()

    return [_row_to_record(row) for row in rows]


def update_subject(subject_id: str, changes: dict[str, Any]) -> SubjectRecord | None:
    """Apply a partial update.

    Args:
        subject_id: Subject to update
        changes: Any of name, description. A description of None clears it.

    Returns:
        Updated SubjectRecord, or None if the subject does not exist
    """
    updates: list[str] = []
    values: list[Any] = []
    for column in ("name", "description"):
        if column in changes:
            updates.append(f"{column} = ?")
            values.append(changes[column])

    with get_db() as conn:
        if updates:
            conn.execute(
                f"UPDATE subjects SET {', '.join(updates)} WHERE id = ?",
                (*values, subject_id),
            )
        row = conn.execute("SELECT * FROM subjects WHERE id = ?", (subject_id,)).fetchone()

    if row is None:
        return None

    logger.info("subjects.updated", subject_id=subject_id)
    return _row_to_record(row)


def delete_subject(subject_id: str) -> bool:
    """Delete subject by ID.

    Users and content pointing at it keep their rows with the
    reference set to NULL.

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM subjects WHERE id = ?", (subject_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("subjects.deleted", subject_id=subject_id)

    return deleted


def _row_to_record(row) -> SubjectRecord:
    """Convert database row to SubjectRecord."""
    return SubjectRecord(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        created_at=row["created_at"],
    )
