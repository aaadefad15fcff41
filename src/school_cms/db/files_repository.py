"""Repository functions for files table.

Rows hold metadata only; the bytes live under the uploads directory
(see school_cms.core.storage).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

import structlog

from school_cms.core.errors import InvalidReferenceError
from school_cms.core.ids import new_file_id
from school_cms.db.database import get_db

logger = structlog.get_logger(__name__)


@dataclass
class FileRecord:
    """File attachment record from database."""

    id: str
    content_id: str
    filename: str
    stored_filename: str
    mime_type: str
    size: int
    uploaded_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NewFile:
    """Metadata of a file already written to the uploads directory."""

    filename: str
    stored_filename: str
    mime_type: str
    size: int


def insert_files(content_id: str, files: list[NewFile]) -> list[FileRecord]:
    """Insert metadata rows for a batch of uploads in one transaction.

    Raises:
        InvalidReferenceError: If content_id does not exist
    """
    ids: list[str] = []

    with get_db() as conn:
        if conn.execute("SELECT 1 FROM content WHERE id = ?", (content_id,)).fetchone() is None:
            raise InvalidReferenceError("content_id", content_id)
        for new_file in files:
            file_id = new_file_id()
            conn.execute(
                """
                INSERT INTO files (id, content_id, filename, stored_filename, mime_type, size)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    file_id,
                    content_id,
                    new_file.filename,
                    new_file.stored_filename,
                    new_file.mime_type,
                    new_file.size,
                ),
            )
            ids.append(file_id)
        rows = [
            conn.execute("SELECT * FROM files WHERE id = ?", (file_id,)).fetchone()
            for file_id in ids
        ]

    logger.info("files.inserted", content_id=content_id, count=len(ids))
    return [_row_to_record(row) for row in rows]


def get_file_by_id(file_id: str) -> FileRecord | None:
    """Get file by ID.

    Returns:
        FileRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM files WHERE id = ?", (file_id,)).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_files_for_content(content_id: str) -> list[FileRecord]:
    """Get all files attached to a content post, oldest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM files WHERE content_id = ? ORDER BY uploaded_at ASC, rowid ASC",
            (content_id,),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def list_all_files() -> list[FileRecord]:
    """Get every file row."""
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM files ORDER BY uploaded_at ASC, rowid ASC").fetchall()

    return [_row_to_record(row) for row in rows]


def rename_file(file_id: str, filename: str) -> bool:
    """Change the display name of a file.

    Returns:
        True if updated, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("UPDATE files SET filename = ? WHERE id = ?", (filename, file_id))

    return cursor.rowcount > 0


def delete_file(file_id: str) -> bool:
    """Delete file row by ID.

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM files WHERE id = ?", (file_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("files.deleted", file_id=file_id)

    return deleted


def _row_to_record(row) -> FileRecord:
    """Convert database row to FileRecord."""
    return FileRecord(
        id=row["id"],
        content_id=row["content_id"],
        filename=row["filename"],
        stored_filename=row["stored_filename"],
        mime_type=row["mime_type"],
        size=row["size"],
        uploaded_at=row["uploaded_at"],
    )
