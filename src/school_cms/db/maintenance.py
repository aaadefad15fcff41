"""Whole-database operations: statistics, export/import, clearing, repairs.

Export format (version 2.0.0):

    {
        "version": "2.0.0",
        "exportedAt": "<ISO-8601 UTC>",
        "users": [...],      # including password hashes
        "subjects": [...],
        "content": [...],    # media_urls as a list
        "files": [...]       # metadata only, bytes are not included
    }

Import and clear keep the configured admin account and run in a single
transaction.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from school_cms.config.app_config import load_app_config
from school_cms.core.errors import InvalidImportError
from school_cms.core.storage import remove_stored_file, repair_filename
from school_cms.db.content_repository import decode_media_urls, encode_media_urls
from school_cms.db.database import get_db, table_columns

logger = structlog.get_logger(__name__)

EXPORT_VERSION = "2.0.0"
TABLES = ("users", "subjects", "content", "files")

_NOW_SQL = "strftime('%Y-%m-%d %H:%M:%f', 'now')"


@dataclass
class ImportSummary:
    """Row counts written by an import."""

    users: int = 0
    subjects: int = 0
    content: int = 0
    files: int = 0
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "users": self.users,
            "subjects": self.subjects,
            "content": self.content,
            "files": self.files,
            "skipped": self.skipped,
        }


@dataclass
class FilenameFix:
    """A display name changed by fix_filenames."""

    file_id: str
    old: str
    new: str


def _admin_username() -> str:
    return load_app_config().seed.admin_username


def get_stats() -> dict[str, int]:
    """Row counts per table plus the total size of stored files."""
    with get_db() as conn:
        stats = {
            table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            for table in TABLES
        }
        stats["totalFileSize"] = conn.execute(
            "SELECT COALESCE(SUM(size), 0) FROM files"
        ).fetchone()[0]
    return stats


def export_database(now: datetime | None = None) -> dict[str, Any]:
    """Dump every table into a JSON-serializable document."""
    with get_db() as conn:
        users = [
            {**dict(row), "is_active": bool(row["is_active"])}
            for row in conn.execute(
                """
                SELECT id, username, password, full_name, role, profile_picture,
                       assigned_subject_id, is_active, created_at
                FROM users ORDER BY created_at, rowid
                """
            )
        ]
        subjects = [dict(row) for row in conn.execute("SELECT * FROM subjects ORDER BY rowid")]
        content = [
            {
                "id": row["id"],
                "title": row["title"],
                "body": row["body"],
                "type": row["type"],
                "subject_id": row["subject_id"],
                "author_id": row["author_id"],
                "media_urls": decode_media_urls(row["media_urls"]),
                "created_at": row["created_at"],
                "updated_at": row["updated_at"],
            }
            for row in conn.execute("SELECT * FROM content ORDER BY created_at, rowid")
        ]
        files = [dict(row) for row in conn.execute("SELECT * FROM files ORDER BY rowid")]

    exported_at = (now or datetime.now(timezone.utc)).isoformat()
    logger.info(
        "database.exported",
        users=len(users),
        subjects=len(subjects),
        content=len(content),
        files=len(files),
    )
    return {
        "version": EXPORT_VERSION,
        "exportedAt": exported_at,
        "users": users,
        "subjects": subjects,
        "content": content,
        "files": files,
    }


def _delete_all_but_admin(conn: sqlite3.Connection) -> list[str]:
    """Delete every row except the admin account. Returns stored filenames."""
    stored = [row[0] for row in conn.execute("SELECT stored_filename FROM files")]
    conn.execute("DELETE FROM files")
    conn.execute("DELETE FROM content")
    conn.execute("DELETE FROM subjects")
    conn.execute("DELETE FROM users WHERE username != ?", (_admin_username(),))
    return stored


def _rows(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidImportError(f"'{key}' must be a list")
    return [row for row in value if isinstance(row, dict)]


def import_database(data: Any) -> ImportSummary:
    """Replace the database contents with an exported document.

    The admin account is kept. Rows pointing at subjects or users that are
    not part of the document get that reference set to NULL; files whose
    content is missing are skipped. Stored bytes are not touched.

    Raises:
        InvalidImportError: If the document has no version or malformed tables
    """
    if not isinstance(data, dict) or not data.get("version"):
        raise InvalidImportError("Invalid database file")

    subjects = _rows(data, "subjects")
    users = _rows(data, "users")
    content = _rows(data, "content")
    files = _rows(data, "files")

    with get_db() as conn:
        try:
            summary = _import_rows(conn, subjects, users, content, files)
        except KeyError as e:
            raise InvalidImportError(f"Missing field {e} in import document") from e
        except sqlite3.IntegrityError as e:
            raise InvalidImportError(f"Import rejected by the database: {e}") from e
        except (TypeError, ValueError) as e:
            raise InvalidImportError(f"Invalid value in import document: {e}") from e

    logger.info("database.imported", **summary.to_dict())
    return summary


def _import_rows(
    conn: sqlite3.Connection,
    subjects: list[dict[str, Any]],
    users: list[dict[str, Any]],
    content: list[dict[str, Any]],
    files: list[dict[str, Any]],
) -> ImportSummary:
    admin_username = _admin_username()
    summary = ImportSummary()

    _delete_all_but_admin(conn)

    admin_row = conn.execute(
        "SELECT id FROM users WHERE username = ?", (admin_username,)
    ).fetchone()
    admin_id = admin_row["id"] if admin_row else None
    exported_admin_ids = {u.get("id") for u in users if u.get("username") == admin_username}

    for subject in subjects:
        conn.execute(
            f"""
            INSERT OR REPLACE INTO subjects (id, name, description, created_at)
            VALUES (?, ?, ?, COALESCE(?, {_NOW_SQL}))
            """,
            (subject["id"], subject["name"], subject.get("description"), subject.get("created_at")),
        )
        summary.subjects += 1
    subject_ids = {s["id"] for s in subjects}

    user_ids = {admin_id} if admin_id else set()
    for user in users:
        if user.get("username") == admin_username or user.get("id") == admin_id:
            continue
        if not user.get("password"):
            summary.skipped.append(f"user {user.get('username')}: no password")
            continue
        subject_id = user.get("assigned_subject_id", user.get("subject_id"))
        is_active = user.get("is_active", user.get("active", True))
        conn.execute(
            f"""
            INSERT OR REPLACE INTO users (
                id, username, password, full_name, role, profile_picture,
                assigned_subject_id, is_active, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, COALESCE(?, {_NOW_SQL}))
            """,
            (
                user["id"],
                user["username"],
                user["password"],
                user.get("full_name"),
                user.get("role") or "user",
                user.get("profile_picture"),
                subject_id if subject_id in subject_ids else None,
                1 if is_active else 0,
                user.get("created_at"),
            ),
        )
        user_ids.add(user["id"])
        summary.users += 1

    for item in content:
        author_id = item.get("author_id")
        if author_id in exported_admin_ids:
            author_id = admin_id
        elif author_id not in user_ids:
            author_id = None
        media_urls = item.get("media_urls")
        if isinstance(media_urls, str):
            media_urls = decode_media_urls(media_urls)
        if not media_urls and item.get("url"):
            media_urls = [item["url"]]
        subject_id = item.get("subject_id")
        conn.execute(
            f"""
            INSERT OR REPLACE INTO content (
                id, title, body, type, subject_id, author_id, media_urls,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, COALESCE(?, {_NOW_SQL}), COALESCE(?, {_NOW_SQL}))
            """,
            (
                item["id"],
                item["title"],
                item.get("body"),
                item["type"],
                subject_id if subject_id in subject_ids else None,
                author_id,
                encode_media_urls(media_urls),
                item.get("created_at"),
                item.get("updated_at"),
            ),
        )
        summary.content += 1
    content_ids = {c["id"] for c in content}

    for file_row in files:
        if file_row.get("content_id") not in content_ids:
            summary.skipped.append(f"file {file_row.get('id')}: unknown content")
            continue
        conn.execute(
            f"""
            INSERT OR REPLACE INTO files (
                id, content_id, filename, stored_filename, mime_type, size, uploaded_at
            ) VALUES (?, ?, ?, ?, ?, ?, COALESCE(?, {_NOW_SQL}))
            """,
            (
                file_row["id"],
                file_row["content_id"],
                file_row["filename"],
                file_row["stored_filename"],
                file_row.get("mime_type") or "application/octet-stream",
                int(file_row.get("size") or 0),
                file_row.get("uploaded_at"),
            ),
        )
        summary.files += 1

    return summary


def clear_database() -> int:
    """Delete everything except the admin account, including stored bytes.

    Returns:
        Number of stored files removed from disk
    """
    with get_db() as conn:
        stored = _delete_all_but_admin(conn)

    removed = sum(1 for name in stored if remove_stored_file(name))
    logger.info("database.cleared", files_removed=removed)
    return removed


def fix_filenames(dry_run: bool = False) -> list[FilenameFix]:
    """Repair display names that were stored as latin-1 mojibake.

    Args:
        dry_run: Report the fixes without writing them

    Returns:
        The names that were (or would be) changed
    """
    fixes: list[FilenameFix] = []

    with get_db() as conn:
        for row in conn.execute("SELECT id, filename FROM files").fetchall():
            repaired = repair_filename(row["filename"])
            if repaired != row["filename"]:
                fixes.append(FilenameFix(row["id"], row["filename"], repaired))
                if not dry_run:
                    conn.execute(
                        "UPDATE files SET filename = ? WHERE id = ?", (repaired, row["id"])
                    )

    logger.info("database.filenames_fixed", count=len(fixes), dry_run=dry_run)
    return fixes


def schema_report() -> dict[str, Any]:
    """Describe tables, row counts and media_urls state for diagnostics."""
    with get_db() as conn:
        tables = {table: table_columns(conn, table) for table in TABLES}
        counts = {
            table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            for table in TABLES
            if tables[table]
        }
        content_columns = tables["content"]
        legacy_urls = (
            conn.execute(
                "SELECT COUNT(*) FROM content WHERE url IS NOT NULL AND url != ''"
            ).fetchone()[0]
            if "url" in content_columns
            else 0
        )
        with_media = (
            conn.execute(
                "SELECT COUNT(*) FROM content WHERE media_urls IS NOT NULL AND media_urls != '[]'"
            ).fetchone()[0]
            if "media_urls" in content_columns
            else 0
        )

    return {
        "tables": tables,
        "counts": counts,
        "has_media_urls": "media_urls" in content_columns,
        "legacy_url_rows": legacy_urls,
        "media_urls_rows": with_media,
    }
