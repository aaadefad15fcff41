"""SQLite database connection and schema management.

Provides connection management, schema initialization, column migrations
and first-run seeding for the school CMS.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

from school_cms.config.app_config import load_app_config
from school_cms.core.ids import new_user_id
from school_cms.core.security import hash_password

logger = structlog.get_logger(__name__)

# Current database file (set by init_db, falls back to config)
_db_path: Path | None = None

# Millisecond-precision UTC timestamps so ordering by creation is stable
TIMESTAMP_DEFAULT = "(strftime('%Y-%m-%d %H:%M:%f', 'now'))"


def get_db_path() -> Path:
    """Return the active database path."""
    return _db_path or Path(load_app_config().storage.db_path)


def init_db(db_path: Path | None = None, seed: bool = True) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist,
    applies pending column migrations and inserts seed data.

    Args:
        db_path: Path to database file. Defaults to storage.db_path
        seed: Insert default subjects and the admin account
    """
    global _db_path
    _db_path = db_path or Path(load_app_config().storage.db_path)

    with get_db() as conn:
        _create_schema(conn)
        applied = migrate_schema(conn)
        if seed:
            _seed(conn)

    logger.info("database.initialized", path=str(_db_path), migrations=applied)


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Everything executed inside the block is one transaction: committed when
    the block exits normally, rolled back if it raises.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM subjects").fetchall()
    """
    db_path = get_db_path()

    # Ensure directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        f"""
        CREATE TABLE IF NOT EXISTS subjects (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            created_at TEXT NOT NULL DEFAULT {TIMESTAMP_DEFAULT}
        );

        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            username TEXT UNIQUE NOT NULL,
            password TEXT NOT NULL,
            full_name TEXT,
            role TEXT NOT NULL DEFAULT 'user' CHECK(role IN ('admin', 'teacher', 'user')),
            profile_picture TEXT,
            assigned_subject_id TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT {TIMESTAMP_DEFAULT},
            FOREIGN KEY (assigned_subject_id) REFERENCES subjects(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS content (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            body TEXT,
            type TEXT NOT NULL CHECK(type IN ('news', 'preparation', 'material')),
            subject_id TEXT,
            author_id TEXT,
            media_urls TEXT DEFAULT '[]',
            created_at TEXT NOT NULL DEFAULT {TIMESTAMP_DEFAULT},
            updated_at TEXT NOT NULL DEFAULT {TIMESTAMP_DEFAULT},
            FOREIGN KEY (subject_id) REFERENCES subjects(id) ON DELETE SET NULL,
            FOREIGN KEY (author_id) REFERENCES users(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS files (
            id TEXT PRIMARY KEY,
            content_id TEXT NOT NULL,
            filename TEXT NOT NULL,
            stored_filename TEXT NOT NULL UNIQUE,
            mime_type TEXT NOT NULL,
            size INTEGER NOT NULL,
            uploaded_at TEXT NOT NULL DEFAULT {TIMESTAMP_DEFAULT},
            FOREIGN KEY (content_id) REFERENCES content(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_users_username ON users(username);
        CREATE INDEX IF NOT EXISTS idx_users_role ON users(role);
        CREATE INDEX IF NOT EXISTS idx_content_type ON content(type);
        CREATE INDEX IF NOT EXISTS idx_content_subject_id ON content(subject_id);
        CREATE INDEX IF NOT EXISTS idx_content_author_id ON content(author_id);
        CREATE INDEX IF NOT EXISTS idx_content_created_at ON content(created_at DESC);
        CREATE INDEX IF NOT EXISTS idx_files_content_id ON files(content_id);
        CREATE INDEX IF NOT EXISTS idx_files_stored_filename ON files(stored_filename);
        """
    )


def table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    """Column names of a table, in declaration order."""
    return [row["name"] for row in conn.execute(f"PRAGMA table_info({table})")]


def migrate_schema(conn: sqlite3.Connection) -> list[str]:
    """Bring an older database file up to the current schema.

    - adds content.media_urls when missing
    - copies legacy content.url values into media_urls as one-element
      arrays, for rows whose media_urls is still empty

    Returns:
        Names of the migration steps that changed something
    """
    applied: list[str] = []
    columns = table_columns(conn, "content")

    if "media_urls" not in columns:
        conn.execute("ALTER TABLE content ADD COLUMN media_urls TEXT DEFAULT '[]'")
        applied.append("add_media_urls")
        logger.info("database.migration", step="add_media_urls")

    if "url" in columns:
        rows = conn.execute(
            """
            SELECT id, url FROM content
            WHERE url IS NOT NULL AND url != ''
              AND (media_urls IS NULL OR media_urls = '' OR media_urls = '[]')
            """
        ).fetchall()
        for row in rows:
            conn.execute(
                "UPDATE content SET media_urls = ? WHERE id = ?",
                (json.dumps([row["url"]]), row["id"]),
            )
        if rows:
            applied.append("migrate_url_to_media_urls")
            logger.info("database.migration", step="migrate_url_to_media_urls", rows=len(rows))

    return applied


def _seed(conn: sqlite3.Connection) -> None:
    """Insert default subjects and, on an empty users table, the admin."""
    seed = load_app_config().seed

    for subject in seed.subjects:
        conn.execute(
            "INSERT OR IGNORE INTO subjects (id, name, description) VALUES (?, ?, ?)",
            (subject["id"], subject["name"], subject.get("description")),
        )

    user_count = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
    if user_count == 0:
        conn.execute(
            """
            INSERT INTO users (id, username, password, full_name, role)
            VALUES (?, ?, ?, ?, 'admin')
            """,
            (
                new_user_id(),
                seed.admin_username,
                hash_password(seed.admin_password),
                seed.admin_full_name,
            ),
        )
        logger.info("database.admin_created", username=seed.admin_username)
