"""Substring search across content, subjects and users.

Matching is a plain SQL LIKE '%term%' (case-insensitive for ASCII in
SQLite). Users are only searched when the caller is allowed to see them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from school_cms.db.content_repository import CONTENT_SELECT, ContentRecord, content_from_row
from school_cms.db.database import get_db

logger = structlog.get_logger(__name__)

SEARCH_TYPES = ("all", "content", "subjects", "users")
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass
class SearchResults:
    """Grouped search hits."""

    content: list[ContentRecord] = field(default_factory=list)
    subjects: list[dict[str, Any]] = field(default_factory=list)
    users: list[dict[str, Any]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.content) + len(self.subjects) + len(self.users)


def clamp_limit(raw: str | int | None) -> int:
    """Parse a limit parameter.

    Unparseable or non-positive values fall back to DEFAULT_LIMIT; large
    values are capped at MAX_LIMIT.
    """
    try:
        value = int(raw) if raw is not None else DEFAULT_LIMIT
    except (TypeError, ValueError):
        value = DEFAULT_LIMIT
    if value < 1:
        value = DEFAULT_LIMIT
    return min(value, MAX_LIMIT)


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search(
    query: str | None,
    search_type: str = "all",
    limit: int = DEFAULT_LIMIT,
    include_users: bool = False,
) -> SearchResults:
    """Search content, subjects and (optionally) users.

    Args:
        query: Search text; blank returns empty results
        search_type: One of SEARCH_TYPES
        limit: Maximum hits per group
        include_users: Whether the caller may see user accounts

    Returns:
        SearchResults grouped by entity
    """
    results = SearchResults()
    term = (query or "").strip()
    if not term:
        return results

    pattern = f"%{escape_like(term)}%"

    def wants(group: str) -> bool:
        return search_type in ("all", group)

    with get_db() as conn:
        if wants("content"):
            rows = conn.execute(
                f"""
                {CONTENT_SELECT}
                WHERE c.title LIKE ? ESCAPE '\\' OR c.body LIKE ? ESCAPE '\\'
                ORDER BY c.created_at DESC, c.rowid DESC
                LIMIT ?
                """,
                (pattern, pattern, limit),
            ).fetchall()
            results.content = [content_from_row(row) for row in rows]

        if wants("subjects"):
            rows = conn.execute(
                """
                SELECT * FROM subjects
                WHERE name LIKE ? ESCAPE '\\' OR description LIKE ? ESCAPE '\\'
                ORDER BY name ASC
                LIMIT ?
                """,
                (pattern, pattern, limit),
            ).fetchall()
            results.subjects = [dict(row) for row in rows]

        if include_users and wants("users"):
            rows = conn.execute(
                """
                SELECT id, username, full_name, role, is_active, created_at
                FROM users
                WHERE username LIKE ? ESCAPE '\\' OR full_name LIKE ? ESCAPE '\\'
                ORDER BY username ASC
                LIMIT ?
                """,
                (pattern, pattern, limit),
            ).fetchall()
            results.users = [
                {**dict(row), "is_active": bool(row["is_active"])} for row in rows
            ]

    logger.debug("search.executed", query=term, type=search_type, total=results.total)
    return results
