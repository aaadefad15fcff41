"""Repository functions for content table.

media_urls is stored as a JSON-encoded array of strings and always
returned decoded; unreadable values decode to an empty list.
"""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from school_cms.core.ids import new_content_id
from school_cms.db.database import get_db
from school_cms.db.subjects_repository import require_subject

logger = structlog.get_logger(__name__)

CONTENT_TYPES = ("news", "preparation", "material")

CONTENT_SELECT = """
    SELECT c.*,
           u.username AS author_name,
           u.full_name AS author_full_name,
           s.name AS subject_name
    FROM content c
    LEFT JOIN users u ON c.author_id = u.id
    LEFT JOIN subjects s ON c.subject_id = s.id
"""


@dataclass
class ContentRecord:
    """Content record joined with author and subject names."""

    id: str
    title: str
    body: str | None
    type: str
    subject_id: str | None
    author_id: str | None
    media_urls: list[str]
    created_at: str
    updated_at: str
    author_name: str | None = None
    author_full_name: str | None = None
    subject_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ContentPage:
    """One page of a content listing."""

    items: list[ContentRecord]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_more(self) -> bool:
        return (self.page - 1) * self.limit + len(self.items) < self.total


@dataclass
class ContentFilter:
    """Listing filters; None means "any"."""

    content_type: str | None = None
    subject_id: str | None = None
    author_id: str | None = None

    def where_clause(self) -> tuple[str, list[Any]]:
        clauses = ["1=1"]
        params: list[Any] = []
        if self.content_type:
            clauses.append("c.type = ?")
            params.append(self.content_type)
        if self.subject_id:
            clauses.append("c.subject_id = ?")
            params.append(self.subject_id)
        if self.author_id:
            clauses.append("c.author_id = ?")
            params.append(self.author_id)
        return " AND ".join(clauses), params


def encode_media_urls(urls: list[str] | None) -> str:
    """Serialize a URL list for the media_urls column."""
    return json.dumps(list(urls) if isinstance(urls, list) else [], ensure_ascii=False)


def decode_media_urls(raw: str | None) -> list[str]:
    """Parse the media_urls column; anything unreadable becomes []."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


def create_content(
    title: str,
    content_type: str,
    author_id: str | None,
    body: str | None = None,
    subject_id: str | None = None,
    urls: list[str] | None = None,
) -> ContentRecord:
    """Insert a new content post.

    Raises:
        InvalidReferenceError: If subject_id does not exist
    """
    content_id = new_content_id()

    with get_db() as conn:
        require_subject(conn, subject_id)
        conn.execute(
            """
            INSERT INTO content (id, title, body, type, subject_id, author_id, media_urls)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                content_id,
                title,
                body,
                content_type,
                subject_id,
                author_id,
                encode_media_urls(urls),
            ),
        )
        row = conn.execute(f"{CONTENT_SELECT} WHERE c.id = ?", (content_id,)).fetchone()

    logger.info("content.created", content_id=content_id, type=content_type, author_id=author_id)
    return content_from_row(row)


def get_content_by_id(content_id: str) -> ContentRecord | None:
    """Get content by ID.

    Returns:
        ContentRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(f"{CONTENT_SELECT} WHERE c.id = ?", (content_id,)).fetchone()

    if row is None:
        return None

    return content_from_row(row)


def list_content(
    content_filter: ContentFilter | None = None,
    page: int = 1,
    limit: int = 20,
) -> ContentPage:
    """List content newest first, one page at a time.

    Args:
        content_filter: Optional type/subject/author filters
        page: 1-based page number
        limit: Page size

    Returns:
        ContentPage with the items and the unpaginated total
    """
    where, params = (content_filter or ContentFilter()).where_clause()
    offset = (page - 1) * limit

    with get_db() as conn:
        total = conn.execute(
            f"SELECT COUNT(*) FROM content c WHERE {where}", params
        ).fetchone()[0]
        rows = conn.execute(
            f"""
            {CONTENT_SELECT}
            WHERE {where}
            ORDER BY c.created_at DESC, c.rowid DESC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, offset),
        ).fetchall()

    return ContentPage(
        items=[content_from_row(row) for row in rows],
        page=page,
        limit=limit,
        total=total,
    )


def update_content(content_id: str, changes: dict[str, Any]) -> ContentRecord | None:
    """Apply a partial update.

    Args:
        content_id: Content to update
        changes: Any of title, body, type, subject_id, urls. urls replaces
            the stored media_urls.

    Returns:
        Updated ContentRecord, or None if the content does not exist

    Raises:
        InvalidReferenceError: If subject_id does not exist
    """
    updates: list[str] = []
    values: list[Any] = []

    for column in ("title", "body", "type", "subject_id"):
        if column in changes:
            updates.append(f"{column} = ?")
            values.append(changes[column])
    if "urls" in changes:
        updates.append("media_urls = ?")
        values.append(encode_media_urls(changes["urls"]))

    updates.append("updated_at = strftime('%Y-%m-%d %H:%M:%f', 'now')")

    with get_db() as conn:
        if conn.execute("SELECT 1 FROM content WHERE id = ?", (content_id,)).fetchone() is None:
            return None
        if "subject_id" in changes:
            require_subject(conn, changes["subject_id"])
        conn.execute(
            f"UPDATE content SET {', '.join(updates)} WHERE id = ?",
            (*values, content_id),
        )
        row = conn.execute(f"{CONTENT_SELECT} WHERE c.id = ?", (content_id,)).fetchone()

    logger.info("content.updated", content_id=content_id, fields=sorted(changes))
    return content_from_row(row)


def delete_content(content_id: str) -> bool:
    """Delete content by ID.

    File rows go with it (ON DELETE CASCADE); the caller removes the bytes.

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM content WHERE id = ?", (content_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("content.deleted", content_id=content_id)

    return deleted


def content_from_row(row) -> ContentRecord:
    """Convert database row to ContentRecord."""
    keys = row.keys()
    return ContentRecord(
        id=row["id"],
        title=row["title"],
        body=row["body"],
        type=row["type"],
        subject_id=row["subject_id"],
        author_id=row["author_id"],
        media_urls=decode_media_urls(row["media_urls"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        author_name=row["author_name"] if "author_name" in keys else None,
        author_full_name=row["author_full_name"] if "author_full_name" in keys else None,
        subject_name=row["subject_name"] if "subject_name" in keys else None,
    )
