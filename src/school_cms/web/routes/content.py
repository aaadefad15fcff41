"""Content endpoints: news, preparation notes and materials."""

from typing import Literal

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from school_cms.core.storage import remove_stored_file
from school_cms.db.content_repository import (
    ContentFilter,
    ContentRecord,
    create_content,
    delete_content,
    get_content_by_id,
    list_content,
    update_content,
)
from school_cms.db.files_repository import list_files_for_content
from school_cms.db.users_repository import UserRecord
from school_cms.web.dependencies import get_current_user, require_author
from school_cms.web.schemas import (
    ContentCreate,
    ContentListResponse,
    ContentResponse,
    ContentUpdate,
    MessageResponse,
    PaginationInfo,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/content", tags=["content"])


def can_manage(user: UserRecord, content: ContentRecord) -> bool:
    """Admins manage everything; others only what they wrote."""
    return user.role == "admin" or content.author_id == user.id


def get_content_or_404(content_id: str) -> ContentRecord:
    content = get_content_by_id(content_id)
    if content is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Content '{content_id}' not found",
        )
    return content


def _check_teacher_subject(user: UserRecord, subject_id: str | None) -> None:
    if user.role == "teacher" and subject_id is not None and subject_id != user.assigned_subject_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Teachers can only publish to their assigned subject",
        )


@router.get("", response_model=ContentListResponse)
async def get_content_list(
    type: Literal["news", "preparation", "material"] | None = Query(None),
    subject_id: str | None = Query(None),
    author_id: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> ContentListResponse:
    """List content newest first with pagination."""
    result = list_content(
        ContentFilter(content_type=type, subject_id=subject_id, author_id=author_id),
        page=page,
        limit=limit,
    )
    return ContentListResponse(
        data=[ContentResponse(**item.to_dict()) for item in result.items],
        pagination=PaginationInfo(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
            has_more=result.has_more,
        ),
    )


@router.get("/{content_id}", response_model=ContentResponse)
async def get_content(content_id: str) -> ContentResponse:
    """Get a specific content post by ID."""
    return ContentResponse(**get_content_or_404(content_id).to_dict())


@router.post("", response_model=ContentResponse, status_code=status.HTTP_201_CREATED)
async def post_content(
    data: ContentCreate,
    user: UserRecord = Depends(require_author),
) -> ContentResponse:
    """Create a content post (admins and teachers)."""
    _check_teacher_subject(user, data.subject_id)

    content = create_content(
        title=data.title,
        content_type=data.type,
        author_id=user.id,
        body=data.body,
        subject_id=data.subject_id,
        urls=data.urls,
    )
    return ContentResponse(**content.to_dict())


@router.put("/{content_id}", response_model=ContentResponse)
async def put_content(
    content_id: str,
    data: ContentUpdate,
    user: UserRecord = Depends(get_current_user),
) -> ContentResponse:
    """Update a content post (its author or an admin)."""
    content = get_content_or_404(content_id)
    if not can_manage(user, content):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only edit your own content",
        )

    changes = data.model_dump(exclude_unset=True)
    for key in ("title", "type"):
        if key in changes and changes[key] is None:
            del changes[key]
    if "subject_id" in changes:
        _check_teacher_subject(user, changes["subject_id"])

    updated = update_content(content_id, changes)
    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Content '{content_id}' not found",
        )
    return ContentResponse(**updated.to_dict())


@router.delete("/{content_id}", response_model=MessageResponse)
async def remove_content(
    content_id: str,
    user: UserRecord = Depends(get_current_user),
) -> MessageResponse:
    """Delete a content post and its attached files (its author or an admin)."""
    content = get_content_or_404(content_id)
    if not can_manage(user, content):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only delete your own content",
        )

    attachments = list_files_for_content(content_id)
    delete_content(content_id)
    removed = sum(1 for f in attachments if remove_stored_file(f.stored_filename))

    logger.info("content.files_removed", content_id=content_id, files=removed)
    return MessageResponse(message="Content deleted successfully")
