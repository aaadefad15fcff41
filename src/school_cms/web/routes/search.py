"""Search endpoint."""

from fastapi import APIRouter, Depends, Query

from school_cms.db.search_repository import clamp_limit, search
from school_cms.db.users_repository import UserRecord
from school_cms.web.dependencies import get_optional_user
from school_cms.web.schemas import (
    ContentResponse,
    SearchResponse,
    SearchType,
    SubjectResponse,
    UserSearchHit,
)

router = APIRouter(prefix="/api/search", tags=["search"])


@router.get("", response_model=SearchResponse)
async def search_all(
    q: str | None = Query(None),
    type: SearchType = Query("all"),
    limit: str | None = Query(None, description="Hits per group, capped at 100"),
    user: UserRecord | None = Depends(get_optional_user),
) -> SearchResponse:
    """Search content, subjects and (for admins) users."""
    results = search(
        q,
        search_type=type,
        limit=clamp_limit(limit),
        include_users=user is not None and user.role == "admin",
    )
    return SearchResponse(
        content=[ContentResponse(**c.to_dict()) for c in results.content],
        subjects=[SubjectResponse(**s) for s in results.subjects],
        users=[UserSearchHit(**u) for u in results.users],
        total=results.total,
    )
