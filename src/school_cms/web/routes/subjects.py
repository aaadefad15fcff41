"""Subject endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from school_cms.db.subjects_repository import (
    create_subject,
    delete_subject,
    get_subject_by_id,
    list_subjects,
    update_subject,
)
from school_cms.db.users_repository import UserRecord
from school_cms.web.dependencies import require_admin
from school_cms.web.schemas import (
    MessageResponse,
    SubjectCreate,
    SubjectResponse,
    SubjectUpdate,
)

router = APIRouter(prefix="/api/subjects", tags=["subjects"])


def _not_found(subject_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Subject '{subject_id}' not found",
    )


@router.get("", response_model=list[SubjectResponse])
async def get_subjects() -> list[SubjectResponse]:
    """List all subjects ordered by name."""
    return [SubjectResponse(**s.to_dict()) for s in list_subjects()]


@router.get("/{subject_id}", response_model=SubjectResponse)
async def get_subject(subject_id: str) -> SubjectResponse:
    """Get a specific subject by ID."""
    subject = get_subject_by_id(subject_id)
    if subject is None:
        raise _not_found(subject_id)
    return SubjectResponse(**subject.to_dict())


@router.post("", response_model=SubjectResponse, status_code=status.HTTP_201_CREATED)
async def post_subject(
    data: SubjectCreate,
    _admin: UserRecord = Depends(require_admin),
) -> SubjectResponse:
    """Create a subject (admin only)."""
    subject = create_subject(name=data.name, description=data.description)
    return SubjectResponse(**subject.to_dict())


@router.put("/{subject_id}", response_model=SubjectResponse)
async def put_subject(
    subject_id: str,
    data: SubjectUpdate,
    _admin: UserRecord = Depends(require_admin),
) -> SubjectResponse:
    """Update a subject (admin only)."""
    changes = data.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"] is None:
        del changes["name"]

    subject = update_subject(subject_id, changes)
    if subject is None:
        raise _not_found(subject_id)
    return SubjectResponse(**subject.to_dict())


@router.delete("/{subject_id}", response_model=MessageResponse)
async def remove_subject(
    subject_id: str,
    _admin: UserRecord = Depends(require_admin),
) -> MessageResponse:
    """Delete a subject (admin only)."""
    if not delete_subject(subject_id):
        raise _not_found(subject_id)
    return MessageResponse(message="Subject deleted successfully")
