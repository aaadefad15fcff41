"""User management endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from school_cms.db.users_repository import (
    UserRecord,
    delete_user,
    get_user_by_id,
    list_users,
    update_user,
)
from school_cms.web.dependencies import get_current_user, require_admin
from school_cms.web.routes.auth import user_response
from school_cms.web.schemas import MessageResponse, UserResponse, UserUpdate

router = APIRouter(prefix="/api/users", tags=["users"])

# Fields only an admin may change
ADMIN_ONLY_FIELDS = frozenset({"role", "is_active", "assigned_subject_id"})


def _not_found(user_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"User '{user_id}' not found",
    )


@router.get("", response_model=list[UserResponse])
async def get_users(_user: UserRecord = Depends(get_current_user)) -> list[UserResponse]:
    """List all users, newest first."""
    return [user_response(u) for u in list_users()]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    _user: UserRecord = Depends(get_current_user),
) -> UserResponse:
    """Get a specific user by ID."""
    user = get_user_by_id(user_id)
    if user is None:
        raise _not_found(user_id)
    return user_response(user)


@router.put("/{user_id}", response_model=UserResponse)
async def put_user(
    user_id: str,
    data: UserUpdate,
    current: UserRecord = Depends(get_current_user),
) -> UserResponse:
    """Update a user. Non-admins may only edit their own profile fields."""
    changes = data.model_dump(exclude_unset=True)
    is_admin = current.role == "admin"

    if not is_admin and ADMIN_ONLY_FIELDS & changes.keys():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can change role, status or assigned subject",
        )
    if not is_admin and user_id != current.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only update your own account",
        )

    # None means "leave unchanged" except where the column is nullable
    for key in ("username", "role", "is_active"):
        if key in changes and changes[key] is None:
            del changes[key]
    password = changes.pop("password", None)
    if password is not None and password.strip():
        changes["password"] = password

    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid fields to update",
        )

    user = update_user(user_id, changes)
    if user is None:
        raise _not_found(user_id)
    return user_response(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def remove_user(
    user_id: str,
    _admin: UserRecord = Depends(require_admin),
) -> MessageResponse:
    """Delete a user (admin only). Their content is kept without an author."""
    if not delete_user(user_id):
        raise _not_found(user_id)
    return MessageResponse(message="User deleted successfully")
