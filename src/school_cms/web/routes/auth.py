"""Authentication endpoints: login, registration and password changes."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from school_cms.core.security import create_access_token, verify_password
from school_cms.db.users_repository import (
    UserRecord,
    create_user,
    get_user_by_username,
    set_password,
)
from school_cms.web.dependencies import get_current_user, require_admin
from school_cms.web.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    UserResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def user_response(user: UserRecord) -> UserResponse:
    """Public view of a user record."""
    return UserResponse(**user.to_dict())


@router.post("/login", response_model=LoginResponse)
async def login(credentials: LoginRequest) -> LoginResponse:
    """Exchange username and password for an access token."""
    user = get_user_by_username(credentials.username)

    if user is None or not verify_password(credentials.password, user.password):
        logger.info("auth.login_failed", username=credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )

    token = create_access_token(user.id, user.username, user.role)
    logger.info("auth.login", user_id=user.id, role=user.role)
    return LoginResponse(user=user_response(user), token=token)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    _admin: UserRecord = Depends(require_admin),
) -> UserResponse:
    """Create a user account (admin only)."""
    user = create_user(
        username=data.username,
        password=data.password,
        full_name=data.full_name,
        role=data.role,
        assigned_subject_id=data.assigned_subject_id,
    )
    return user_response(user)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    user: UserRecord = Depends(get_current_user),
) -> MessageResponse:
    """Change the caller's password after checking the current one."""
    if not verify_password(data.current_password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Current password is incorrect",
        )

    set_password(user.id, data.new_password)
    return MessageResponse(message="Password changed successfully")


@router.get("/me", response_model=UserResponse)
async def me(user: UserRecord = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated user."""
    return user_response(user)
