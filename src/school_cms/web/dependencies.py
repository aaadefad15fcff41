"""Request dependencies: bearer-token authentication and role checks."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import structlog

from school_cms.core.security import InvalidTokenError, decode_access_token
from school_cms.db.users_repository import UserRecord, get_user_by_id

logger = structlog.get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _user_from_token(token: str) -> UserRecord:
    try:
        payload = decode_access_token(token)
    except InvalidTokenError as e:
        raise _unauthorized(str(e)) from e

    user = get_user_by_id(payload.user_id)
    if user is None or not user.is_active:
        logger.info("auth.rejected", user_id=payload.user_id)
        raise _unauthorized("User not found or disabled")
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> UserRecord:
    """Resolve the caller from the Authorization header.

    Raises 401 when the token is missing, invalid or expired, or when its
    user no longer exists or is disabled.
    """
    if credentials is None:
        raise _unauthorized("Access token required")
    return _user_from_token(credentials.credentials)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> UserRecord | None:
    """Like get_current_user, but anonymous or bad tokens give None."""
    if credentials is None:
        return None
    try:
        return _user_from_token(credentials.credentials)
    except HTTPException:
        return None


async def require_admin(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    """Allow only admins (403 otherwise)."""
    if user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


async def require_author(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    """Allow admins and teachers (403 otherwise)."""
    if user.role not in ("admin", "teacher"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins and teachers can publish content",
        )
    return user
