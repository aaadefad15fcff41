"""Password hashing and access tokens.

- Passwords: bcrypt, cost from config (auth.bcrypt_rounds)
- Tokens: HS256 JWT carrying id, username and role, expiring after
  auth.token_expiry_days
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
import structlog

from school_cms.config.app_config import AuthConfig, load_app_config

logger = structlog.get_logger(__name__)

# bcrypt only looks at the first 72 bytes of the secret
BCRYPT_MAX_BYTES = 72


class InvalidTokenError(Exception):
    """Raised when an access token cannot be verified."""

    pass


@dataclass
class TokenPayload:
    """Claims carried by an access token."""

    user_id: str
    username: str
    role: str


def _auth_config(config: AuthConfig | None) -> AuthConfig:
    return config if config is not None else load_app_config().auth


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, config: AuthConfig | None = None) -> str:
    """Hash a password with bcrypt.

    Args:
        password: Plain-text password
        config: Auth settings (defaults to the loaded app config)

    Returns:
        bcrypt hash as text, suitable for the users.password column
    """
    rounds = _auth_config(config).bcrypt_rounds
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: str | None) -> bool:
    """Check a plain-text password against a stored bcrypt hash.

    Malformed or missing hashes never verify.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("security.malformed_hash")
        return False


def create_access_token(
    user_id: str,
    username: str,
    role: str,
    config: AuthConfig | None = None,
    now: datetime | None = None,
) -> str:
    """Issue a signed access token for a user."""
    auth = _auth_config(config)
    issued_at = now or datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": user_id,
        "id": user_id,
        "username": username,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + timedelta(days=auth.token_expiry_days),
    }
    return jwt.encode(claims, auth.jwt_secret, algorithm=auth.jwt_algorithm)


def decode_access_token(token: str, config: AuthConfig | None = None) -> TokenPayload:
    """Verify an access token and return its claims.

    Raises:
        InvalidTokenError: If the signature, expiry or claims are invalid
    """
    auth = _auth_config(config)
    try:
        claims = jwt.decode(token, auth.jwt_secret, algorithms=[auth.jwt_algorithm])
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError("Invalid token") from e

    user_id = claims.get("sub") or claims.get("id")
    if not user_id:
        raise InvalidTokenError("Invalid token payload")

    return TokenPayload(
        user_id=user_id,
        username=claims.get("username", ""),
        role=claims.get("role", "user"),
    )
