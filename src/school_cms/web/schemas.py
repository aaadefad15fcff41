"""Pydantic schemas for the Web API.

Request and response models for auth, users, subjects, content, files,
search and database management.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from school_cms import __version__

Role = Literal["admin", "teacher", "user"]
ContentType = Literal["news", "preparation", "material"]
SearchType = Literal["all", "content", "subjects", "users"]


# =============================================================================
# AUTH / USER SCHEMAS
# =============================================================================


class UserResponse(BaseModel):
    """Response for a user (never includes the password hash)."""

    id: str
    username: str
    full_name: str | None = None
    role: str
    profile_picture: str | None = None
    assigned_subject_id: str | None = None
    is_active: bool = True
    created_at: str

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    """Request body for logging in."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Response for a successful login."""

    user: UserResponse
    token: str


class RegisterRequest(BaseModel):
    """Request body for creating a user (admin only)."""

    username: str = Field(..., min_length=3, max_length=20)
    password: str = Field(..., min_length=6)
    full_name: str | None = Field(default=None, max_length=200)
    role: Role = "user"
    assigned_subject_id: str | None = None


class ChangePasswordRequest(BaseModel):
    """Request body for changing one's own password."""

    current_password: str = Field(
        ..., validation_alias=AliasChoices("currentPassword", "current_password")
    )
    new_password: str = Field(
        ...,
        min_length=6,
        validation_alias=AliasChoices("newPassword", "new_password"),
    )


class UserUpdate(BaseModel):
    """Partial update of a user. Unset fields are left unchanged."""

    username: str | None = Field(default=None, min_length=3, max_length=20)
    password: str | None = None
    full_name: str | None = Field(default=None, max_length=200)
    profile_picture: str | None = None
    assigned_subject_id: str | None = None
    role: Role | None = None
    is_active: bool | None = None


class UserSearchHit(BaseModel):
    """User as returned by search."""

    id: str
    username: str
    full_name: str | None = None
    role: str
    is_active: bool
    created_at: str


# =============================================================================
# SUBJECT SCHEMAS
# =============================================================================


class SubjectCreate(BaseModel):
    """Request body for creating a subject."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)


class SubjectUpdate(BaseModel):
    """Partial update of a subject."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)


class SubjectResponse(BaseModel):
    """Response for a subject."""

    id: str
    name: str
    description: str | None = None
    created_at: str

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# CONTENT SCHEMAS
# =============================================================================


class ContentCreate(BaseModel):
    """Request body for creating a content post."""

    title: str = Field(..., min_length=1, max_length=100)
    body: str | None = None
    type: ContentType
    subject_id: str | None = None
    urls: list[str] = Field(default_factory=list)


class ContentUpdate(BaseModel):
    """Partial update of a content post."""

    title: str | None = Field(default=None, min_length=1, max_length=100)
    body: str | None = None
    type: ContentType | None = None
    subject_id: str | None = None
    urls: list[str] | None = None


class ContentResponse(BaseModel):
    """Response for a content post."""

    id: str
    title: str
    body: str | None = None
    type: str
    subject_id: str | None = None
    author_id: str | None = None
    media_urls: list[str] = Field(default_factory=list)
    created_at: str
    updated_at: str
    author_name: str | None = None
    author_full_name: str | None = None
    subject_name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class PaginationInfo(BaseModel):
    """Pagination block of a listing."""

    page: int
    limit: int
    total: int
    total_pages: int = Field(serialization_alias="totalPages")
    has_more: bool = Field(serialization_alias="hasMore")


class ContentListResponse(BaseModel):
    """One page of content."""

    data: list[ContentResponse]
    pagination: PaginationInfo


# =============================================================================
# FILE SCHEMAS
# =============================================================================


class UploadedFile(BaseModel):
    """A file accepted by an upload."""

    id: str
    filename: str
    mime_type: str
    size: int


class UploadResponse(BaseModel):
    """Response for an upload."""

    message: str
    files: list[UploadedFile]


class FileInfo(BaseModel):
    """Attachment metadata listed for a content post."""

    id: str
    filename: str
    mime_type: str
    size: int
    uploaded_at: str

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# SEARCH / DATABASE SCHEMAS
# =============================================================================


class SearchResponse(BaseModel):
    """Grouped search hits."""

    content: list[ContentResponse]
    subjects: list[SubjectResponse]
    users: list[UserSearchHit]
    total: int


class StatsResponse(BaseModel):
    """Database statistics."""

    users: int
    subjects: int
    content: int
    files: int
    total_file_size: int = Field(
        validation_alias=AliasChoices("totalFileSize", "total_file_size"),
        serialization_alias="totalFileSize",
    )


class ImportResponse(BaseModel):
    """Response for a database import."""

    message: str
    warning: str
    imported: dict[str, Any]


class MessageResponse(BaseModel):
    """Plain confirmation message."""

    message: str


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = __version__
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
