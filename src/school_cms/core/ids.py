"""Identifier generation for database rows.

Format: {prefix}-{uuid4 hex}, e.g. "content-3f2a...".
"""

import uuid


def generate_id(prefix: str) -> str:
    """Generate a unique row id with the given prefix."""
    return f"{prefix}-{uuid.uuid4().hex}"


def new_user_id() -> str:
    return generate_id("user")


def new_subject_id() -> str:
    return generate_id("subject")


def new_content_id() -> str:
    return generate_id("content")


def new_file_id() -> str:
    return generate_id("file")
