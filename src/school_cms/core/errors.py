"""Domain errors raised by the repository and storage layers.

Route handlers translate these into HTTP responses.
"""

from typing import Any


class SchoolCMSError(Exception):
    """Base class for school CMS errors."""

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Log/JSON serialization."""
        return {"error": self.message, **self.context}


class DuplicateUsernameError(SchoolCMSError):
    """Raised when a username is already taken."""

    def __init__(self, username: str):
        super().__init__(f"Username '{username}' already exists", username=username)
        self.username = username


class InvalidReferenceError(SchoolCMSError):
    """Raised when a row points at a subject, user or content that does not exist."""

    def __init__(self, field: str, value: str):
        super().__init__(f"Unknown {field}: '{value}'", field=field, value=value)


class FileTooLargeError(SchoolCMSError):
    """Raised when an upload exceeds the configured per-file limit."""

    def __init__(self, filename: str, max_size: int):
        super().__init__(
            f"File '{filename}' is too large. Maximum file size is {max_size} bytes",
            filename=filename,
            max_size=max_size,
        )


class InvalidImportError(SchoolCMSError):
    """Raised when an import document is malformed."""

    pass
