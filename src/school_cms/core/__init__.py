"""Core helpers shared by the web API and the CLI.

- errors: domain exceptions
- ids: row id generation
- logging: structlog setup
- security: bcrypt password hashing, JWT access tokens
- storage: upload directory, stored names, download headers
"""

__all__ = [
    "errors",
    "ids",
    "logging",
    "security",
    "storage",
]
