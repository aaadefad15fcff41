"""Database module for SQLite persistence.

Provides:
- Database connection management and schema initialization
- Repository functions for users, subjects, content and files
- Search and whole-database maintenance (stats, export/import, clear)
"""

from school_cms.db.database import get_db, init_db

__all__ = ["get_db", "init_db"]
