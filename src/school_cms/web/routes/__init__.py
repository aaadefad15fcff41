"""Route handlers for the Web API."""

from school_cms.web.routes.auth import router as auth_router
from school_cms.web.routes.content import router as content_router
from school_cms.web.routes.database import router as database_router
from school_cms.web.routes.files import router as files_router
from school_cms.web.routes.health import router as health_router
from school_cms.web.routes.search import router as search_router
from school_cms.web.routes.subjects import router as subjects_router
from school_cms.web.routes.users import router as users_router

__all__ = [
    "auth_router",
    "content_router",
    "database_router",
    "files_router",
    "health_router",
    "search_router",
    "subjects_router",
    "users_router",
]
