"""FastAPI application factory.

Main entry point for the School CMS Web API.
"""

import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import FileResponse, JSONResponse

from school_cms import __version__
from school_cms.config import load_app_config
from school_cms.core.errors import (
    DuplicateUsernameError,
    FileTooLargeError,
    InvalidImportError,
    InvalidReferenceError,
    SchoolCMSError,
)
from school_cms.core.logging import configure_logging
from school_cms.core.storage import get_uploads_dir
from school_cms.db import init_db
from school_cms.web.routes import (
    auth_router,
    content_router,
    database_router,
    files_router,
    health_router,
    search_router,
    subjects_router,
    users_router,
)

logger = structlog.get_logger(__name__)

# Domain error -> HTTP status
ERROR_STATUS = {
    DuplicateUsernameError: status.HTTP_409_CONFLICT,
    InvalidReferenceError: status.HTTP_400_BAD_REQUEST,
    InvalidImportError: status.HTTP_400_BAD_REQUEST,
    FileTooLargeError: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    config = load_app_config()
    init_db(Path(config.storage.db_path))
    uploads_dir = get_uploads_dir()
    logger.info(
        "api.startup",
        db_path=config.storage.db_path,
        uploads_dir=str(uploads_dir.absolute()),
    )
    yield
    logger.info("api.shutdown")


async def school_cms_error_handler(request: Request, exc: SchoolCMSError) -> JSONResponse:
    """Translate domain errors that escaped a route into HTTP responses."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.info("api.domain_error", path=request.url.path, status=status_code, **exc.to_dict())
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures and hide their details from clients."""
    logger.exception("api.unhandled_error", method=request.method, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal server error occurred."},
    )


def _mount_frontend(app: FastAPI, dist_dir: Path) -> None:
    """Serve the built SPA, falling back to index.html for client routes."""
    root = dist_dir.resolve()
    index = root / "index.html"

    @app.get("/{full_path:path}", include_in_schema=False)
    async def spa(full_path: str) -> FileResponse:
        if full_path.startswith("api/"):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and candidate.is_relative_to(root):
            return FileResponse(candidate)
        return FileResponse(index)

    logger.info("api.frontend_mounted", dist=str(root))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    config = load_app_config()
    configure_logging(config.server.log_format)

    app = FastAPI(
        title="School CMS API",
        description="Content management API for school news, subjects and materials",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "api.request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            content_length=response.headers.get("content-length"),
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    app.add_exception_handler(SchoolCMSError, school_cms_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(subjects_router)
    app.include_router(content_router)
    app.include_router(files_router)
    app.include_router(search_router)
    app.include_router(database_router)

    dist_dir = Path(config.server.frontend_dist)
    if (dist_dir / "index.html").is_file():
        _mount_frontend(app, dist_dir)

    return app


# Default app instance for uvicorn
app = create_app()
