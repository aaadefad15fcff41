"""Database management endpoints (admin only)."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from school_cms.db import maintenance
from school_cms.web.dependencies import require_admin
from school_cms.web.schemas import ImportResponse, MessageResponse, StatsResponse

router = APIRouter(
    prefix="/api/database",
    tags=["database"],
    dependencies=[Depends(require_admin)],
)


def export_filename(now: datetime) -> str:
    return f"school_database_{now.strftime('%Y-%m-%d')}.json"


@router.get("/stats", response_model=StatsResponse)
async def get_stats() -> StatsResponse:
    """Row counts and total size of stored files."""
    return StatsResponse(**maintenance.get_stats())


@router.get("/export")
async def export_database() -> JSONResponse:
    """Download the whole database as a JSON attachment."""
    now = datetime.now(timezone.utc)
    document = maintenance.export_database(now=now)
    return JSONResponse(
        content=document,
        headers={"Content-Disposition": f'attachment; filename="{export_filename(now)}"'},
    )


@router.post("/import", response_model=ImportResponse)
async def import_database(data: Any = Body(None)) -> ImportResponse:
    """Replace the database contents with an exported document."""
    summary = maintenance.import_database(data)
    return ImportResponse(
        message="Database imported successfully",
        warning="Uploaded files are not included in exports and were not restored",
        imported=summary.to_dict(),
    )


@router.post("/clear", response_model=MessageResponse)
async def clear_database() -> MessageResponse:
    """Delete all data except the admin account, including uploaded files."""
    removed = maintenance.clear_database()
    return MessageResponse(
        message=f"Database cleared successfully. {removed} stored files removed"
    )
