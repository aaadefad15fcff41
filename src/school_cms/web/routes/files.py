"""File attachment endpoints: upload, listing, download and removal.

Uploads are streamed to disk in chunks on a worker thread so the event
loop is not blocked by large files.
"""

import asyncio
from functools import partial
from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse

from school_cms.config import load_app_config
from school_cms.core.storage import (
    content_disposition,
    make_stored_filename,
    remove_stored_file,
    repair_filename,
    stored_path,
    write_stream,
)
from school_cms.db.files_repository import (
    NewFile,
    delete_file,
    get_file_by_id,
    insert_files,
    list_files_for_content,
)
from school_cms.db.users_repository import UserRecord
from school_cms.web.dependencies import get_current_user
from school_cms.web.routes.content import can_manage, get_content_or_404
from school_cms.web.schemas import FileInfo, MessageResponse, UploadedFile, UploadResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])

DEFAULT_MIME_TYPE = "application/octet-stream"


def _file_not_found(file_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"File '{file_id}' not found",
    )


async def _save_upload(upload: UploadFile, max_size: int) -> tuple[NewFile, Path]:
    """Write one upload to the uploads directory."""
    display_name = repair_filename(upload.filename or "file")
    stored_filename = make_stored_filename(display_name)
    target = stored_path(stored_filename)

    loop = asyncio.get_running_loop()
    size = await loop.run_in_executor(
        None, partial(write_stream, upload.file, target, max_size, display_name)
    )
    new_file = NewFile(
        filename=display_name,
        stored_filename=stored_filename,
        mime_type=upload.content_type or DEFAULT_MIME_TYPE,
        size=size,
    )
    return new_file, target


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_files(
    files: list[UploadFile] | None = File(None),
    content_id: str | None = Form(None),
    user: UserRecord = Depends(get_current_user),
) -> UploadResponse:
    """Attach up to max_files_per_upload files to a content post."""
    storage = load_app_config().storage

    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files uploaded")
    if not content_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="content_id is required"
        )
    if len(files) > storage.max_files_per_upload:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files. Maximum is {storage.max_files_per_upload} per upload",
        )

    content = get_content_or_404(content_id)
    if not can_manage(user, content):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only attach files to your own content",
        )

    written: list[Path] = []
    try:
        new_files: list[NewFile] = []
        for upload in files:
            new_file, target = await _save_upload(upload, storage.max_file_size)
            written.append(target)
            new_files.append(new_file)
        records = insert_files(content_id, new_files)
    except Exception:
        for path in written:
            path.unlink(missing_ok=True)
        raise

    logger.info(
        "files.uploaded",
        content_id=content_id,
        count=len(records),
        bytes=sum(r.size for r in records),
    )
    return UploadResponse(
        message="Files uploaded successfully",
        files=[
            UploadedFile(id=r.id, filename=r.filename, mime_type=r.mime_type, size=r.size)
            for r in records
        ],
    )


@router.get("/content/{content_id}", response_model=list[FileInfo])
async def get_content_files(content_id: str) -> list[FileInfo]:
    """List files attached to a content post, oldest first."""
    return [
        FileInfo(
            id=f.id,
            filename=f.filename,
            mime_type=f.mime_type,
            size=f.size,
            uploaded_at=f.uploaded_at,
        )
        for f in list_files_for_content(content_id)
    ]


@router.get("/download/{file_id}")
async def download_file(file_id: str) -> FileResponse:
    """Stream a stored file under its original name."""
    record = get_file_by_id(file_id)
    if record is None:
        raise _file_not_found(file_id)

    path = stored_path(record.stored_filename)
    if not path.is_file():
        logger.warning("files.missing_on_disk", file_id=file_id, stored=record.stored_filename)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found on disk",
        )

    return FileResponse(
        path,
        media_type=record.mime_type,
        headers={"Content-Disposition": content_disposition(record.filename)},
    )


@router.delete("/{file_id}", response_model=MessageResponse)
async def remove_file(
    file_id: str,
    user: UserRecord = Depends(get_current_user),
) -> MessageResponse:
    """Delete a file (the content's author or an admin)."""
    record = get_file_by_id(file_id)
    if record is None:
        raise _file_not_found(file_id)

    if not can_manage(user, get_content_or_404(record.content_id)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only delete files of your own content",
        )

    delete_file(file_id)
    remove_stored_file(record.stored_filename)
    return MessageResponse(message="File deleted successfully")
