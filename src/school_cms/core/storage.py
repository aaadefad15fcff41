"""Upload storage on the local filesystem.

Uploaded bytes live in a single flat directory (storage.uploads_dir).
Each file is stored under a unique name:

    {epoch_ms}-{16 hex}-{original stem}{original ext}

and the original (display) name is kept in the files table.
"""

from __future__ import annotations

import secrets
import shutil
import time
from pathlib import Path
from typing import BinaryIO
from urllib.parse import quote

import structlog

from school_cms.config.app_config import load_app_config
from school_cms.core.errors import FileTooLargeError

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 1024 * 1024
MAX_NAME_BYTES = 240
MAX_EXT_BYTES = 16


def get_uploads_dir() -> Path:
    """Return the uploads directory, creating it if needed."""
    uploads_dir = Path(load_app_config().storage.uploads_dir)
    uploads_dir.mkdir(parents=True, exist_ok=True)
    return uploads_dir


def repair_filename(filename: str) -> str:
    """Repair a UTF-8 filename that was decoded as latin-1.

    Multipart parsers that assume latin-1 turn "تقرير.pdf" into
    "ØªÙ\x82Ø±Ù\x8aØ±.pdf". Re-encoding as latin-1 and decoding as UTF-8
    restores it. Names that are not such mojibake (plain ASCII, or real
    non-latin text) are returned unchanged.
    """
    try:
        return filename.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return filename


def safe_basename(filename: str) -> str:
    """Strip any client-supplied directory components."""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if name in ("", ".", ".."):
        return "file"
    return name


def _truncate_utf8(text: str, max_bytes: int) -> str:
    """Cut text to at most max_bytes of UTF-8 without splitting a character."""
    return text.encode("utf-8")[:max_bytes].decode("utf-8", "ignore")


def make_stored_filename(original: str, now_ms: int | None = None) -> str:
    """Build a unique on-disk name that keeps the original name readable.

    The result never exceeds MAX_NAME_BYTES of UTF-8, so long non-ASCII
    names stay under the filesystem's 255-byte limit. Over-long extensions
    are dropped.
    """
    name = safe_basename(original)
    ext = Path(name).suffix
    if len(ext.encode("utf-8")) > MAX_EXT_BYTES:
        ext = ""
    stem = name[: len(name) - len(ext)] if ext else name
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    prefix = f"{timestamp}-{secrets.token_hex(8)}-"
    budget = MAX_NAME_BYTES - len(prefix) - len(ext.encode("utf-8"))
    return f"{prefix}{_truncate_utf8(stem, budget)}{ext}"


def stored_path(stored_filename: str) -> Path:
    """Absolute path of a stored upload."""
    return get_uploads_dir() / safe_basename(stored_filename)


def write_stream(
    source: BinaryIO,
    target: Path,
    max_size: int,
    display_name: str,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """Copy a binary stream to target, enforcing a size limit.

    Returns:
        Number of bytes written

    Raises:
        FileTooLargeError: If more than max_size bytes are read. The partial
            file is removed before raising.
    """
    if hasattr(source, "seek"):
        source.seek(0)

    written = 0
    with target.open("wb") as out:
        while chunk := source.read(chunk_size):
            written += len(chunk)
            if written > max_size:
                break
            out.write(chunk)

    if written > max_size:
        target.unlink(missing_ok=True)
        raise FileTooLargeError(display_name, max_size)

    return written


def remove_stored_file(stored_filename: str) -> bool:
    """Delete a stored upload.

    Returns:
        True if a file was removed, False if it was already gone
    """
    path = stored_path(stored_filename)
    if not path.exists():
        return False
    try:
        path.unlink()
    except OSError as e:
        logger.warning("storage.remove_failed", stored_filename=stored_filename, error=str(e))
        return False
    return True


def clear_uploads() -> int:
    """Remove every stored upload. Returns the number removed."""
    uploads_dir = get_uploads_dir()
    removed = 0
    for path in uploads_dir.iterdir():
        if path.is_file():
            path.unlink()
            removed += 1
        elif path.is_dir():
            shutil.rmtree(path)
    return removed


def content_disposition(filename: str) -> str:
    """Build an attachment header that survives non-ASCII names.

    Old clients read the ASCII fallback; RFC 5987 clients read filename*.
    """
    fallback = "".join(
        ch if ord(ch) < 128 and ch not in '"\\' else "_" for ch in filename
    )
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"
