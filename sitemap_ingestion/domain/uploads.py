"""Upload admission checks: file type, size and name."""

from __future__ import annotations

import re

from sitemap_ingestion.adapters import SUPPORTED_FILE_TYPES, detect_file_type
from sitemap_kernel.exceptions import InvalidUploadError

MAX_UPLOAD_BYTES = 25 * 1024 * 1024

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_file_name(file_name: str) -> str:
    """Keep ``[A-Za-z0-9._-]``; every other character becomes ``_``."""
    return _UNSAFE.sub("_", file_name)


def validate_upload(file_name: str, size: int) -> str:
    """Return the detected file type, or raise ``InvalidUploadError``."""
    if not file_name or not file_name.strip():
        raise InvalidUploadError(file_name or "", "file name is required")
    file_type = detect_file_type(file_name)
    if file_type not in SUPPORTED_FILE_TYPES:
        allowed = ", ".join(SUPPORTED_FILE_TYPES)
        raise InvalidUploadError(file_name, f"file type must be one of {allowed}")
    if size <= 0:
        raise InvalidUploadError(file_name, "file is empty")
    if size > MAX_UPLOAD_BYTES:
        raise InvalidUploadError(
            file_name, f"file exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit"
        )
    return file_type
