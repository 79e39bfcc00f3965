"""Upload validation and storage key helpers."""

from __future__ import annotations

import re
import secrets
import time
from uuid import UUID

from portal.core.config import settings


ALLOWED_MIME_TYPES = {
    # Documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    # Spreadsheets
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/csv",
    # Images
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    # Text
    "text/plain",
}
MAX_FILENAME_LENGTH = 255
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def normalize_content_type(content_type: str | None) -> str:
    """Drop parameters (e.g. '; charset=utf-8') and lowercase."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def validate_file(content_type: str | None, file_size: int) -> tuple[bool, str | None]:
    """
    Validate an upload's MIME type and size.

    Returns (is_valid, error_message)
    """
    normalized = normalize_content_type(content_type)
    if normalized not in ALLOWED_MIME_TYPES:
        return False, (
            f'File type "{content_type}" is not allowed. Allowed types: PDF, Word, Excel, '
            "CSV, images (JPEG, PNG, GIF, WebP), and plain text."
        )
    return validate_file_size(file_size)


def validate_file_size(file_size: int) -> tuple[bool, str | None]:
    """Returns (is_valid, error_message) for the upload size cap."""
    if file_size <= 0:
        return False, "File is empty"
    if file_size > settings.MAX_UPLOAD_BYTES:
        max_mb = settings.MAX_UPLOAD_BYTES / (1024 * 1024)
        return False, f"File size exceeds {max_mb:.0f} MB limit"
    return True, None


def validate_filename(filename: str | None) -> tuple[bool, str | None, str]:
    """
    Validate a client-supplied filename.

    Returns (is_valid, error_message, sanitized_name). Path separators and
    traversal sequences are rejected outright; anything else outside
    [a-zA-Z0-9.-] becomes an underscore.
    """
    if not filename or not filename.strip():
        return False, "Filename is required", ""
    if len(filename) > MAX_FILENAME_LENGTH:
        return False, f"Filename too long (max {MAX_FILENAME_LENGTH} characters)", ""
    if ".." in filename or "/" in filename or "\\" in filename:
        return False, "Invalid filename", ""
    return True, None, _UNSAFE_FILENAME_CHARS.sub("_", filename.strip())


def build_storage_key(org_id: UUID, sanitized_filename: str) -> str:
    """Build a unique object key: documents/{org}/{ms-timestamp}-{random}-{name}."""
    timestamp = int(time.time() * 1000)
    suffix = secrets.token_hex(4)
    return f"documents/{org_id}/{timestamp}-{suffix}-{sanitized_filename}"
