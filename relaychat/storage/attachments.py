"""Attachment storage.

Uploaded files are written to a local directory, one sub-directory per
user. Other backends only need to implement the AttachmentStore protocol.
"""

import asyncio
import logging
import re
import uuid
from pathlib import Path
from typing import Protocol

from relaychat.models.schemas import FileAttachment

logger = logging.getLogger(__name__)

_SAFE_EXTENSION = re.compile(r"^[A-Za-z0-9]{1,10}$")
_STORED_NAME = re.compile(r"^[0-9a-f]{32}(\.[A-Za-z0-9]{1,10})?$")

ALLOWED_CONTENT_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "application/pdf",
        "text/plain",
        "text/markdown",
        "text/csv",
    }
)


class AttachmentError(Exception):
    """Raised when an uploaded file is rejected."""


class AttachmentTooLargeError(AttachmentError):
    """Raised when an uploaded file exceeds the size limit."""


def validate_attachment(
    filename: str | None, content_type: str | None, data: bytes, max_size: int
) -> None:
    """Check an uploaded file before it is stored.

    Raises:
        AttachmentError: Missing filename, empty file or unsupported type.
        AttachmentTooLargeError: File is larger than max_size bytes.
    """
    if not filename:
        raise AttachmentError("Filename is required")

    media_type = (content_type or "").split(";")[0].strip().lower()
    if media_type not in ALLOWED_CONTENT_TYPES:
        raise AttachmentError(f"Unsupported file type: {media_type or 'unknown'}")

    if not data:
        raise AttachmentError(f"File is empty: {filename}")

    if len(data) > max_size:
        size_mb = len(data) / (1024 * 1024)
        limit_mb = max_size / (1024 * 1024)
        raise AttachmentTooLargeError(
            f"File size ({size_mb:.1f}MB) exceeds maximum allowed ({limit_mb:.0f}MB)"
        )


class AttachmentStore(Protocol):
    """Stores uploaded files and resolves them for download."""

    async def save(
        self, user_id: str, filename: str, content_type: str, data: bytes
    ) -> FileAttachment: ...

    def resolve(self, user_id: str, stored_name: str) -> Path | None: ...

    def owns(self, user_id: str, attachment: FileAttachment) -> bool: ...

class LocalAttachmentStore:
    """Stores attachments under ``<root>/<user_id>/<id>.<ext>``."""

    def __init__(self, root: str | Path, url_prefix: str = "/chat/files") -> None:
        self._root = Path(root)
        self._url_prefix = url_prefix.rstrip("/")

    async def save(
        self, user_id: str, filename: str, content_type: str, data: bytes
    ) -> FileAttachment:
        file_id = uuid.uuid4().hex
        extension = Path(filename).suffix.lstrip(".")
        stored_name = f"{file_id}.{extension}" if _SAFE_EXTENSION.match(extension) else file_id

        user_dir = self._root / user_id
        user_dir.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread((user_dir / stored_name).write_bytes, data)

        logger.info(f"Stored attachment {stored_name} ({len(data)} bytes) for user {user_id}")
        return FileAttachment(
            id=file_id,
            filename=filename,
            content_type=content_type,
            size=len(data),
            url=f"{self._url_prefix}/{stored_name}",
        )

    def resolve(self, user_id: str, stored_name: str) -> Path | None:
        """Return the path of a stored file, or None if the user has no such file."""
        if not _STORED_NAME.match(stored_name):
            return None
        path = self._root / user_id / stored_name
        return path if path.is_file() else None

    def owns(self, user_id: str, attachment: FileAttachment) -> bool:
        """Check that an attachment record points at a file the user uploaded."""
        prefix = f"{self._url_prefix}/"
        if not attachment.url.startswith(prefix):
            return False
        stored_name = attachment.url.removeprefix(prefix)
        if stored_name.split(".", 1)[0] != attachment.id:
            return False
        return self.resolve(user_id, stored_name) is not None
