"""Attachment upload and download endpoints.

Files are validated, stored per user and returned as FileAttachment
records that clients pass along with POST /chat/message.
"""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse

from relaychat.api.deps import get_attachment_store, get_config, get_current_user
from relaychat.config import AppConfig
from relaychat.models.schemas import FileAttachment, UploadResponse, UserProfile
from relaychat.storage.attachments import (
    AttachmentError,
    AttachmentStore,
    AttachmentTooLargeError,
    validate_attachment,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["upload"])


async def _read_and_validate(file: UploadFile, max_size: int) -> bytes:
    """Read an uploaded file and check it.

    Args:
        file: The uploaded file.
        max_size: Size limit in bytes.

    Returns:
        File content as bytes.

    Raises:
        HTTPException: 400 if the file is rejected, 413 if it is too large.
    """
    content = await file.read()

    try:
        validate_attachment(file.filename, file.content_type, content, max_size)
    except AttachmentTooLargeError as e:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=str(e),
        ) from e
    except AttachmentError as e:
        logger.warning(f"Rejected upload {file.filename}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    return content


@router.post("/upload", response_model=UploadResponse)
async def upload_files(
    files: list[UploadFile] | None = File(None),
    user: UserProfile = Depends(get_current_user),
    config: AppConfig = Depends(get_config),
    store: AttachmentStore = Depends(get_attachment_store),
) -> UploadResponse:
    """Upload one or more attachments.

    Every file is validated before any is stored, so a rejected file
    leaves nothing behind.

    Args:
        files: The uploaded files (multipart/form-data field "files").

    Returns:
        UploadResponse with the stored attachments in upload order.

    Raises:
        400: No files, or a file is empty or of an unsupported type.
        413: A file exceeds the size limit.
        500: A file could not be written.
    """
    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files provided",
        )

    contents = [await _read_and_validate(file, config.max_upload_size) for file in files]

    attachments: list[FileAttachment] = []
    for file, content in zip(files, contents, strict=True):
        try:
            attachments.append(
                await store.save(user.id, file.filename, file.content_type, content)
            )
        except OSError as e:
            logger.error(f"Failed to store attachment {file.filename}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to store file",
            ) from e

    return UploadResponse(attachments=attachments)


@router.get("/files/{stored_name}")
async def download_file(
    stored_name: str,
    user: UserProfile = Depends(get_current_user),
    store: AttachmentStore = Depends(get_attachment_store),
) -> FileResponse:
    """Return one of the current user's stored files.

    Raises:
        404: No such file for this user.
    """
    path = store.resolve(user.id, stored_name)
    if path is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        )
    return FileResponse(path)
