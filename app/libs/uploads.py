from dataclasses import dataclass

from fastapi import UploadFile

from app.core.enum import MediaCategory
from app.core.exceptions import ValidationError
from app.core.settings import settings

ALLOWED_CONTENT_TYPES = {
    MediaCategory.IMAGE: {"image/jpeg", "image/jpg", "image/png", "image/gif"},
    MediaCategory.VIDEO: {
        "video/mp4",
        "video/webm",
        "video/quicktime",
        "video/x-msvideo",
        "video/x-matroska",
    },
    MediaCategory.DOCUMENT: {"application/pdf"},
}


def max_bytes_for(category: MediaCategory) -> int:
    if category == MediaCategory.VIDEO:
        return settings.VIDEO_MAX_BYTES
    return settings.IMAGE_MAX_BYTES


@dataclass
class UploadPayload:
    content: bytes
    filename: str | None
    content_type: str


def validate_upload(
    content: bytes, content_type: str | None, category: MediaCategory
) -> None:
    allowed = ALLOWED_CONTENT_TYPES[category]
    if (content_type or "").lower() not in allowed:
        raise ValidationError(
            f"Unsupported file type {content_type!r}, expected one of {sorted(allowed)}"
        )
    if not content:
        raise ValidationError("Uploaded file is empty")
    limit = max_bytes_for(category)
    if len(content) > limit:
        raise ValidationError(f"File exceeds the {limit // (1024 * 1024)}MB limit")


async def read_upload(file: UploadFile, category: MediaCategory) -> UploadPayload:
    content = await file.read()
    validate_upload(content, file.content_type, category)
    return UploadPayload(
        content=content,
        filename=file.filename,
        content_type=(file.content_type or "application/octet-stream").lower(),
    )
