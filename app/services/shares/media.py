import re
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional
from uuid import uuid4

from fastapi import Depends
from loguru import logger

from app.core.enum import MediaCategory, MediaVisibility
from app.core.exceptions import StorageError, ValidationError
from app.services.shares.object_storage import MinioObjectStorage, get_object_storage


class MediaReferenceManager:
    """
    Owns the lifecycle of storage keys embedded on users, courses and lessons.

    - ``put`` uploads and returns a key; upload failures raise StorageError.
    - ``delete`` is best-effort: failures are logged, never raised.
    - ``replace`` uploads first, lets the caller swap the key on its row,
      and only then releases the old object.
    """

    def __init__(self, storage: MinioObjectStorage = Depends(get_object_storage)):
        self.storage = storage

    # ======================================================
    # 🔑 Keys
    # ======================================================
    @staticmethod
    def _parse(category, visibility) -> tuple[MediaCategory, MediaVisibility]:
        try:
            category = MediaCategory(category)
        except ValueError:
            raise ValidationError(f"Unsupported media category: {category}")
        try:
            visibility = MediaVisibility(visibility)
        except ValueError:
            raise ValidationError(f"Unsupported media visibility: {visibility}")
        return category, visibility

    @staticmethod
    def build_key(
        category: MediaCategory, visibility: MediaVisibility, filename: str | None
    ) -> str:
        safe_name = re.sub(r"[^A-Za-z0-9._-]+", "-", filename or "").strip("-") or "file"
        return f"{visibility.value}/{category.value}/{uuid4().hex}_{safe_name}"

    # ======================================================
    # ⬆️ Upload
    # ======================================================
    async def put(
        self,
        content: bytes,
        category: MediaCategory | str,
        visibility: MediaVisibility | str,
        *,
        filename: str | None = None,
        content_type: str = "application/octet-stream",
    ) -> str:
        category, visibility = self._parse(category, visibility)
        key = self.build_key(category, visibility, filename)
        try:
            await self.storage.put(key, content, content_type)
        except Exception as e:
            logger.error(f"❌ Upload failed for {key}: {e}")
            raise StorageError("Failed to upload file") from e

        logger.info(f"✅ Uploaded {key} ({len(content)} bytes)")
        return key

    # ======================================================
    # 🔗 URLs
    # ======================================================
    async def resolve_url(self, key: str, expires: Optional[timedelta] = None) -> str:
        try:
            return await self.storage.url_for(key, expires)
        except Exception as e:
            logger.error(f"❌ Could not resolve URL for {key}: {e}")
            raise StorageError("Failed to resolve file URL") from e

    async def resolve_optional(self, key: str | None) -> str | None:
        return await self.resolve_url(key) if key else None

    # ======================================================
    # 🗑️ Release
    # ======================================================
    async def delete(self, key: str | None) -> bool:
        """Release ``key``. Returns False when the storage call failed."""
        if not key:
            return True
        try:
            await self.storage.delete(key)
        except Exception as e:
            logger.warning(f"⚠️ Failed to delete {key}, object may be orphaned: {e}")
            return False
        logger.info(f"🗑️ Deleted {key}")
        return True

    async def delete_many(self, keys) -> None:
        for key in keys:
            await self.delete(key)

    # ======================================================
    # 🔄 Replace (upload-then-swap)
    # ======================================================
    async def replace(
        self,
        old_key: str | None,
        content: bytes,
        category: MediaCategory | str,
        visibility: MediaVisibility | str,
        swap: Callable[[str], Awaitable[Any]],
        *,
        filename: str | None = None,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        1️⃣ upload the new object (failure leaves the old reference untouched)
        2️⃣ ``swap(new_key)`` writes and commits the owning row
        3️⃣ release the old object, best-effort
        If the swap fails the freshly uploaded object is released instead.
        """
        new_key = await self.put(
            content, category, visibility, filename=filename, content_type=content_type
        )
        try:
            await swap(new_key)
        except Exception:
            await self.delete(new_key)
            raise

        if old_key and old_key != new_key:
            await self.delete(old_key)
        return new_key
