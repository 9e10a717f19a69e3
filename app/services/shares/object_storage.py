import asyncio
import io
import json
from datetime import timedelta
from typing import Optional

from loguru import logger
from minio import Minio
from minio.error import S3Error

from app.core.enum import MediaVisibility
from app.core.settings import settings


class MinioObjectStorage:
    """
    Async wrapper over the MinIO client (put / delete / url).
    Keys under ``public/`` are world readable through the bucket policy,
    everything else needs a presigned URL.
    """

    PUBLIC_PREFIX = f"{MediaVisibility.PUBLIC.value}/"

    def __init__(self, client: Optional[Minio] = None, bucket: Optional[str] = None):
        self.bucket = bucket or settings.MINIO_BUCKET_NAME
        self.client = client or Minio(
            f"{settings.MINIO_ENDPOINT}:{settings.MINIO_PORT}",
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_USE_SSL,
            region=settings.MINIO_REGION,
        )

    # ===========================================================
    @classmethod
    async def create(cls) -> "MinioObjectStorage":
        self = cls()
        await self.ensure_bucket()
        return self

    # ===========================================================
    def _public_read_policy(self) -> str:
        return json.dumps(
            {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": {"AWS": ["*"]},
                        "Action": ["s3:GetObject"],
                        "Resource": [f"arn:aws:s3:::{self.bucket}/{self.PUBLIC_PREFIX}*"],
                    }
                ],
            }
        )

    async def ensure_bucket(self) -> None:
        """Create the bucket (with public-read on public/*) if it is missing."""
        try:
            exists = await asyncio.to_thread(
                self.client.bucket_exists, bucket_name=self.bucket
            )
            if exists:
                return
            await asyncio.to_thread(
                self.client.make_bucket,
                bucket_name=self.bucket,
                location=settings.MINIO_REGION,
            )
            await asyncio.to_thread(
                self.client.set_bucket_policy,
                bucket_name=self.bucket,
                policy=self._public_read_policy(),
            )
            logger.info(f"🪣 Bucket {self.bucket} created")
        except S3Error as e:
            logger.error(f"❌ Could not ensure bucket {self.bucket}: {e}")

    # ===========================================================
    async def put(self, key: str, content: bytes, content_type: str) -> str:
        await asyncio.to_thread(
            self.client.put_object,
            bucket_name=self.bucket,
            object_name=key,
            data=io.BytesIO(content),
            length=len(content),
            content_type=content_type,
        )
        return key

    async def delete(self, key: str) -> None:
        # S3 semantics: removing a missing object succeeds
        await asyncio.to_thread(
            self.client.remove_object, bucket_name=self.bucket, object_name=key
        )

    # ===========================================================
    def public_url(self, key: str) -> str:
        scheme = "https" if settings.MINIO_USE_SSL else "http"
        port = settings.MINIO_PORT
        default_port = (settings.MINIO_USE_SSL and port == 443) or (
            not settings.MINIO_USE_SSL and port == 80
        )
        port_suffix = "" if default_port else f":{port}"
        return f"{scheme}://{settings.MINIO_ENDPOINT}{port_suffix}/{self.bucket}/{key}"

    async def url_for(self, key: str, expires: Optional[timedelta] = None) -> str:
        if key.startswith(self.PUBLIC_PREFIX):
            return self.public_url(key)
        expires = expires or timedelta(seconds=settings.PRESIGNED_URL_EXPIRES_SECONDS)
        return await asyncio.to_thread(
            self.client.presigned_get_object,
            bucket_name=self.bucket,
            object_name=key,
            expires=expires,
        )


# ============================================================
# ⚡ Singleton provider for FastAPI
# ============================================================

_object_storage: Optional[MinioObjectStorage] = None


async def get_object_storage() -> MinioObjectStorage:
    global _object_storage
    if _object_storage is None:
        logger.info("🚀 Initialising MinioObjectStorage")
        _object_storage = await MinioObjectStorage.create()
    return _object_storage
