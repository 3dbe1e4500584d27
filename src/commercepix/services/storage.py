"""S3-compatible object storage for product photos and generated images.

Objects live at ``<user_id>/<project_id>/<asset_id>.<ext>`` in either the inputs
or the outputs bucket. Buckets are private; clients only ever receive
time-limited signed URLs.
"""

import asyncio
import posixpath
from typing import Any
from uuid import UUID

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from commercepix.core.config import Settings
from commercepix.services.exceptions import ForbiddenError, StorageError, ValidationError

logger = structlog.get_logger(__name__)

MAX_SIGNED_URL_TTL_SECONDS = 7 * 24 * 3600

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
}

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def build_asset_path(user_id: str, project_id: UUID, asset_id: UUID, extension: str) -> str:
    """Object key for an asset: ``user/project/asset.ext``."""
    return f"{user_id}/{project_id}/{asset_id}.{extension.lower().lstrip('.')}"


def content_type_for(path: str) -> str:
    """Content type derived from a path's extension (octet-stream if unknown)."""
    extension = posixpath.splitext(path)[1].lower().lstrip(".")
    return CONTENT_TYPES.get(extension, "application/octet-stream")


def extension_for(mime_type: str) -> str:
    try:
        return EXTENSIONS[mime_type.lower()]
    except KeyError:
        raise ValidationError(f"Unsupported image type: {mime_type}") from None


def ensure_user_path(path: str, user_id: str) -> str:
    """Reject paths outside the caller's own prefix or containing traversal segments.

    Raises:
        ValidationError: Empty or malformed path
        ForbiddenError: Path belongs to another user
    """
    normalized = path.strip().lstrip("/")
    if not normalized or ".." in normalized.split("/"):
        raise ValidationError("Invalid storage path")
    if not normalized.startswith(f"{user_id}/"):
        raise ForbiddenError("Storage path does not belong to the current user")
    return normalized


def validate_ttl(expires_in: int) -> int:
    if expires_in < 1 or expires_in > MAX_SIGNED_URL_TTL_SECONDS:
        raise ValidationError(
            f"expires_in must be between 1 and {MAX_SIGNED_URL_TTL_SECONDS} seconds"
        )
    return expires_in


class ObjectStorage:
    """Thin async wrapper around a boto3 S3 client.

    boto3 is blocking, so every call runs in a worker thread.
    """

    def __init__(self, client: Any, inputs_bucket: str, outputs_bucket: str):
        self._client = client
        self.inputs_bucket = inputs_bucket
        self.outputs_bucket = outputs_bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStorage":
        client = boto3.client(
            "s3",
            endpoint_url=settings.storage_endpoint_url,
            region_name=settings.storage_region,
            aws_access_key_id=settings.storage_access_key_id,
            aws_secret_access_key=settings.storage_secret_access_key,
            config=Config(signature_version="s3v4"),
        )
        return cls(client, settings.inputs_bucket, settings.outputs_bucket)

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Store bytes at bucket/path, overwriting any existing object.

        Returns:
            The object path
        """
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("storage.upload.failed", bucket=bucket, path=path, error=str(e))
            raise StorageError(f"Failed to upload {path}: {e}") from e

        logger.info("storage.upload.succeeded", bucket=bucket, path=path, size=len(data))
        return path

    async def signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        """Presigned GET URL valid for expires_in seconds."""
        validate_ttl(expires_in)
        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": bucket, "Key": path},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("storage.signed_url.failed", bucket=bucket, path=path, error=str(e))
            raise StorageError(f"Failed to sign {path}: {e}") from e

    async def fetch_bytes(self, bucket: str, path: str) -> bytes:
        try:
            response = await asyncio.to_thread(self._client.get_object, Bucket=bucket, Key=path)
            body = response.get("Body")
            if body is None:
                return b""
            return await asyncio.to_thread(body.read)
        except (ClientError, BotoCoreError) as e:
            logger.error("storage.fetch.failed", bucket=bucket, path=path, error=str(e))
            raise StorageError(f"Failed to download {path}: {e}") from e

    async def delete(self, bucket: str, path: str) -> None:
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=bucket, Key=path)
        except (ClientError, BotoCoreError) as e:
            logger.error("storage.delete.failed", bucket=bucket, path=path, error=str(e))
            raise StorageError(f"Failed to delete {path}: {e}") from e

        logger.info("storage.delete.succeeded", bucket=bucket, path=path)

    async def discard(self, bucket: str, path: str) -> bool:
        """Delete an object that no row points at any more; failures are logged only.

        Returns:
            True if the object was deleted
        """
        try:
            await self.delete(bucket, path)
        except StorageError as e:
            logger.warning("storage.discard.failed", bucket=bucket, path=path, error=str(e))
            return False
        return True
