"""Low-level storage API endpoints.

Raw object operations restricted to the caller's own ``<user_id>/`` prefix.
Bucket is selected by name: "inputs" or "outputs".
"""

from typing import Literal

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import BaseModel

from commercepix.api.dependencies import (
    CurrentUser,
    get_current_user,
    get_settings,
    get_storage,
)
from commercepix.core.config import Settings
from commercepix.services.exceptions import ValidationError
from commercepix.services.storage import (
    ObjectStorage,
    content_type_for,
    ensure_user_path,
    validate_ttl,
)

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/storage", tags=["storage"])

BucketName = Literal["inputs", "outputs"]


class StoragePathRequest(BaseModel):
    bucket: BucketName
    path: str


class StorageObjectResponse(BaseModel):
    bucket: BucketName
    path: str


class StorageSignedUrlResponse(BaseModel):
    bucket: BucketName
    path: str
    signed_url: str
    expires_in: int


def resolve_bucket(storage: ObjectStorage, bucket: BucketName) -> str:
    return storage.inputs_bucket if bucket == "inputs" else storage.outputs_bucket


@router.post("/upload", response_model=StorageObjectResponse, status_code=status.HTTP_201_CREATED)
async def upload_object(
    file: UploadFile = File(...),
    bucket: BucketName = Form(...),
    path: str = Form(...),
    user: CurrentUser = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> StorageObjectResponse:
    object_path = ensure_user_path(path, user.id)
    data = await file.read()
    if len(data) > settings.max_upload_bytes:
        raise ValidationError("File too large")

    content_type = file.content_type or content_type_for(object_path)
    await storage.upload(resolve_bucket(storage, bucket), object_path, data, content_type)
    return StorageObjectResponse(bucket=bucket, path=object_path)


@router.post("/delete", response_model=StorageObjectResponse)
async def delete_object(
    request: StoragePathRequest,
    user: CurrentUser = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
) -> StorageObjectResponse:
    object_path = ensure_user_path(request.path, user.id)
    await storage.delete(resolve_bucket(storage, request.bucket), object_path)
    return StorageObjectResponse(bucket=request.bucket, path=object_path)


@router.get("/signed-url", response_model=StorageSignedUrlResponse)
async def signed_url(
    bucket: BucketName = Query(...),
    path: str = Query(...),
    expires_in: int = Query(default=3600),
    user: CurrentUser = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
) -> StorageSignedUrlResponse:
    validate_ttl(expires_in)
    object_path = ensure_user_path(path, user.id)
    url = await storage.signed_url(resolve_bucket(storage, bucket), object_path, expires_in)
    return StorageSignedUrlResponse(
        bucket=bucket, path=object_path, signed_url=url, expires_in=expires_in
    )
