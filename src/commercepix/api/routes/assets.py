"""Asset API endpoints.

- POST /api/assets/upload - Upload a product photo (jpg/png/webp, max 8 MB) into a project
- GET /api/assets/{asset_id}/signed-url - Time-limited download URL for an owned asset
- DELETE /api/assets/{asset_id} - Remove an owned asset and its stored object
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import BaseModel

from commercepix.api.dependencies import (
    CurrentUser,
    get_current_user,
    get_settings,
    get_storage,
    get_uow_factory,
)
from commercepix.core.config import Settings
from commercepix.models.asset import Asset, AssetKind
from commercepix.models.generation_job import GenerationMode
from commercepix.services.exceptions import ForbiddenError, NotFoundError, ValidationError
from commercepix.services.generation import parse_mode
from commercepix.services.images import read_dimensions
from commercepix.services.onboarding import mark_task_best_effort
from commercepix.services.storage import (
    ObjectStorage,
    build_asset_path,
    extension_for,
    validate_ttl,
)

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/assets", tags=["assets"])

ALLOWED_UPLOAD_TYPES = ("image/jpeg", "image/png", "image/webp")


class AssetResponse(BaseModel):
    id: UUID
    project_id: UUID
    kind: AssetKind
    mode: GenerationMode
    source_asset_id: Optional[UUID]
    prompt_version: str
    prompt_payload: dict[str, Any]
    mime_type: str
    width: Optional[int]
    height: Optional[int]
    created_at: datetime
    signed_url: Optional[str] = None


class SignedUrlResponse(BaseModel):
    asset_id: UUID
    signed_url: str
    expires_in: int


def bucket_for(asset: Asset, storage: ObjectStorage) -> str:
    return storage.outputs_bucket if asset.kind == AssetKind.OUTPUT else storage.inputs_bucket


async def asset_response(
    asset: Asset, storage: ObjectStorage, expires_in: Optional[int] = None
) -> AssetResponse:
    signed_url = None
    if expires_in is not None:
        signed_url = await storage.signed_url(
            bucket_for(asset, storage), asset.storage_path, expires_in
        )
    return AssetResponse(
        id=asset.id,
        project_id=asset.project_id,
        kind=asset.kind,
        mode=asset.mode,
        source_asset_id=asset.source_asset_id,
        prompt_version=asset.prompt_version,
        prompt_payload=asset.prompt_payload or {},
        mime_type=asset.mime_type,
        width=asset.width,
        height=asset.height,
        created_at=asset.created_at,
        signed_url=signed_url,
    )


async def _get_owned_asset(uow, asset_id: UUID, user_id: str) -> Asset:
    asset = await uow.assets.get_by_id(asset_id)
    if asset is None:
        raise NotFoundError("Asset not found")
    if asset.user_id != user_id:
        raise ForbiddenError("You do not have access to this asset")
    return asset


@router.post("/upload", response_model=AssetResponse, status_code=status.HTTP_201_CREATED)
async def upload_asset(
    file: UploadFile = File(...),
    project_id: UUID = Form(...),
    mode: str = Form(default=GenerationMode.MAIN_WHITE.value),
    prompt_version: str = Form(default="v1"),
    prompt_payload: str = Form(default="{}"),
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
    storage: ObjectStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> AssetResponse:
    """Store an uploaded product photo as an input asset.

    Raises:
        ValidationError 400: Wrong type, too large, unreadable image, bad mode or payload JSON
        NotFoundError 404: Project missing or owned by someone else
    """
    content_type = (file.content_type or "").lower()
    if content_type not in ALLOWED_UPLOAD_TYPES:
        raise ValidationError("Invalid file type. Allowed: JPG, PNG, WEBP")

    data = await file.read()
    if not data:
        raise ValidationError("Uploaded file is empty")
    if len(data) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise ValidationError(f"File too large. Maximum size is {limit_mb}MB")

    generation_mode = parse_mode(mode)
    try:
        payload = json.loads(prompt_payload)
    except ValueError:
        raise ValidationError("prompt_payload must be valid JSON") from None
    if not isinstance(payload, dict):
        raise ValidationError("prompt_payload must be a JSON object")

    width, height = read_dimensions(data)

    uploaded_path = None
    try:
        async with await uow_factory() as uow:
            project = await uow.projects.get_owned(project_id, user.id)
            if project is None:
                raise NotFoundError("Project not found")

            asset_id = uuid4()
            path = build_asset_path(user.id, project.id, asset_id, extension_for(content_type))
            await storage.upload(storage.inputs_bucket, path, data, content_type)
            uploaded_path = path

            asset = await uow.assets.add(
                Asset(
                    id=asset_id,
                    user_id=user.id,
                    project_id=project.id,
                    kind=AssetKind.INPUT,
                    mode=generation_mode,
                    prompt_version=prompt_version,
                    prompt_payload=payload,
                    storage_path=path,
                    mime_type=content_type,
                    width=width,
                    height=height,
                )
            )
    except Exception:
        # The row was not committed; drop the object it would have pointed at
        if uploaded_path is not None:
            await storage.discard(storage.inputs_bucket, uploaded_path)
        raise

    logger.info(
        "asset.uploaded",
        asset_id=str(asset.id),
        project_id=str(project_id),
        size=len(data),
        width=width,
        height=height,
    )
    await mark_task_best_effort(uow_factory, user.id, "uploaded_photo")

    return await asset_response(asset, storage, expires_in=settings.signed_url_ttl_seconds)


@router.get("/{asset_id}/signed-url", response_model=SignedUrlResponse)
async def get_asset_signed_url(
    asset_id: UUID,
    expires_in: int = Query(default=3600),
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
    storage: ObjectStorage = Depends(get_storage),
) -> SignedUrlResponse:
    """Signed download URL valid for expires_in seconds (1..604800)."""
    validate_ttl(expires_in)
    async with await uow_factory() as uow:
        asset = await _get_owned_asset(uow, asset_id, user.id)

    signed_url = await storage.signed_url(bucket_for(asset, storage), asset.storage_path, expires_in)
    return SignedUrlResponse(asset_id=asset.id, signed_url=signed_url, expires_in=expires_in)


@router.delete("/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_asset(
    asset_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
    storage: ObjectStorage = Depends(get_storage),
) -> None:
    """Delete the asset row, then its stored object (best-effort, after commit)."""
    async with await uow_factory() as uow:
        asset = await _get_owned_asset(uow, asset_id, user.id)
        bucket, path = bucket_for(asset, storage), asset.storage_path
        await uow.assets.delete(asset)

    await storage.discard(bucket, path)
    logger.info("asset.deleted", asset_id=str(asset_id))
