"""Project management API endpoints.

All endpoints are owner-scoped; another user's project is reported as 404.
"""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator

from commercepix.api.dependencies import (
    CurrentUser,
    get_current_user,
    get_storage,
    get_uow_factory,
)
from commercepix.api.routes.assets import AssetResponse, asset_response, bucket_for
from commercepix.core.timezone import utc_now
from commercepix.models.asset import AssetKind
from commercepix.models.project import Project
from commercepix.services.exceptions import NotFoundError
from commercepix.services.storage import ObjectStorage

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/projects", tags=["projects"])


class ProjectRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Project name cannot be blank")
        return v


class ProjectResponse(BaseModel):
    id: UUID
    name: str
    created_at: datetime
    updated_at: datetime


def project_response(project: Project) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        name=project.name,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


async def _get_owned_project(uow, project_id: UUID, user_id: str) -> Project:
    project = await uow.projects.get_owned(project_id, user_id)
    if project is None:
        raise NotFoundError("Project not found")
    return project


@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> list[ProjectResponse]:
    async with await uow_factory() as uow:
        projects = await uow.projects.list_for_user(user.id)
    return [project_response(p) for p in projects]


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    request: ProjectRequest,
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> ProjectResponse:
    async with await uow_factory() as uow:
        project = await uow.projects.add(Project(user_id=user.id, name=request.name))
    logger.info("project.created", project_id=str(project.id), user_id=user.id)
    return project_response(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> ProjectResponse:
    async with await uow_factory() as uow:
        project = await _get_owned_project(uow, project_id, user.id)
    return project_response(project)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def rename_project(
    project_id: UUID,
    request: ProjectRequest,
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> ProjectResponse:
    async with await uow_factory() as uow:
        project = await _get_owned_project(uow, project_id, user.id)
        project.name = request.name
        project.updated_at = utc_now()
        uow.session.add(project)
    return project_response(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
    storage: ObjectStorage = Depends(get_storage),
) -> None:
    """Delete a project, its stored images, and (by cascade) its assets and jobs.

    Stored objects are removed best-effort once the row delete has committed.
    """
    async with await uow_factory() as uow:
        project = await _get_owned_project(uow, project_id, user.id)
        assets = await uow.assets.list_for_project(project.id)
        objects = [(bucket_for(asset, storage), asset.storage_path) for asset in assets]
        await uow.projects.delete(project)

    removed = 0
    for bucket, path in objects:
        if await storage.discard(bucket, path):
            removed += 1
    logger.info(
        "project.deleted",
        project_id=str(project_id),
        assets_removed=len(assets),
        objects_removed=removed,
    )


@router.get("/{project_id}/outputs", response_model=list[AssetResponse])
async def list_project_outputs(
    project_id: UUID,
    expires_in: int = Query(default=3600, ge=1, le=604800),
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
    storage: ObjectStorage = Depends(get_storage),
) -> list[AssetResponse]:
    """Generated images of a project, newest first, each with a signed URL."""
    async with await uow_factory() as uow:
        await _get_owned_project(uow, project_id, user.id)
        outputs = await uow.assets.list_for_project(project_id, kind=AssetKind.OUTPUT)

    return [
        await asset_response(asset, storage, expires_in=expires_in) for asset in outputs
    ]
