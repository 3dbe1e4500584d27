"""Dashboard API endpoints.

- GET /api/dashboard - Credit balance, images this month, project count, last project
- GET /api/dashboard/recent-outputs - Newest generated images across all projects
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from commercepix.api.dependencies import (
    CurrentUser,
    get_current_user,
    get_storage,
    get_uow_factory,
)
from commercepix.api.routes.assets import AssetResponse, asset_response
from commercepix.api.routes.projects import ProjectResponse, project_response
from commercepix.services.dashboard import get_dashboard_stats
from commercepix.services.storage import ObjectStorage

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


class DashboardResponse(BaseModel):
    credit_balance: int
    images_this_month: int
    total_projects: int
    last_project: Optional[ProjectResponse]


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> DashboardResponse:
    async with await uow_factory() as uow:
        stats = await get_dashboard_stats(uow, user.id)

    last_project = stats["last_project"]
    return DashboardResponse(
        credit_balance=stats["credit_balance"],
        images_this_month=stats["images_this_month"],
        total_projects=stats["total_projects"],
        last_project=project_response(last_project) if last_project else None,
    )


@router.get("/recent-outputs", response_model=list[AssetResponse])
async def list_recent_outputs(
    limit: int = Query(default=12, ge=1, le=50),
    expires_in: int = Query(default=3600, ge=1, le=604800),
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
    storage: ObjectStorage = Depends(get_storage),
) -> list[AssetResponse]:
    """The caller's newest generated images, each with a signed URL."""
    async with await uow_factory() as uow:
        outputs = await uow.assets.list_recent_outputs(user.id, limit=limit)

    return [await asset_response(asset, storage, expires_in=expires_in) for asset in outputs]
