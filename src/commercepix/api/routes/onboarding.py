"""Onboarding checklist API endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends

from commercepix.api.dependencies import CurrentUser, get_current_user, get_uow_factory
from commercepix.services.onboarding import dismiss_checklist, mark_task_best_effort, summarize

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api", tags=["onboarding"])


@router.get("/onboarding")
async def get_onboarding(
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> dict[str, Any]:
    async with await uow_factory() as uow:
        progress = await uow.onboarding.get_or_create(user.id)
    return summarize(progress)


@router.post("/onboarding/dismiss")
async def dismiss_onboarding(
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> dict[str, Any]:
    async with await uow_factory() as uow:
        progress = await dismiss_checklist(uow, user.id)
    return summarize(progress)


@router.post("/track/download")
async def track_download(
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> dict[str, bool]:
    """Record that the user downloaded a generated image. Always succeeds."""
    await mark_task_best_effort(uow_factory, user.id, "downloaded_asset")
    return {"success": True}
