"""Admin dashboard API endpoints (ADMIN_EMAILS only)."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query

from commercepix.api.dependencies import CurrentUser, get_uow_factory, require_admin
from commercepix.services.admin_stats import collect_admin_stats

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/stats")
async def admin_stats(
    recent: int = Query(default=10, ge=1, le=100),
    admin: CurrentUser = Depends(require_admin),
    uow_factory=Depends(get_uow_factory),
) -> dict[str, Any]:
    async with await uow_factory() as uow:
        stats = await collect_admin_stats(uow, recent_limit=recent)
    logger.info("admin.stats_viewed", admin_id=admin.id)
    return stats
