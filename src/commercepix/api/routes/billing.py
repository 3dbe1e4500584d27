"""Billing API endpoints: plan catalog, credit balance, ledger history, trial start,
scheduled cancellation and plan changes.

Plan changes and cancellation only update the local subscription record.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel

from commercepix.api.dependencies import CurrentUser, get_current_user, get_uow_factory
from commercepix.models.billing import CreditReason, CreditRefType
from commercepix.services.billing import (
    PLANS,
    Plan,
    change_plan,
    get_billing_summary,
    set_cancel_at_period_end,
    start_trial,
)

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/billing", tags=["billing"])


class LedgerEntryResponse(BaseModel):
    id: UUID
    delta: int
    reason: CreditReason
    ref_type: Optional[CreditRefType]
    ref_id: Optional[str]
    created_at: datetime


class TrialResponse(BaseModel):
    started: bool
    billing: dict[str, Any]


class CancelRequest(BaseModel):
    cancel_at_period_end: bool


class ChangePlanRequest(BaseModel):
    plan_id: str


@router.get("/plans", response_model=list[Plan])
async def list_plans() -> list[Plan]:
    return list(PLANS.values())


@router.get("/balance")
async def get_balance(
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> dict[str, Any]:
    async with await uow_factory() as uow:
        return await get_billing_summary(uow, user.id)


@router.get("/history", response_model=list[LedgerEntryResponse])
async def get_history(
    limit: int = Query(default=50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> list[LedgerEntryResponse]:
    async with await uow_factory() as uow:
        entries = await uow.credits.list_for_user(user.id, limit=limit)
    return [
        LedgerEntryResponse(
            id=e.id,
            delta=e.delta,
            reason=e.reason,
            ref_type=e.ref_type,
            ref_id=e.ref_id,
            created_at=e.created_at,
        )
        for e in entries
    ]


@router.post("/trial", response_model=TrialResponse)
async def create_trial(
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> TrialResponse:
    """Start the 14-day starter trial with bonus credits. Idempotent per user."""
    async with await uow_factory() as uow:
        subscription = await start_trial(uow, user.id)
        summary = await get_billing_summary(uow, user.id)

    if subscription is not None:
        response.status_code = status.HTTP_201_CREATED
    return TrialResponse(started=subscription is not None, billing=summary)


@router.post("/subscription/cancel")
async def toggle_cancel(
    request: CancelRequest,
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> dict[str, Any]:
    """Set or clear cancel_at_period_end on the caller's subscription.

    Raises:
        NotFoundError 404: No subscription
    """
    async with await uow_factory() as uow:
        await set_cancel_at_period_end(uow, user.id, request.cancel_at_period_end)
        return await get_billing_summary(uow, user.id)


@router.post("/subscription/plan")
async def update_plan(
    request: ChangePlanRequest,
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> dict[str, Any]:
    """Move the caller's subscription to another plan.

    Raises:
        ValidationError 400: Unknown plan id
        NotFoundError 404: No subscription
    """
    async with await uow_factory() as uow:
        await change_plan(uow, user.id, request.plan_id)
        return await get_billing_summary(uow, user.id)
