"""Account settings API endpoints.

- GET /api/settings - Current preferences (defaults are created on first read)
- PATCH /api/settings - Update default brand tone and/or email notifications
- POST /api/settings/delete-account - Request account deletion
"""

from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict

from commercepix.api.dependencies import CurrentUser, get_current_user, get_uow_factory
from commercepix.models.preferences import BrandTone, UserPreferences
from commercepix.services.preferences import request_account_deletion, update_preferences

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/settings", tags=["settings"])


class PreferencesUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_brand_tone: Optional[BrandTone] = None
    email_notifications: Optional[bool] = None


class PreferencesResponse(BaseModel):
    default_brand_tone: Optional[BrandTone]
    email_notifications: bool
    deletion_requested_at: Optional[datetime]
    updated_at: datetime


class DeletionResponse(BaseModel):
    success: bool
    message: str
    requested_at: datetime


def preferences_response(preferences: UserPreferences) -> PreferencesResponse:
    return PreferencesResponse(
        default_brand_tone=preferences.default_brand_tone,
        email_notifications=preferences.email_notifications,
        deletion_requested_at=preferences.deletion_requested_at,
        updated_at=preferences.updated_at,
    )


@router.get("", response_model=PreferencesResponse)
async def read_settings(
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> PreferencesResponse:
    async with await uow_factory() as uow:
        preferences = await uow.preferences.get_or_create(user.id)
    return preferences_response(preferences)


@router.patch("", response_model=PreferencesResponse)
async def update_settings(
    request: PreferencesUpdate,
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> PreferencesResponse:
    """Update only the fields present in the body. default_brand_tone: null clears it."""
    async with await uow_factory() as uow:
        preferences = await update_preferences(
            uow, user.id, request.model_dump(exclude_unset=True)
        )
    return preferences_response(preferences)


@router.post(
    "/delete-account", response_model=DeletionResponse, status_code=status.HTTP_202_ACCEPTED
)
async def delete_account(
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> DeletionResponse:
    async with await uow_factory() as uow:
        preferences = await request_account_deletion(uow, user.id)
    return DeletionResponse(
        success=True,
        message="Account deletion request received. Our team will contact you shortly.",
        requested_at=preferences.deletion_requested_at,
    )
