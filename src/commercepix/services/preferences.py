"""User settings: default brand tone, email notifications, account deletion requests.

Account deletion is only recorded here; the data itself is removed by support
after the request has been confirmed with the user.
"""

from typing import Any

import structlog

from commercepix.core.timezone import utc_now
from commercepix.models.preferences import UserPreferences
from commercepix.services.exceptions import ValidationError

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = ("default_brand_tone", "email_notifications")


async def update_preferences(uow, user_id: str, changes: dict[str, Any]) -> UserPreferences:
    """Apply a partial update to the user's preferences.

    Args:
        uow: Active unit of work
        user_id: Preferences owner
        changes: Only the fields the caller sent; default_brand_tone may be None to clear it

    Raises:
        ValidationError: Unknown field, or email_notifications set to null
    """
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
    if "email_notifications" in changes and changes["email_notifications"] is None:
        raise ValidationError("email_notifications must be true or false")

    preferences = await uow.preferences.get_or_create(user_id)
    for field, value in changes.items():
        setattr(preferences, field, value)
    preferences.updated_at = utc_now()
    await uow.preferences.save(preferences)

    logger.info("preferences.updated", user_id=user_id, fields=sorted(changes))
    return preferences


async def request_account_deletion(uow, user_id: str) -> UserPreferences:
    """Record an account deletion request. Repeated requests keep the first timestamp."""
    preferences = await uow.preferences.get_or_create(user_id)
    if preferences.deletion_requested_at is None:
        preferences.deletion_requested_at = utc_now()
        preferences.updated_at = preferences.deletion_requested_at
        await uow.preferences.save(preferences)
        logger.warning("account.deletion_requested", user_id=user_id)
    else:
        logger.info(
            "account.deletion_already_requested",
            user_id=user_id,
            requested_at=preferences.deletion_requested_at.isoformat(),
        )
    return preferences
