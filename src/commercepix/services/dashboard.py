"""Home dashboard figures for a single user."""

from datetime import datetime
from typing import Any, Optional

from commercepix.core.timezone import month_floor, utc_now


async def get_dashboard_stats(uow, user_id: str, now: Optional[datetime] = None) -> dict[str, Any]:
    """Credit balance, images generated this UTC month, project count and last project.

    Args:
        uow: Active unit of work
        user_id: Dashboard owner
        now: Reference time for the current month (defaults to utc_now)

    Returns:
        Dict with credit_balance, images_this_month, total_projects and
        last_project (most recently updated Project, or None)
    """
    month_start = month_floor(now or utc_now())
    return {
        "credit_balance": await uow.credits.get_balance(user_id),
        "images_this_month": await uow.assets.count_outputs(user_id=user_id, since=month_start),
        "total_projects": await uow.projects.count_for_user(user_id),
        "last_project": await uow.projects.get_last_updated(user_id),
    }
