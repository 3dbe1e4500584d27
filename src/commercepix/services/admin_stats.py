"""Aggregate statistics for the admin dashboard."""

from typing import Any


async def collect_admin_stats(uow, recent_limit: int = 10) -> dict[str, Any]:
    """Users, generations, plan distribution and the latest jobs across all users."""
    recent_jobs = await uow.jobs.list_recent(limit=recent_limit)
    return {
        "total_users": await uow.onboarding.count_known_users(),
        "total_generations": await uow.assets.count_outputs(),
        "plan_distribution": await uow.subscriptions.plan_distribution(),
        "job_statistics": await uow.jobs.get_statistics(),
        "recent_jobs": [
            {
                "id": str(job.id),
                "user_id": job.user_id,
                "mode": job.mode.value,
                "status": job.status.value,
                "cost_cents": job.cost_cents,
                "created_at": job.created_at,
            }
            for job in recent_jobs
        ],
    }
