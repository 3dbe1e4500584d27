"""Onboarding checklist tracking.

Task updates piggyback on other operations (upload, generation, download), so
tracking failures are logged and never propagated to the caller.
"""

from typing import Any, Optional

import structlog

from commercepix.core.timezone import utc_now
from commercepix.models.generation_job import GenerationMode
from commercepix.models.onboarding import ONBOARDING_TASKS, OnboardingProgress

logger = structlog.get_logger(__name__)

TASK_FOR_MODE = {
    GenerationMode.MAIN_WHITE: "generated_main_image",
    GenerationMode.LIFESTYLE: "generated_lifestyle_image",
}


async def mark_task(uow, user_id: str, task: str) -> OnboardingProgress:
    """Set one checklist flag, stamping completed_at when the last task is done.

    Raises:
        ValueError: Unknown task name
    """
    if task not in ONBOARDING_TASKS:
        raise ValueError(f"Unknown onboarding task: {task}")

    progress = await uow.onboarding.get_or_create(user_id)
    if not getattr(progress, task):
        setattr(progress, task, True)
        progress.updated_at = utc_now()
        if progress.is_complete and progress.completed_at is None:
            progress.completed_at = utc_now()
            logger.info("onboarding.completed", user_id=user_id)
        await uow.onboarding.save(progress)
    return progress


async def mark_task_best_effort(uow_factory, user_id: str, task: Optional[str]) -> None:
    """mark_task in its own transaction; failures are logged and dropped."""
    if task is None:
        return
    try:
        async with await uow_factory() as uow:
            await mark_task(uow, user_id, task)
    except Exception as e:
        logger.warning(
            "onboarding.track_failed",
            user_id=user_id,
            task=task,
            error=str(e),
            error_type=type(e).__name__,
        )


async def dismiss_checklist(uow, user_id: str) -> OnboardingProgress:
    progress = await uow.onboarding.get_or_create(user_id)
    progress.checklist_dismissed = True
    progress.updated_at = utc_now()
    return await uow.onboarding.save(progress)


def summarize(progress: OnboardingProgress) -> dict[str, Any]:
    completed = progress.completed_tasks
    total = len(ONBOARDING_TASKS)
    return {
        "tasks": {task: getattr(progress, task) for task in ONBOARDING_TASKS},
        "completed": completed,
        "total": total,
        "percentage": round(completed * 100 / total),
        "completed_at": progress.completed_at,
        "checklist_dismissed": progress.checklist_dismissed,
        "show_checklist": not progress.checklist_dismissed and not progress.is_complete,
    }
