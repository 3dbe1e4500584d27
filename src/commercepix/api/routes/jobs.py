"""Generation job status API endpoints.

- GET /api/jobs - Caller's recent jobs (optionally for one project)
- GET /api/jobs/statistics - Count and cost per status for the caller's jobs
- GET /api/jobs/{job_id} - Single job; another user's job is 403 and never returned
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from commercepix.api.dependencies import CurrentUser, get_current_user, get_uow_factory
from commercepix.models.generation_job import GenerationJob, GenerationMode, JobStatus
from commercepix.services.exceptions import ForbiddenError, NotFoundError

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/jobs", tags=["jobs"])


class JobResponse(BaseModel):
    id: UUID
    project_id: UUID
    status: JobStatus
    mode: GenerationMode
    input_asset_id: Optional[UUID]
    output_asset_id: Optional[UUID]
    cost_cents: int
    error: Optional[dict[str, Any]]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: GenerationJob) -> "JobResponse":
        return cls(
            id=job.id,
            project_id=job.project_id,
            status=job.status,
            mode=job.mode,
            input_asset_id=job.input_asset_id,
            output_asset_id=job.output_asset_id,
            cost_cents=job.cost_cents,
            error=job.error_details,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


class JobStatisticsEntry(BaseModel):
    status: JobStatus
    count: int
    total_cost_cents: int
    avg_cost_cents: float


@router.get("", response_model=list[JobResponse])
async def list_jobs(
    project_id: Optional[UUID] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> list[JobResponse]:
    async with await uow_factory() as uow:
        jobs = await uow.jobs.list_for_user(user.id, project_id=project_id, limit=limit)
    return [JobResponse.from_job(job) for job in jobs]


@router.get("/statistics", response_model=list[JobStatisticsEntry])
async def job_statistics(
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> list[JobStatisticsEntry]:
    async with await uow_factory() as uow:
        stats = await uow.jobs.get_statistics(user_id=user.id)
    return [JobStatisticsEntry(**entry) for entry in stats]


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
) -> JobResponse:
    """Return a job owned by the caller.

    Raises:
        NotFoundError: No such job (404)
        ForbiddenError: Job belongs to another user (403)
    """
    async with await uow_factory() as uow:
        job = await uow.jobs.get_by_id(job_id)

    if job is None:
        raise NotFoundError("Job not found")
    if job.user_id != user.id:
        logger.warning("job.access_denied", job_id=str(job_id), user_id=user.id)
        raise ForbiddenError("You do not have access to this job")

    return JobResponse.from_job(job)
