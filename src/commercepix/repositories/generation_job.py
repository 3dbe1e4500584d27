"""GenerationJob repository for CommercePix backend.

Provides data access methods for GenerationJob entities, including the
guarded status transition that keeps terminal jobs immutable.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from commercepix.core.timezone import utc_now
from commercepix.models.generation_job import ALLOWED_SOURCES, GenerationJob, JobStatus

IN_FLIGHT_STATUSES = (JobStatus.QUEUED, JobStatus.RUNNING)


class GenerationJobRepository:
    """Repository for GenerationJob entities.

    The jobs table doubles as the work queue consumed by the generation worker.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, job: GenerationJob) -> GenerationJob:
        """Persist new generation job.

        Args:
            job: GenerationJob entity to persist

        Returns:
            Persisted job with generated ID
        """
        self.session.add(job)
        await self.session.flush()
        return job

    async def get_by_id(self, job_id: UUID) -> GenerationJob | None:
        """Retrieve job by UUID, reloading attributes from the database.

        Args:
            job_id: Job's unique identifier

        Returns:
            GenerationJob if found, None otherwise
        """
        result = await self.session.execute(
            select(GenerationJob)
            .where(GenerationJob.id == job_id)  # type: ignore[arg-type]
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self, user_id: str, project_id: Optional[UUID] = None, limit: int = 50
    ) -> list[GenerationJob]:
        """List a user's most recent jobs, optionally within one project."""
        query = select(GenerationJob).where(GenerationJob.user_id == user_id)  # type: ignore[arg-type]
        if project_id is not None:
            query = query.where(GenerationJob.project_id == project_id)  # type: ignore[arg-type]
        result = await self.session.execute(
            query.order_by(GenerationJob.created_at.desc()).limit(limit)  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def list_recent(self, limit: int = 20) -> list[GenerationJob]:
        """List the most recent jobs across all users (admin view)."""
        result = await self.session.execute(
            select(GenerationJob)
            .order_by(GenerationJob.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_in_flight(
        self,
        user_id: str,
        created_from: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
    ) -> int:
        """Count the user's queued and running jobs, optionally within a creation window.

        Args:
            user_id: Job owner
            created_from: Inclusive lower bound on created_at
            created_before: Exclusive upper bound on created_at

        Returns:
            Number of jobs that have not reached a terminal status
        """
        query = select(func.count(GenerationJob.id)).where(  # type: ignore[arg-type]
            GenerationJob.user_id == user_id,  # type: ignore[arg-type]
            GenerationJob.status.in_(IN_FLIGHT_STATUSES),  # type: ignore[attr-defined]
        )
        if created_from is not None:
            query = query.where(
                GenerationJob.created_at >= created_from  # type: ignore[arg-type]
            )
        if created_before is not None:
            query = query.where(
                GenerationJob.created_at < created_before  # type: ignore[arg-type]
            )
        result = await self.session.execute(query)
        return result.scalar_one()

    async def get_queued_for_processing(self, limit: int = 5) -> list[GenerationJob]:
        """Retrieve queued jobs with row-level locking for worker coordination.

        Uses FOR UPDATE SKIP LOCKED so concurrent workers never pick the same row.
        The claim itself happens through transition_status(queued -> running).

        Args:
            limit: Maximum number of jobs to retrieve

        Returns:
            List of queued jobs, oldest first
        """
        result = await self.session.execute(
            select(GenerationJob)
            .where(GenerationJob.status == JobStatus.QUEUED)  # type: ignore[arg-type]
            .order_by(GenerationJob.created_at.asc())  # type: ignore[attr-defined]
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list(result.scalars().all())

    async def transition_status(
        self,
        job_id: UUID,
        new_status: JobStatus,
        *,
        error: Optional[str] = None,
        cost_cents: Optional[int] = None,
        output_asset_id: Optional[UUID] = None,
    ) -> bool:
        """Move a job to new_status if its current status allows it.

        The UPDATE only matches rows whose status is a legal source for
        new_status, so terminal jobs and concurrent claims are rejected by
        the database rather than by a read-then-write check.

        Args:
            job_id: Job to transition
            new_status: Target status
            error: Error JSON text (failed transitions)
            cost_cents: Final cost (succeeded transitions)
            output_asset_id: Generated asset (succeeded transitions)

        Returns:
            True if the row was updated, False if the job is missing or the
            transition is not allowed from its current status
        """
        sources = ALLOWED_SOURCES[new_status]
        if not sources:
            return False

        values: dict[str, Any] = {"status": new_status, "updated_at": utc_now()}
        if error is not None:
            values["error"] = error
        if cost_cents is not None:
            values["cost_cents"] = cost_cents
        if output_asset_id is not None:
            values["output_asset_id"] = output_asset_id

        result = await self.session.execute(
            update(GenerationJob)
            .where(
                GenerationJob.id == job_id,  # type: ignore[arg-type]
                GenerationJob.status.in_(list(sources)),  # type: ignore[attr-defined]
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def fail_orphaned_running(self, error: str) -> int:
        """Mark every job left in 'running' as failed.

        Only valid at worker startup, before any job has been claimed.

        Returns:
            Number of jobs failed
        """
        result = await self.session.execute(
            update(GenerationJob)
            .where(GenerationJob.status == JobStatus.RUNNING)  # type: ignore[arg-type]
            .values(status=JobStatus.FAILED, error=error, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount  # type: ignore[attr-defined]

    async def get_statistics(self, user_id: Optional[str] = None) -> list[dict[str, Any]]:
        """Aggregate job count, total cost and average cost per status.

        Args:
            user_id: Restrict to one user's jobs (None = all users)

        Returns:
            One dict per status present: status, count, total_cost_cents, avg_cost_cents
        """
        query = select(
            GenerationJob.status,
            func.count(GenerationJob.id),  # type: ignore[arg-type]
            func.coalesce(func.sum(GenerationJob.cost_cents), 0),
            func.coalesce(func.avg(GenerationJob.cost_cents), 0),
        )
        if user_id is not None:
            query = query.where(GenerationJob.user_id == user_id)  # type: ignore[arg-type]
        result = await self.session.execute(query.group_by(GenerationJob.status))

        return [
            {
                "status": JobStatus(status),
                "count": count,
                "total_cost_cents": int(total),
                "avg_cost_cents": float(avg),
            }
            for status, count, total, avg in result.all()
        ]
