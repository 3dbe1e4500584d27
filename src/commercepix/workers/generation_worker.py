"""Generation worker for processing queued image generation jobs.

Polls for jobs with status='queued', claims each with a guarded
queued -> running transition, runs the image edit and records the outcome.

Each job is processed in its own database session with explicit
commit/rollback at every decision point:

1. Claim: queued -> running is committed before any external call, so the job
   is visibly running while the provider works.
2. Success: output asset, credit spend and running -> succeeded are committed
   together. Usage counters and onboarding flags are updated afterwards in
   their own transactions.
3. Failure: the success transaction is rolled back, any uploaded object is
   deleted, and running -> failed (with an error JSON) is committed. Credits
   and usage counters are untouched.

Provider errors are classified but not retried; a single failure is terminal.
"""

import asyncio
import json
import time
import traceback
from typing import Callable
from uuid import uuid4

import structlog

from commercepix.core.config import Settings
from commercepix.core.timezone import utc_now
from commercepix.models.asset import Asset, AssetKind
from commercepix.models.billing import CreditReason, CreditRefType
from commercepix.models.generation_job import GenerationJob, JobStatus
from commercepix.services.billing import spend_credits
from commercepix.services.exceptions import ServiceError
from commercepix.services.generation import CREDITS_PER_GENERATION
from commercepix.services.image_generation.prompt_builder import PromptInputs, build_prompt
from commercepix.services.image_generation.replicate_client import (
    ImageEditClient,
    ReplicateImageClient,
)
from commercepix.services.images import read_dimensions
from commercepix.services.onboarding import TASK_FOR_MODE, mark_task_best_effort
from commercepix.services.rate_limit import RateLimiter
from commercepix.services.storage import ObjectStorage, build_asset_path
from commercepix.uow import UnitOfWork, create_uow_factory

logger = structlog.get_logger(__name__)

MAX_STACK_CHARS = 2000
OUTPUT_MIME_TYPE = "image/png"


def build_error_payload(error: BaseException, job: GenerationJob) -> str:
    """Serialize a processing failure into the job's error column."""
    stack = "".join(traceback.format_exception(error))
    return json.dumps(
        {
            "message": str(error) or type(error).__name__,
            "error_type": getattr(error, "error_type", type(error).__name__),
            "exception": type(error).__name__,
            "retryable": getattr(error, "retryable", False),
            "stack": stack[-MAX_STACK_CHARS:],
            "timestamp": utc_now().isoformat(),
            "mode": job.mode.value,
            "user_id": job.user_id,
            "job_id": str(job.id),
            "request_id": job.request_id,
        }
    )


async def process_single_job(
    job: GenerationJob,
    session_factory: Callable,
    settings: Settings,
    image_client: ImageEditClient,
    storage: ObjectStorage,
) -> bool:
    """Process one queued job end to end.

    Args:
        job: Queued job (detached from the locking session)
        session_factory: Factory for new database sessions
        settings: Application settings (generation cost)
        image_client: Image edit provider
        storage: Object storage for input download and output upload

    Returns:
        True if the job succeeded, False if it failed or was already claimed
    """
    start_time = time.time()
    log = logger.bind(
        job_id=str(job.id), user_id=job.user_id, mode=job.mode.value, request_id=job.request_id
    )

    async with session_factory() as session:
        uow = UnitOfWork(session)

        claimed = await uow.jobs.transition_status(job.id, JobStatus.RUNNING)
        await session.commit()
        if not claimed:
            log.info("generation.job.skipped", reason="not_queued")
            return False

        log.info("generation.job.started")
        uploaded_path = None

        try:
            input_asset = None
            if job.input_asset_id is not None:
                input_asset = await uow.assets.get_by_id(job.input_asset_id)
            if input_asset is None:
                raise ValueError("Input asset no longer exists")

            image = await storage.fetch_bytes(storage.inputs_bucket, input_asset.storage_path)

            result = build_prompt(job.mode, PromptInputs.model_validate(job.prompt_inputs or {}))

            output_bytes = await image_client.edit(image, result.prompt, input_asset.mime_type)
            width, height = read_dimensions(output_bytes)

            output_id = uuid4()
            path = build_asset_path(job.user_id, job.project_id, output_id, "png")
            await storage.upload(storage.outputs_bucket, path, output_bytes, OUTPUT_MIME_TYPE)
            uploaded_path = path

            output = await uow.assets.add(
                Asset(
                    id=output_id,
                    user_id=job.user_id,
                    project_id=job.project_id,
                    kind=AssetKind.OUTPUT,
                    mode=job.mode,
                    source_asset_id=input_asset.id,
                    prompt_version=result.payload.version,
                    prompt_payload=result.payload.to_json(),
                    storage_path=path,
                    mime_type=OUTPUT_MIME_TYPE,
                    width=width,
                    height=height,
                )
            )

            await spend_credits(
                uow,
                job.user_id,
                CREDITS_PER_GENERATION,
                CreditReason.GENERATION,
                CreditRefType.JOB,
                str(job.id),
            )

            succeeded = await uow.jobs.transition_status(
                job.id,
                JobStatus.SUCCEEDED,
                cost_cents=settings.generation_cost_cents,
                output_asset_id=output.id,
            )
            if not succeeded:
                raise RuntimeError("Job left the running state during processing")

            await session.commit()

        except Exception as e:
            await session.rollback()

            if uploaded_path is not None:
                await storage.discard(storage.outputs_bucket, uploaded_path)

            await uow.jobs.transition_status(
                job.id, JobStatus.FAILED, error=build_error_payload(e, job)
            )
            await session.commit()

            log.error(
                "generation.job.failed",
                error_type=type(e).__name__,
                error_message=str(e),
                duration_seconds=time.time() - start_time,
                exc_info=not isinstance(e, ServiceError),
            )
            return False

    uow_factory = create_uow_factory(session_factory)
    rate_limiter = RateLimiter(
        uow_factory, settings.rate_limit_per_minute, settings.rate_limit_per_day
    )
    await rate_limiter.record_usage(job.user_id)
    await mark_task_best_effort(uow_factory, job.user_id, TASK_FOR_MODE.get(job.mode))

    log.info(
        "generation.job.succeeded",
        output_asset_id=str(output.id),
        cost_cents=settings.generation_cost_cents,
        duration_seconds=time.time() - start_time,
    )
    return True


async def process_batch(
    session_factory: Callable,
    settings: Settings,
    image_client: ImageEditClient,
    storage: ObjectStorage,
) -> int:
    """Process a batch of queued jobs concurrently.

    Uses a temporary session to select jobs via FOR UPDATE SKIP LOCKED, then
    gives each job its own session.

    Returns:
        Number of jobs picked up
    """
    async with session_factory() as lock_session:
        uow = UnitOfWork(lock_session)
        jobs = await uow.jobs.get_queued_for_processing(limit=settings.worker_batch_size)

    if not jobs:
        return 0

    tasks = [
        process_single_job(job, session_factory, settings, image_client, storage) for job in jobs
    ]
    results = await asyncio.gather(*tasks, return_exceptions=True)

    for job, result in zip(jobs, results):
        if isinstance(result, Exception):
            logger.error(
                "generation.job.crashed",
                job_id=str(job.id),
                error=str(result),
                error_type=type(result).__name__,
            )
    return len(jobs)


async def recover_orphaned_jobs(session_factory: Callable) -> int:
    """Fail jobs left in 'running' by a crashed or restarted worker.

    The external call for such jobs may or may not have completed, so they
    are not re-queued; no credits were spent for them.

    Returns:
        Number of jobs failed
    """
    error = json.dumps(
        {
            "message": "Job interrupted by worker restart",
            "error_type": "INTERRUPTED",
            "timestamp": utc_now().isoformat(),
        }
    )
    async with session_factory() as session:
        uow = UnitOfWork(session)
        recovered = await uow.jobs.fail_orphaned_running(error)
        await session.commit()

    if recovered > 0:
        logger.info("worker.recovery", orphaned_jobs_failed=recovered)
    return recovered


async def run_generation_worker(
    session_factory: Callable,
    settings: Settings,
) -> None:
    """Main worker loop for image generation.

    Polls at POLL_INTERVAL_SECONDS, processes batches, and handles graceful shutdown.

    Args:
        session_factory: Factory function that creates database sessions
        settings: Application settings (poll interval, batch size, API tokens)
    """
    await recover_orphaned_jobs(session_factory)

    image_client = ReplicateImageClient(
        api_token=settings.replicate_api_token,
        model=settings.replicate_model,
        timeout_seconds=settings.replicate_timeout_seconds,
    )
    storage = ObjectStorage.from_settings(settings)

    logger.info(
        "worker.started",
        poll_interval=settings.poll_interval_seconds,
        batch_size=settings.worker_batch_size,
        model=settings.replicate_model,
    )

    try:
        while True:
            try:
                await process_batch(session_factory, settings, image_client, storage)
                await asyncio.sleep(settings.poll_interval_seconds)

            except asyncio.CancelledError:
                raise

            except Exception as e:
                logger.error(
                    "worker.error",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    exc_info=True,
                )
                await asyncio.sleep(5)

    except asyncio.CancelledError:
        logger.info("worker.stopped")
        raise
