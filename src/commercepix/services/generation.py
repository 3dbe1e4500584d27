"""Request-side generation orchestration.

A generation request is checked (rate limit, credits, input ownership) and
turned into a queued GenerationJob. The generation worker picks it up from
there; nothing slow happens inside the HTTP request.
"""

from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from commercepix.models.asset import AssetKind
from commercepix.models.generation_job import GenerationJob, GenerationMode
from commercepix.services.exceptions import (
    ForbiddenError,
    NotFoundError,
    PaymentRequiredError,
    RateLimitExceededError,
    ValidationError,
)
from commercepix.services.image_generation.prompt_builder import PROMPT_VERSION, PromptInputs
from commercepix.services.rate_limit import RateLimitDecision, RateLimiter

logger = structlog.get_logger(__name__)

CREDITS_PER_GENERATION = 1


class GenerateRequest(BaseModel):
    project_id: UUID
    input_asset_id: UUID
    mode: str = Field(..., description="main_white | lifestyle | feature_callout | packaging")
    inputs: PromptInputs = Field(default_factory=PromptInputs)


def parse_mode(value: str) -> GenerationMode:
    try:
        return GenerationMode(value)
    except ValueError:
        allowed = ", ".join(m.value for m in GenerationMode)
        raise ValidationError(f"Invalid mode '{value}'. Must be one of: {allowed}") from None


async def start_generation(
    uow_factory,
    rate_limiter: RateLimiter,
    user_id: str,
    request: GenerateRequest,
    request_id: Optional[str] = None,
) -> tuple[GenerationJob, RateLimitDecision]:
    """Validate a generation request and enqueue a job.

    Checks run in order: rate limits, credit balance, mode, input asset.
    The balance has to cover this job plus every job of the user still queued
    or running, since credits are only spent when a job succeeds. A blank
    brand_tone is filled from the user's saved default.

    Args:
        uow_factory: UnitOfWork factory
        rate_limiter: Limiter for the per-minute / per-day windows
        user_id: Authenticated caller
        request: Generation parameters
        request_id: Correlation id stored on the job for the worker's logs

    Returns:
        (queued job, rate limit decision with this request counted)

    Raises:
        RateLimitExceededError: A window is exhausted (429)
        PaymentRequiredError: Credits do not cover pending jobs plus this one (402)
        ValidationError: Unknown mode, or asset not in the project / not an input (400)
        NotFoundError: Input asset does not exist (404)
        ForbiddenError: Input asset belongs to another user (403)
    """
    decision = await rate_limiter.check_all(user_id)
    if not decision.allowed:
        check = decision.blocking_check
        raise RateLimitExceededError(
            check.message or "Rate limit exceeded",
            limit=check.limit,
            reset_at=check.reset_at,
            blocked_by=decision.blocked_by.value,
        )

    async with await uow_factory() as uow:
        balance = await uow.credits.get_balance(user_id)
        pending = await uow.jobs.count_in_flight(user_id)
        if balance < CREDITS_PER_GENERATION * (pending + 1):
            logger.info(
                "generation.rejected",
                user_id=user_id,
                reason="no_credits",
                balance=balance,
                pending_jobs=pending,
            )
            if pending:
                raise PaymentRequiredError(
                    f"Not enough credits: {pending} generation(s) still in progress "
                    f"would use your remaining {balance} credit(s)."
                )
            raise PaymentRequiredError(
                "No credits remaining. Upgrade your plan or wait for your monthly reset."
            )

        mode = parse_mode(request.mode)

        asset = await uow.assets.get_by_id(request.input_asset_id)
        if asset is None:
            raise NotFoundError("Input asset not found")
        if asset.user_id != user_id:
            raise ForbiddenError("Input asset belongs to another user")
        if asset.project_id != request.project_id:
            raise ValidationError("Input asset does not belong to this project")
        if asset.kind != AssetKind.INPUT:
            raise ValidationError("Only uploaded input assets can be used for generation")

        inputs = request.inputs
        if not (inputs.brand_tone or "").strip():
            preferences = await uow.preferences.get(user_id)
            if preferences is not None and preferences.default_brand_tone:
                inputs = inputs.model_copy(
                    update={"brand_tone": preferences.default_brand_tone.value}
                )

        job = await uow.jobs.add(
            GenerationJob(
                user_id=user_id,
                project_id=request.project_id,
                mode=mode,
                input_asset_id=asset.id,
                prompt_version=PROMPT_VERSION,
                prompt_inputs=inputs.model_dump(mode="json"),
                request_id=request_id,
            )
        )

    logger.info(
        "generation.job.queued",
        job_id=str(job.id),
        user_id=user_id,
        mode=mode.value,
        input_asset_id=str(asset.id),
    )
    return job, decision.after_request()
