"""Generation API endpoints.

- POST /api/generate - Validate a generation request and queue a job (202)
- GET /api/rate-limit/status - Current per-minute and per-day usage
"""

import structlog
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from commercepix.api.dependencies import (
    CurrentUser,
    get_current_user,
    get_rate_limiter,
    get_request_id,
    get_uow_factory,
)
from commercepix.api.routes.jobs import JobResponse
from commercepix.services.generation import GenerateRequest, start_generation
from commercepix.services.rate_limit import LimitCheck, RateLimiter

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api", tags=["generation"])


class RateLimitInfo(BaseModel):
    per_minute: LimitCheck
    per_day: LimitCheck


class GenerateResponse(BaseModel):
    job: JobResponse
    rate_limit: RateLimitInfo


def rate_limit_headers(check: LimitCheck) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(check.limit),
        "X-RateLimit-Remaining": str(check.remaining),
        "X-RateLimit-Reset": check.reset_at.isoformat() + "Z",
    }


@router.post(
    "/generate", response_model=GenerateResponse, status_code=status.HTTP_202_ACCEPTED
)
async def generate(
    request: GenerateRequest,
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    uow_factory=Depends(get_uow_factory),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    request_id: str | None = Depends(get_request_id),
) -> GenerateResponse:
    """Queue an AI edit of an uploaded product photo.

    The job is processed by the generation worker; poll GET /api/jobs/{id}
    for the outcome.

    Raises:
        RateLimitExceededError 429, PaymentRequiredError 402, ValidationError 400,
        NotFoundError 404, ForbiddenError 403
    """
    job, decision = await start_generation(
        uow_factory, rate_limiter, user.id, request, request_id=request_id
    )
    response.headers.update(rate_limit_headers(decision.per_minute))
    return GenerateResponse(
        job=JobResponse.from_job(job),
        rate_limit=RateLimitInfo(per_minute=decision.per_minute, per_day=decision.per_day),
    )


@router.get("/rate-limit/status", response_model=RateLimitInfo)
async def rate_limit_status(
    user: CurrentUser = Depends(get_current_user),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> RateLimitInfo:
    stats = await rate_limiter.usage_stats(user.id)
    return RateLimitInfo(per_minute=stats["per_minute"], per_day=stats["per_day"])
