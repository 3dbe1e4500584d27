"""Integration tests for generation API endpoints.

Tests the request-side checks of POST /api/generate, in order:
- Authentication (401)
- Rate limits (429 with Retry-After and X-RateLimit-* headers), counting queued jobs
- Credit balance (402), covering jobs still in flight
- Mode (400)
- Input asset existence (404), ownership (403), project and kind (400)
and the happy path (202 with a queued job).
"""

import asyncio
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select

from commercepix.core.timezone import utc_now
from commercepix.models.generation_job import GenerationJob, JobStatus
from commercepix.services.rate_limit import RateLimiter
from conftest import OTHER_USER_ID, USER_ID


def _body(project, asset, mode="main_white", **inputs):
    return {
        "project_id": str(project.id),
        "input_asset_id": str(asset.id),
        "mode": mode,
        "inputs": inputs,
    }


async def _job_count(uow_factory) -> int:
    async with await uow_factory() as uow:
        result = await uow.session.execute(select(GenerationJob))
        return len(result.scalars().all())


@pytest_asyncio.fixture
async def fresh_minute():
    """Start close to the beginning of a UTC minute so a burst stays in one window."""
    second = utc_now().second
    if second >= 55:
        await asyncio.sleep(60.2 - second)


@pytest.mark.asyncio
async def test_generate_queues_job(
    test_client, auth_headers, create_project, create_input_asset, grant, uow_factory
):
    project = await create_project()
    asset = await create_input_asset(project)
    await grant(USER_ID, 3)

    response = await test_client.post(
        "/api/generate",
        json=_body(project, asset, "lifestyle", product_description="oak cutting board"),
        headers={**auth_headers(), "X-Request-ID": "req-generate-1"},
    )

    assert response.status_code == 202
    data = response.json()
    assert data["job"]["status"] == "queued"
    assert data["job"]["mode"] == "lifestyle"
    assert data["job"]["input_asset_id"] == str(asset.id)
    assert data["job"]["output_asset_id"] is None
    assert data["rate_limit"]["per_minute"]["limit"] == 5
    assert data["rate_limit"]["per_minute"]["current"] == 1
    assert data["rate_limit"]["per_day"]["limit"] == 50
    assert data["rate_limit"]["per_day"]["remaining"] == 49

    assert response.headers["X-RateLimit-Limit"] == "5"
    assert response.headers["X-RateLimit-Remaining"] == "4"
    assert response.headers["X-Request-ID"] == "req-generate-1"

    async with await uow_factory() as uow:
        job = await uow.jobs.get_by_id(UUID(data["job"]["id"]))
    assert job.status == JobStatus.QUEUED
    assert job.request_id == "req-generate-1"
    assert job.prompt_inputs["product_description"] == "oak cutting board"


@pytest.mark.asyncio
async def test_generate_requires_authentication(test_client, create_project, create_input_asset):
    project = await create_project()
    asset = await create_input_asset(project)

    response = await test_client.post("/api/generate", json=_body(project, asset))

    assert response.status_code == 401
    assert response.json()["error"]["type"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_generate_without_credits_returns_402(
    test_client, auth_headers, create_project, create_input_asset, uow_factory
):
    project = await create_project()
    asset = await create_input_asset(project)

    response = await test_client.post(
        "/api/generate", json=_body(project, asset), headers=auth_headers()
    )

    assert response.status_code == 402
    assert response.json()["error"]["type"] == "NO_CREDITS"
    assert await _job_count(uow_factory) == 0


@pytest.mark.asyncio
async def test_generate_with_unknown_mode_returns_400(
    test_client, auth_headers, create_project, create_input_asset, grant
):
    project = await create_project()
    asset = await create_input_asset(project)
    await grant()

    response = await test_client.post(
        "/api/generate", json=_body(project, asset, mode="banner"), headers=auth_headers()
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["type"] == "VALIDATION_ERROR"
    assert "main_white" in error["message"]


@pytest.mark.asyncio
async def test_generate_with_missing_asset_returns_404(
    test_client, auth_headers, create_project, grant
):
    project = await create_project()
    await grant()

    response = await test_client.post(
        "/api/generate",
        json={"project_id": str(project.id), "input_asset_id": str(uuid4()), "mode": "main_white"},
        headers=auth_headers(),
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_generate_with_other_users_asset_returns_403(
    test_client, auth_headers, create_project, create_input_asset, grant, uow_factory
):
    theirs = await create_project(user_id=OTHER_USER_ID)
    their_asset = await create_input_asset(theirs)
    mine = await create_project()
    await grant()

    response = await test_client.post(
        "/api/generate", json=_body(mine, their_asset), headers=auth_headers()
    )

    assert response.status_code == 403
    assert await _job_count(uow_factory) == 0


@pytest.mark.asyncio
async def test_generate_with_asset_from_another_project_returns_400(
    test_client, auth_headers, create_project, create_input_asset, grant
):
    first = await create_project(name="Mugs")
    second = await create_project(name="Plates")
    asset = await create_input_asset(first)
    await grant()

    response = await test_client.post(
        "/api/generate", json=_body(second, asset), headers=auth_headers()
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_generate_over_daily_limit_returns_429_with_headers(
    test_client, auth_headers, create_project, create_input_asset, grant, uow_factory, monkeypatch
):
    monkeypatch.setenv("RATE_LIMIT_PER_DAY", "2")
    project = await create_project()
    asset = await create_input_asset(project)
    await grant()

    limiter = RateLimiter(uow_factory, per_minute_limit=5, per_day_limit=2)
    await limiter.record_usage(USER_ID)
    await limiter.record_usage(USER_ID)

    response = await test_client.post(
        "/api/generate", json=_body(project, asset), headers=auth_headers()
    )

    assert response.status_code == 429
    error = response.json()["error"]
    assert error["type"] == "RATE_LIMIT_EXCEEDED"
    assert error["blocked_by"] == "per_day"
    assert error["message"].startswith("Daily limit reached")

    assert response.headers["X-RateLimit-Limit"] == "2"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert int(response.headers["Retry-After"]) >= 1
    assert response.headers["X-RateLimit-Reset"].endswith("T00:00:00Z")
    assert await _job_count(uow_factory) == 0


@pytest.mark.asyncio
async def test_rate_limit_is_checked_before_credits(
    test_client, auth_headers, create_project, create_input_asset, uow_factory, monkeypatch
):
    monkeypatch.setenv("RATE_LIMIT_PER_DAY", "1")
    project = await create_project()
    asset = await create_input_asset(project)
    await RateLimiter(uow_factory, per_day_limit=1).record_usage(USER_ID)

    response = await test_client.post(
        "/api/generate", json=_body(project, asset), headers=auth_headers()
    )

    assert response.status_code == 429


@pytest.mark.asyncio
async def test_rate_limit_status_reports_usage(test_client, auth_headers, uow_factory):
    await RateLimiter(uow_factory).record_usage(USER_ID)

    response = await test_client.get("/api/rate-limit/status", headers=auth_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["per_day"]["current"] == 1
    assert data["per_day"]["remaining"] == 49
    assert data["per_minute"]["limit"] == 5


@pytest.mark.asyncio
async def test_sixth_request_in_one_minute_returns_429(
    test_client,
    auth_headers,
    create_project,
    create_input_asset,
    grant,
    uow_factory,
    fresh_minute,
):
    project = await create_project()
    asset = await create_input_asset(project)
    await grant(USER_ID, 20)

    responses = [
        await test_client.post("/api/generate", json=_body(project, asset), headers=auth_headers())
        for _ in range(6)
    ]

    assert [r.status_code for r in responses] == [202, 202, 202, 202, 202, 429]
    assert [r.headers["X-RateLimit-Remaining"] for r in responses[:5]] == ["4", "3", "2", "1", "0"]
    error = responses[5].json()["error"]
    assert error["type"] == "RATE_LIMIT_EXCEEDED"
    assert error["blocked_by"] == "per_minute"
    assert await _job_count(uow_factory) == 5


@pytest.mark.asyncio
async def test_failed_jobs_do_not_count_against_the_limit(
    test_client,
    auth_headers,
    create_project,
    create_input_asset,
    grant,
    uow_factory,
    fresh_minute,
):
    project = await create_project()
    asset = await create_input_asset(project)
    await grant(USER_ID, 20)
    for _ in range(5):
        response = await test_client.post(
            "/api/generate", json=_body(project, asset), headers=auth_headers()
        )
        assert response.status_code == 202

    async with await uow_factory() as uow:
        jobs = await uow.jobs.list_for_user(USER_ID)
        await uow.jobs.transition_status(jobs[0].id, JobStatus.RUNNING)
        await uow.jobs.transition_status(jobs[0].id, JobStatus.FAILED, error="{}")

    response = await test_client.post(
        "/api/generate", json=_body(project, asset), headers=auth_headers()
    )

    assert response.status_code == 202
    assert response.headers["X-RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_credits_must_cover_jobs_in_flight(
    test_client, auth_headers, create_project, create_input_asset, grant, uow_factory
):
    project = await create_project()
    asset = await create_input_asset(project)
    await grant(USER_ID, 1)

    first = await test_client.post(
        "/api/generate", json=_body(project, asset), headers=auth_headers()
    )
    second = await test_client.post(
        "/api/generate", json=_body(project, asset), headers=auth_headers()
    )

    assert first.status_code == 202
    assert second.status_code == 402
    assert second.json()["error"]["type"] == "NO_CREDITS"
    assert "still in progress" in second.json()["error"]["message"]
    assert await _job_count(uow_factory) == 1
