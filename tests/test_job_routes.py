"""Integration tests for job status API endpoints.

- GET /api/jobs/{job_id} - owner only (403 for others, 404 when missing)
- GET /api/jobs - caller's jobs, optionally filtered by project
- GET /api/jobs/statistics - count and cost per status
"""

from uuid import uuid4

import pytest

from commercepix.models.generation_job import GenerationJob, GenerationMode, JobStatus
from conftest import OTHER_USER_ID, USER_ID


@pytest.fixture
def create_job(uow_factory, create_project):
    async def _create(
        user_id: str = USER_ID, project=None, status: JobStatus = JobStatus.QUEUED, cost: int = 0
    ) -> GenerationJob:
        project = project or await create_project(user_id=user_id)
        async with await uow_factory() as uow:
            return await uow.jobs.add(
                GenerationJob(
                    user_id=user_id,
                    project_id=project.id,
                    mode=GenerationMode.MAIN_WHITE,
                    status=status,
                    cost_cents=cost,
                )
            )

    return _create


@pytest.mark.asyncio
async def test_get_own_job(test_client, auth_headers, create_job):
    job = await create_job()

    response = await test_client.get(f"/api/jobs/{job.id}", headers=auth_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == str(job.id)
    assert data["status"] == "queued"
    assert data["error"] is None


@pytest.mark.asyncio
async def test_get_other_users_job_is_forbidden(test_client, auth_headers, create_job):
    job = await create_job(user_id=OTHER_USER_ID)

    response = await test_client.get(f"/api/jobs/{job.id}", headers=auth_headers())

    assert response.status_code == 403
    assert response.json()["error"]["type"] == "FORBIDDEN"
    assert "status" not in response.json()


@pytest.mark.asyncio
async def test_get_missing_job_returns_404(test_client, auth_headers):
    response = await test_client.get(f"/api/jobs/{uuid4()}", headers=auth_headers())

    assert response.status_code == 404
    assert response.json()["error"]["type"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_failed_job_exposes_parsed_error(test_client, auth_headers, create_job, uow_factory):
    job = await create_job()
    async with await uow_factory() as uow:
        await uow.jobs.transition_status(
            job.id, JobStatus.FAILED, error='{"message": "boom", "error_type": "UPSTREAM_PERMANENT"}'
        )

    response = await test_client.get(f"/api/jobs/{job.id}", headers=auth_headers())

    assert response.json()["status"] == "failed"
    assert response.json()["error"] == {"message": "boom", "error_type": "UPSTREAM_PERMANENT"}


@pytest.mark.asyncio
async def test_list_jobs_only_returns_callers_jobs(
    test_client, auth_headers, create_job, create_project
):
    project = await create_project()
    mine = await create_job(project=project)
    other_project_job = await create_job()
    await create_job(user_id=OTHER_USER_ID)

    response = await test_client.get("/api/jobs", headers=auth_headers())
    ids = {job["id"] for job in response.json()}
    assert ids == {str(mine.id), str(other_project_job.id)}

    response = await test_client.get(
        "/api/jobs", params={"project_id": str(project.id)}, headers=auth_headers()
    )
    assert [job["id"] for job in response.json()] == [str(mine.id)]


@pytest.mark.asyncio
async def test_job_statistics(test_client, auth_headers, create_job):
    await create_job(status=JobStatus.SUCCEEDED, cost=2)
    await create_job(status=JobStatus.SUCCEEDED, cost=2)
    await create_job(status=JobStatus.FAILED)
    await create_job(user_id=OTHER_USER_ID, status=JobStatus.SUCCEEDED, cost=2)

    response = await test_client.get("/api/jobs/statistics", headers=auth_headers())

    assert response.status_code == 200
    stats = {entry["status"]: entry for entry in response.json()}
    assert stats["succeeded"]["count"] == 2
    assert stats["succeeded"]["total_cost_cents"] == 4
    assert stats["succeeded"]["avg_cost_cents"] == 2
    assert stats["failed"]["count"] == 1
    assert stats["failed"]["total_cost_cents"] == 0
