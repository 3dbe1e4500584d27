"""Dashboard tests: per-user stats and recent outputs."""

from datetime import datetime, timedelta

import pytest

from commercepix.core.timezone import month_floor, utc_now
from commercepix.models.asset import Asset, AssetKind
from commercepix.models.generation_job import GenerationMode
from commercepix.services.dashboard import get_dashboard_stats
from conftest import OTHER_USER_ID, USER_ID


@pytest.fixture
def create_output(uow_factory):
    async def _create(project, created_at: datetime | None = None) -> Asset:
        async with await uow_factory() as uow:
            return await uow.assets.add(
                Asset(
                    user_id=project.user_id,
                    project_id=project.id,
                    kind=AssetKind.OUTPUT,
                    mode=GenerationMode.LIFESTYLE,
                    storage_path=f"{project.user_id}/{project.id}/out.png",
                    mime_type="image/png",
                    created_at=created_at or utc_now(),
                )
            )

    return _create


def test_month_floor():
    assert month_floor(datetime(2025, 3, 14, 15, 9, 26)) == datetime(2025, 3, 1)


@pytest.mark.asyncio
async def test_dashboard_stats_for_new_user(uow_factory):
    async with await uow_factory() as uow:
        stats = await get_dashboard_stats(uow, USER_ID)

    assert stats == {
        "credit_balance": 0,
        "images_this_month": 0,
        "total_projects": 0,
        "last_project": None,
    }


@pytest.mark.asyncio
async def test_dashboard_endpoint(
    test_client, auth_headers, create_project, create_output, grant, uow_factory
):
    mugs = await create_project(name="Mugs")
    lamps = await create_project(name="Lamps")
    theirs = await create_project(user_id=OTHER_USER_ID)
    async with await uow_factory() as uow:
        project = await uow.projects.get_by_id(mugs.id)
        project.updated_at = utc_now() + timedelta(minutes=5)
        uow.session.add(project)
    await create_output(lamps)
    await create_output(lamps)
    await create_output(mugs, created_at=month_floor(utc_now()) - timedelta(days=1))
    await create_output(theirs)
    await grant(USER_ID, 7)

    response = await test_client.get("/api/dashboard", headers=auth_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["credit_balance"] == 7
    assert data["images_this_month"] == 2
    assert data["total_projects"] == 2
    assert data["last_project"]["name"] == "Mugs"


@pytest.mark.asyncio
async def test_recent_outputs_are_scoped_and_signed(
    test_client, auth_headers, create_project, create_output
):
    mine = await create_project()
    theirs = await create_project(user_id=OTHER_USER_ID)
    older = await create_output(mine, created_at=utc_now() - timedelta(hours=1))
    newer = await create_output(mine)
    await create_output(theirs)

    response = await test_client.get(
        "/api/dashboard/recent-outputs?limit=5&expires_in=600", headers=auth_headers()
    )

    assert response.status_code == 200
    data = response.json()
    assert [a["id"] for a in data] == [str(newer.id), str(older.id)]
    assert all(a["signed_url"].startswith("https://storage.test/test-outputs/") for a in data)
    assert data[0]["signed_url"].endswith("X-Amz-Expires=600")

    response = await test_client.get(
        "/api/dashboard/recent-outputs?limit=1", headers=auth_headers()
    )
    assert len(response.json()) == 1
