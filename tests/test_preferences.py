"""Account settings tests: preferences, brand tone default, account deletion requests."""

from uuid import UUID

import pytest

from commercepix.models.preferences import BrandTone
from commercepix.services.exceptions import ValidationError
from commercepix.services.preferences import request_account_deletion, update_preferences
from conftest import USER_ID


@pytest.mark.asyncio
async def test_settings_are_created_with_defaults(test_client, auth_headers):
    response = await test_client.get("/api/settings", headers=auth_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["default_brand_tone"] is None
    assert data["email_notifications"] is True
    assert data["deletion_requested_at"] is None


@pytest.mark.asyncio
async def test_patch_updates_only_sent_fields(test_client, auth_headers):
    response = await test_client.patch(
        "/api/settings", json={"default_brand_tone": "luxury"}, headers=auth_headers()
    )
    assert response.status_code == 200
    assert response.json()["default_brand_tone"] == "luxury"

    response = await test_client.patch(
        "/api/settings", json={"email_notifications": False}, headers=auth_headers()
    )
    data = response.json()
    assert data["default_brand_tone"] == "luxury"
    assert data["email_notifications"] is False

    response = await test_client.patch(
        "/api/settings", json={"default_brand_tone": None}, headers=auth_headers()
    )
    assert response.json()["default_brand_tone"] is None
    assert response.json()["email_notifications"] is False


@pytest.mark.asyncio
async def test_patch_rejects_unknown_tone(test_client, auth_headers):
    response = await test_client.patch(
        "/api/settings", json={"default_brand_tone": "grumpy"}, headers=auth_headers()
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_preferences_validation(uow_factory):
    async with await uow_factory() as uow:
        with pytest.raises(ValidationError, match="email_notifications"):
            await update_preferences(uow, USER_ID, {"email_notifications": None})
        with pytest.raises(ValidationError, match="Unknown settings"):
            await update_preferences(uow, USER_ID, {"theme": "dark"})


@pytest.mark.asyncio
async def test_deletion_request_keeps_first_timestamp(uow_factory):
    async with await uow_factory() as uow:
        first = await request_account_deletion(uow, USER_ID)
        requested_at = first.deletion_requested_at

    async with await uow_factory() as uow:
        second = await request_account_deletion(uow, USER_ID)

    assert requested_at is not None
    assert second.deletion_requested_at == requested_at


@pytest.mark.asyncio
async def test_delete_account_endpoint(test_client, auth_headers):
    response = await test_client.post("/api/settings/delete-account", headers=auth_headers())

    assert response.status_code == 202
    data = response.json()
    assert data["success"] is True
    assert "Our team will contact you" in data["message"]

    response = await test_client.get("/api/settings", headers=auth_headers())
    assert response.json()["deletion_requested_at"] is not None


@pytest.mark.asyncio
async def test_generate_uses_default_brand_tone_when_blank(
    test_client, auth_headers, create_project, create_input_asset, grant, uow_factory
):
    async with await uow_factory() as uow:
        await update_preferences(uow, USER_ID, {"default_brand_tone": BrandTone.PLAYFUL})
    project = await create_project()
    asset = await create_input_asset(project)
    await grant(USER_ID, 5)
    body = {"project_id": str(project.id), "input_asset_id": str(asset.id), "mode": "lifestyle"}

    defaulted = await test_client.post(
        "/api/generate", json={**body, "inputs": {"brand_tone": "  "}}, headers=auth_headers()
    )
    explicit = await test_client.post(
        "/api/generate", json={**body, "inputs": {"brand_tone": "bold"}}, headers=auth_headers()
    )

    async with await uow_factory() as uow:
        defaulted_job = await uow.jobs.get_by_id(UUID(defaulted.json()["job"]["id"]))
        explicit_job = await uow.jobs.get_by_id(UUID(explicit.json()["job"]["id"]))
    assert defaulted_job.prompt_inputs["brand_tone"] == "playful"
    assert explicit_job.prompt_inputs["brand_tone"] == "bold"
