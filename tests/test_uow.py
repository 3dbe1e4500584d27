"""Unit of Work pattern tests.

Tests focus on transaction management:
- Successful commits persist changes
- Exceptions trigger rollback and propagate
- Multiple repository operations are atomic
"""

import pytest

from commercepix.models.billing import CreditLedgerEntry, CreditReason
from commercepix.models.project import Project


@pytest.mark.asyncio
async def test_uow_commits_on_successful_exit(uow_factory):
    async with await uow_factory() as uow:
        project = await uow.projects.add(Project(user_id="user_1", name="Candles"))

    async with await uow_factory() as uow:
        found = await uow.projects.get_by_id(project.id)
    assert found is not None
    assert found.name == "Candles"


@pytest.mark.asyncio
async def test_uow_rollback_on_exception(uow_factory):
    with pytest.raises(ValueError, match="Simulated error"):
        async with await uow_factory() as uow:
            project = await uow.projects.add(Project(user_id="user_1", name="Candles"))
            raise ValueError("Simulated error")

    async with await uow_factory() as uow:
        assert await uow.projects.get_by_id(project.id) is None


@pytest.mark.asyncio
async def test_uow_multiple_operations_are_atomic(uow_factory):
    with pytest.raises(RuntimeError):
        async with await uow_factory() as uow:
            await uow.projects.add(Project(user_id="user_1", name="Candles"))
            await uow.credits.add(
                CreditLedgerEntry(user_id="user_1", delta=10, reason=CreditReason.BONUS)
            )
            raise RuntimeError("fail after both writes")

    async with await uow_factory() as uow:
        assert await uow.projects.list_for_user("user_1") == []
        assert await uow.credits.get_balance("user_1") == 0
