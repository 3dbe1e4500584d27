"""Rate limiter tests.

Tests focus on the per-minute and per-day windows:
- Counters start at zero and are created lazily
- Queued and running jobs count against the window they were created in
- Limits block at the configured count, minute window reported first
- Windows reset at the next minute / day boundary
- Cleanup removes expired counters only
- The limiter fails open when the counter store is unavailable
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from commercepix.models.generation_job import GenerationJob, GenerationMode, JobStatus
from commercepix.models.project import Project
from commercepix.models.usage_counter import CounterType, UsageCounter
from commercepix.services.rate_limit import RateLimiter, period_bounds


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 14, 15, 9, 26))


@pytest.fixture
def limiter(uow_factory, clock):
    return RateLimiter(uow_factory, per_minute_limit=3, per_day_limit=5, clock=clock)


def test_period_bounds():
    now = datetime(2025, 3, 14, 15, 9, 26, 535000)

    assert period_bounds(CounterType.PER_MINUTE, now) == (
        datetime(2025, 3, 14, 15, 9),
        datetime(2025, 3, 14, 15, 10),
    )
    assert period_bounds(CounterType.PER_DAY, now) == (
        datetime(2025, 3, 14),
        datetime(2025, 3, 15),
    )


@pytest.mark.asyncio
async def test_first_check_creates_counters_and_allows(limiter, uow_factory):
    decision = await limiter.check_all("user_1")

    assert decision.allowed is True
    assert decision.blocked_by is None
    assert decision.per_minute.current == 0
    assert decision.per_minute.remaining == 3
    assert decision.per_day.remaining == 5
    assert decision.per_minute.reset_at == datetime(2025, 3, 14, 15, 10)

    async with await uow_factory() as uow:
        result = await uow.session.execute(select(UsageCounter))
        assert len(result.scalars().all()) == 2


@pytest.mark.asyncio
async def test_minute_limit_blocks_with_wait_message(limiter):
    for _ in range(3):
        assert await limiter.record_usage("user_1") is True

    decision = await limiter.check_all("user_1")

    assert decision.allowed is False
    assert decision.blocked_by == CounterType.PER_MINUTE
    assert decision.blocking_check is decision.per_minute
    assert decision.per_minute.remaining == 0
    assert decision.per_minute.message == (
        "Slow down! You've reached the maximum of 3 generations per minute. "
        "Please wait 34 seconds before trying again."
    )


@pytest.mark.asyncio
async def test_minute_window_resets_next_minute(limiter, clock):
    for _ in range(3):
        await limiter.record_usage("user_1")

    clock.now = clock.now + timedelta(minutes=1)
    decision = await limiter.check_all("user_1")

    assert decision.allowed is True
    assert decision.per_minute.current == 0
    assert decision.per_day.current == 3


@pytest.mark.asyncio
async def test_day_limit_blocks_across_minutes(limiter, clock):
    for i in range(5):
        clock.now = datetime(2025, 3, 14, 15, i)
        await limiter.record_usage("user_1")

    clock.now = datetime(2025, 3, 14, 18, 0)
    decision = await limiter.check_all("user_1")

    assert decision.allowed is False
    assert decision.blocked_by == CounterType.PER_DAY
    assert decision.per_day.reset_at == datetime(2025, 3, 15)
    assert "Daily limit reached" in decision.per_day.message

    clock.now = datetime(2025, 3, 15, 0, 0, 1)
    assert (await limiter.check_all("user_1")).allowed is True


@pytest.mark.asyncio
async def test_minute_window_reported_first_when_both_exhausted(uow_factory, clock):
    limiter = RateLimiter(uow_factory, per_minute_limit=2, per_day_limit=2, clock=clock)
    await limiter.record_usage("user_1")
    await limiter.record_usage("user_1")

    decision = await limiter.check_all("user_1")

    assert decision.per_minute.allowed is False
    assert decision.per_day.allowed is False
    assert decision.blocked_by == CounterType.PER_MINUTE


@pytest.mark.asyncio
async def test_counters_are_per_user(limiter):
    for _ in range(3):
        await limiter.record_usage("user_1")

    assert (await limiter.check_all("user_1")).allowed is False
    assert (await limiter.check_all("user_2")).allowed is True


@pytest.mark.asyncio
async def test_usage_stats_does_not_create_rows(limiter, uow_factory):
    stats = await limiter.usage_stats("user_1")

    assert stats["per_minute"].current == 0
    assert stats["per_day"].remaining == 5

    async with await uow_factory() as uow:
        result = await uow.session.execute(select(UsageCounter))
        assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_cleanup_removes_only_expired_counters(limiter, clock, uow_factory):
    clock.now = datetime(2025, 3, 10, 12, 0)
    await limiter.record_usage("user_1")
    clock.now = datetime(2025, 3, 14, 15, 5)
    await limiter.record_usage("user_1")
    clock.now = datetime(2025, 3, 14, 15, 9, 26)
    await limiter.record_usage("user_1")

    deleted = await limiter.cleanup_old_counters()

    # 2025-03-10 minute + day rows and the 15:05 minute row
    assert deleted == 3
    async with await uow_factory() as uow:
        result = await uow.session.execute(select(UsageCounter))
        remaining = {(c.counter_type, c.period_start) for c in result.scalars().all()}
    assert remaining == {
        (CounterType.PER_DAY, datetime(2025, 3, 14)),
        (CounterType.PER_MINUTE, datetime(2025, 3, 14, 15, 9)),
    }


@pytest.mark.asyncio
async def test_check_fails_open_when_store_unavailable(clock):
    async def broken_uow_factory():
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    limiter = RateLimiter(broken_uow_factory, per_minute_limit=3, per_day_limit=5, clock=clock)

    decision = await limiter.check_all("user_1")

    assert decision.allowed is True
    assert decision.per_minute.remaining == 3
    assert await limiter.record_usage("user_1") is False


@pytest.mark.asyncio
async def test_in_flight_jobs_count_against_their_window(limiter, clock, uow_factory):
    async with await uow_factory() as uow:
        project = await uow.projects.add(Project(user_id="user_1", name="Lamps"))
        for status, created_at in (
            (JobStatus.QUEUED, clock.now),
            (JobStatus.RUNNING, clock.now),
            (JobStatus.FAILED, clock.now),
            (JobStatus.QUEUED, clock.now - timedelta(minutes=3)),
            (JobStatus.QUEUED, clock.now - timedelta(days=1)),
        ):
            await uow.jobs.add(
                GenerationJob(
                    user_id="user_1",
                    project_id=project.id,
                    mode=GenerationMode.MAIN_WHITE,
                    status=status,
                    created_at=created_at,
                )
            )
    await limiter.record_usage("user_1")

    decision = await limiter.check_all("user_1")
    stats = await limiter.usage_stats("user_1")

    assert decision.per_minute.current == 3
    assert decision.per_minute.allowed is False
    assert decision.blocked_by == CounterType.PER_MINUTE
    assert decision.per_day.current == 4
    assert stats["per_minute"].current == 3
    assert stats["per_day"].remaining == 1


@pytest.mark.asyncio
async def test_after_request_counts_the_accepted_request(limiter):
    decision = await limiter.check_all("user_1")

    counted = decision.after_request()

    assert counted.per_minute.current == 1
    assert counted.per_minute.remaining == 2
    assert counted.per_day.remaining == 4
    assert decision.per_minute.remaining == 3
