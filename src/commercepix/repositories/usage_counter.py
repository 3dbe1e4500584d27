"""UsageCounter repository for CommercePix backend."""

from datetime import datetime

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from commercepix.core.timezone import utc_now
from commercepix.models.usage_counter import CounterType, UsageCounter


class UsageCounterRepository:
    """Repository for per-period usage counters.

    Counters are read and then incremented, not upserted atomically.
    Concurrent requests from the same user can under-count.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(
        self, user_id: str, counter_type: CounterType, period_start: datetime
    ) -> UsageCounter | None:
        result = await self.session.execute(
            select(UsageCounter).where(
                UsageCounter.user_id == user_id,  # type: ignore[arg-type]
                UsageCounter.counter_type == counter_type,  # type: ignore[arg-type]
                UsageCounter.period_start == period_start,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def get_or_create(
        self, user_id: str, counter_type: CounterType, period_start: datetime
    ) -> UsageCounter:
        """Fetch the counter for an exact period, creating it at zero if absent.

        Args:
            user_id: Counter owner
            counter_type: per_minute or per_day
            period_start: Truncated window start

        Returns:
            Existing or newly flushed counter
        """
        counter = await self.get(user_id, counter_type, period_start)
        if counter is None:
            counter = UsageCounter(
                user_id=user_id, counter_type=counter_type, period_start=period_start, count=0
            )
            self.session.add(counter)
            await self.session.flush()
        return counter

    async def increment(self, counter: UsageCounter) -> UsageCounter:
        counter.count += 1
        counter.updated_at = utc_now()
        self.session.add(counter)
        await self.session.flush()
        return counter

    async def delete_expired(self, minute_cutoff: datetime, day_cutoff: datetime) -> int:
        """Delete per-minute rows older than minute_cutoff and per-day rows older than day_cutoff.

        Returns:
            Number of rows deleted
        """
        result = await self.session.execute(
            delete(UsageCounter).where(
                or_(
                    (UsageCounter.counter_type == CounterType.PER_MINUTE)  # type: ignore[arg-type]
                    & (UsageCounter.period_start < minute_cutoff),  # type: ignore[arg-type]
                    (UsageCounter.counter_type == CounterType.PER_DAY)  # type: ignore[arg-type]
                    & (UsageCounter.period_start < day_cutoff),  # type: ignore[arg-type]
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount  # type: ignore[attr-defined]
