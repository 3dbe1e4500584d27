"""Per-user generation rate limiting backed by the usage_counters table.

Two fixed windows are checked on every generation request: the current UTC
minute and the current UTC day. Each window has its own counter row, created
lazily on first check. Counters are incremented only when a job succeeds, so
a window's usage is its counter plus the user's queued and running jobs
created inside it. If the store is unavailable the limiter fails open for
that window and logs the failure.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from commercepix.core.timezone import day_floor, minute_floor, utc_now
from commercepix.models.usage_counter import CounterType

logger = structlog.get_logger(__name__)

# Expired counters are kept this long before cleanup deletes them
MINUTE_COUNTER_RETENTION = timedelta(minutes=2)
DAY_COUNTER_RETENTION = timedelta(days=2)


class LimitCheck(BaseModel):
    """Result of checking one window."""

    allowed: bool
    limit: int
    current: int
    remaining: int
    reset_at: datetime
    message: Optional[str] = None

    def counted(self) -> "LimitCheck":
        """This check with one more request counted against the window."""
        current = self.current + 1
        return self.model_copy(
            update={"current": current, "remaining": max(0, self.limit - current)}
        )


class RateLimitDecision(BaseModel):
    allowed: bool
    per_minute: LimitCheck
    per_day: LimitCheck
    blocked_by: Optional[CounterType] = None

    @property
    def blocking_check(self) -> Optional[LimitCheck]:
        if self.blocked_by == CounterType.PER_MINUTE:
            return self.per_minute
        if self.blocked_by == CounterType.PER_DAY:
            return self.per_day
        return None

    def after_request(self) -> "RateLimitDecision":
        """Usage as it stands once the accepted request is counted."""
        return self.model_copy(
            update={"per_minute": self.per_minute.counted(), "per_day": self.per_day.counted()}
        )


def period_bounds(counter_type: CounterType, now: datetime) -> tuple[datetime, datetime]:
    """(period_start, reset_at) of the window containing now."""
    if counter_type == CounterType.PER_MINUTE:
        start = minute_floor(now)
        return start, start + timedelta(minutes=1)
    start = day_floor(now)
    return start, start + timedelta(days=1)


def _denied_message(counter_type: CounterType, limit: int, reset_at: datetime, now: datetime) -> str:
    if counter_type == CounterType.PER_MINUTE:
        seconds = max(1, int((reset_at - now).total_seconds()))
        return (
            f"Slow down! You've reached the maximum of {limit} generations per minute. "
            f"Please wait {seconds} seconds before trying again."
        )
    return (
        f"Daily limit reached. You've used all {limit} generations for today. "
        f"Your limit resets at {reset_at:%H:%M} UTC."
    )


class RateLimiter:
    """Checks and records generation usage against per-minute and per-day limits.

    Every counter operation runs in its own unit of work so a failure in one
    window never affects the other.
    """

    def __init__(
        self,
        uow_factory,
        per_minute_limit: int = 5,
        per_day_limit: int = 50,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow_factory = uow_factory
        self.limits = {
            CounterType.PER_MINUTE: per_minute_limit,
            CounterType.PER_DAY: per_day_limit,
        }
        self.clock = clock

    async def check(
        self, user_id: str, counter_type: CounterType, now: Optional[datetime] = None
    ) -> LimitCheck:
        """Check one window, creating its counter row if this is the first request in it.

        Jobs still queued or running count against the window they were created in.

        Args:
            user_id: User being limited
            counter_type: per_minute or per_day
            now: Evaluation time (defaults to the limiter clock)

        Returns:
            LimitCheck; allowed=True when the store is unavailable
        """
        now = now or self.clock()
        limit = self.limits[counter_type]
        period_start, reset_at = period_bounds(counter_type, now)

        try:
            async with await self.uow_factory() as uow:
                counter = await uow.usage_counters.get_or_create(
                    user_id, counter_type, period_start
                )
                in_flight = await uow.jobs.count_in_flight(
                    user_id, created_from=period_start, created_before=reset_at
                )
                current = counter.count + in_flight
        except SQLAlchemyError as e:
            logger.error(
                "rate_limit.check_failed",
                user_id=user_id,
                counter_type=counter_type.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return LimitCheck(
                allowed=True, limit=limit, current=0, remaining=limit, reset_at=reset_at
            )

        allowed = current < limit
        return LimitCheck(
            allowed=allowed,
            limit=limit,
            current=current,
            remaining=max(0, limit - current),
            reset_at=reset_at,
            message=None if allowed else _denied_message(counter_type, limit, reset_at, now),
        )

    async def check_all(self, user_id: str) -> RateLimitDecision:
        """Check both windows. The minute window is reported first when both are exhausted."""
        now = self.clock()
        per_minute = await self.check(user_id, CounterType.PER_MINUTE, now)
        per_day = await self.check(user_id, CounterType.PER_DAY, now)

        blocked_by = None
        if not per_minute.allowed:
            blocked_by = CounterType.PER_MINUTE
        elif not per_day.allowed:
            blocked_by = CounterType.PER_DAY

        if blocked_by is not None:
            logger.info("rate_limit.exceeded", user_id=user_id, blocked_by=blocked_by.value)

        return RateLimitDecision(
            allowed=blocked_by is None,
            per_minute=per_minute,
            per_day=per_day,
            blocked_by=blocked_by,
        )

    async def record_usage(self, user_id: str) -> bool:
        """Increment both windows' counters for one completed generation.

        Read-then-increment: concurrent calls for the same user may under-count.

        Returns:
            True if both counters were incremented; failures are logged, not raised
        """
        now = self.clock()
        try:
            async with await self.uow_factory() as uow:
                for counter_type in (CounterType.PER_MINUTE, CounterType.PER_DAY):
                    period_start, _ = period_bounds(counter_type, now)
                    counter = await uow.usage_counters.get_or_create(
                        user_id, counter_type, period_start
                    )
                    await uow.usage_counters.increment(counter)
        except SQLAlchemyError as e:
            logger.error(
                "rate_limit.record_failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True

    async def usage_stats(self, user_id: str) -> dict[str, LimitCheck]:
        """Current usage per window (counters plus in-flight jobs) without creating rows."""
        now = self.clock()
        stats = {}
        async with await self.uow_factory() as uow:
            for counter_type, limit in self.limits.items():
                period_start, reset_at = period_bounds(counter_type, now)
                counter = await uow.usage_counters.get(user_id, counter_type, period_start)
                in_flight = await uow.jobs.count_in_flight(
                    user_id, created_from=period_start, created_before=reset_at
                )
                current = (counter.count if counter else 0) + in_flight
                stats[counter_type.value] = LimitCheck(
                    allowed=current < limit,
                    limit=limit,
                    current=current,
                    remaining=max(0, limit - current),
                    reset_at=reset_at,
                )
        return stats

    async def cleanup_old_counters(self) -> int:
        """Delete expired counter rows.

        Returns:
            Number of rows deleted
        """
        now = self.clock()
        async with await self.uow_factory() as uow:
            deleted = await uow.usage_counters.delete_expired(
                minute_cutoff=minute_floor(now) - MINUTE_COUNTER_RETENTION,
                day_cutoff=day_floor(now) - DAY_COUNTER_RETENTION,
            )
        logger.info("rate_limit.cleanup_completed", deleted=deleted)
        return deleted
