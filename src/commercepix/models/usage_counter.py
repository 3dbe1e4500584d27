"""UsageCounter entity - per-user generation counts for a minute or day window."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from commercepix.core.timezone import utc_now


class CounterType(str, Enum):
    """Rate limit window."""

    PER_MINUTE = "per_minute"
    PER_DAY = "per_day"


class UsageCounter(SQLModel, table=True):
    """One row per (user, window type, window start). Created lazily."""

    __tablename__ = "usage_counters"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint(
            "user_id", "counter_type", "period_start", name="uq_usage_counters_user_type_period"
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, index=True)
    counter_type: CounterType
    period_start: datetime = Field(index=True)
    count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
