"""Billing entities - subscriptions and the append-only credit ledger."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from commercepix.core.timezone import utc_now


class SubscriptionStatus(str, Enum):
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class CreditReason(str, Enum):
    SUBSCRIPTION_RESET = "subscription_reset"
    GENERATION = "generation"
    BONUS = "bonus"
    ADMIN_ADJUST = "admin_adjust"
    OVERAGE_PURCHASE = "overage_purchase"


class CreditRefType(str, Enum):
    JOB = "job"
    SUBSCRIPTION = "subscription"
    ADMIN = "admin"
    PURCHASE = "purchase"


class Subscription(SQLModel, table=True):
    """A user's current plan. At most one row per user."""

    __tablename__ = "subscriptions"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, unique=True, index=True)
    plan_id: str = Field(max_length=50)
    status: SubscriptionStatus
    current_period_start: Optional[datetime] = Field(default=None)
    current_period_end: Optional[datetime] = Field(default=None)
    cancel_at_period_end: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class CreditLedgerEntry(SQLModel, table=True):
    """Credit grant (positive delta) or spend (negative delta). Balance is the sum."""

    __tablename__ = "credit_ledger"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, index=True)
    delta: int
    reason: CreditReason
    ref_type: Optional[CreditRefType] = Field(default=None)
    ref_id: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=utc_now)
