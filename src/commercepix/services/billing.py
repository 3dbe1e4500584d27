"""Plans, credit balance and trial subscriptions.

Credits are tracked in an append-only ledger; the balance is the sum of all
deltas. Payment-provider checkout is handled outside this service.
"""

from datetime import timedelta
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from commercepix.core.timezone import utc_now
from commercepix.models.billing import (
    CreditLedgerEntry,
    CreditReason,
    CreditRefType,
    Subscription,
    SubscriptionStatus,
)
from commercepix.services.exceptions import NotFoundError, PaymentRequiredError, ValidationError

logger = structlog.get_logger(__name__)

TRIAL_PLAN_ID = "starter"
TRIAL_DAYS = 14
TRIAL_BONUS_CREDITS = 20


class Plan(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    price_cents: int
    monthly_credits: int
    overage_cents: int


PLANS: dict[str, Plan] = {
    plan.id: plan
    for plan in (
        Plan(id="starter", name="Starter", price_cents=1900, monthly_credits=50, overage_cents=50),
        Plan(id="pro", name="Pro", price_cents=4900, monthly_credits=200, overage_cents=35),
        Plan(id="brand", name="Brand", price_cents=9900, monthly_credits=500, overage_cents=25),
        Plan(id="agency", name="Agency", price_cents=24900, monthly_credits=2000, overage_cents=20),
    )
}


def get_plan(plan_id: str) -> Plan:
    try:
        return PLANS[plan_id]
    except KeyError:
        raise ValidationError(f"Unknown plan: {plan_id}") from None


async def grant_credits(
    uow,
    user_id: str,
    amount: int,
    reason: CreditReason,
    ref_type: Optional[CreditRefType] = None,
    ref_id: Optional[str] = None,
) -> CreditLedgerEntry:
    if amount <= 0:
        raise ValueError("Credit grant amount must be positive")
    entry = await uow.credits.add(
        CreditLedgerEntry(
            user_id=user_id, delta=amount, reason=reason, ref_type=ref_type, ref_id=ref_id
        )
    )
    logger.info("credits.granted", user_id=user_id, amount=amount, reason=reason.value)
    return entry


async def spend_credits(
    uow,
    user_id: str,
    amount: int,
    reason: CreditReason,
    ref_type: Optional[CreditRefType] = None,
    ref_id: Optional[str] = None,
) -> CreditLedgerEntry:
    """Append a negative ledger entry after checking the balance covers it.

    Args:
        uow: Active unit of work (the spend commits with the caller's transaction)
        user_id: Credit owner
        amount: Credits to spend (positive number)
        reason: Ledger reason
        ref_type: What the spend refers to (e.g. job)
        ref_id: Id of the referenced entity

    Raises:
        PaymentRequiredError: Balance is lower than amount
    """
    if amount <= 0:
        raise ValueError("Credit spend amount must be positive")
    balance = await uow.credits.get_balance(user_id)
    if balance < amount:
        raise PaymentRequiredError(
            f"Insufficient credits: {amount} required, {balance} available"
        )
    entry = await uow.credits.add(
        CreditLedgerEntry(
            user_id=user_id, delta=-amount, reason=reason, ref_type=ref_type, ref_id=ref_id
        )
    )
    logger.info(
        "credits.spent", user_id=user_id, amount=amount, reason=reason.value, ref_id=ref_id
    )
    return entry


async def start_trial(uow, user_id: str) -> Optional[Subscription]:
    """Create a trialing starter subscription and grant the trial bonus.

    Returns:
        The new subscription, or None if the user already has one
    """
    if await uow.subscriptions.get_by_user(user_id) is not None:
        logger.info("billing.trial.skipped", user_id=user_id, reason="subscription_exists")
        return None

    now = utc_now()
    subscription = await uow.subscriptions.add(
        Subscription(
            user_id=user_id,
            plan_id=TRIAL_PLAN_ID,
            status=SubscriptionStatus.TRIALING,
            current_period_start=now,
            current_period_end=now + timedelta(days=TRIAL_DAYS),
        )
    )
    await grant_credits(
        uow,
        user_id,
        TRIAL_BONUS_CREDITS,
        CreditReason.BONUS,
        CreditRefType.SUBSCRIPTION,
        str(subscription.id),
    )
    logger.info("billing.trial.started", user_id=user_id, trial_days=TRIAL_DAYS)
    return subscription


async def _get_subscription(uow, user_id: str) -> Subscription:
    subscription = await uow.subscriptions.get_by_user(user_id)
    if subscription is None:
        raise NotFoundError("No subscription found")
    return subscription


async def set_cancel_at_period_end(uow, user_id: str, cancel: bool) -> Subscription:
    """Schedule (or unschedule) cancellation at the end of the current period.

    Raises:
        NotFoundError: User has no subscription
    """
    subscription = await _get_subscription(uow, user_id)
    if subscription.cancel_at_period_end != cancel:
        subscription.cancel_at_period_end = cancel
        subscription.updated_at = utc_now()
        await uow.subscriptions.save(subscription)
    logger.info(
        "billing.subscription.cancel_toggled", user_id=user_id, cancel_at_period_end=cancel
    )
    return subscription


async def change_plan(uow, user_id: str, plan_id: str) -> Subscription:
    """Switch the subscription to another catalog plan. Credits are not prorated.

    Raises:
        ValidationError: Unknown plan
        NotFoundError: User has no subscription
    """
    plan = get_plan(plan_id)
    subscription = await _get_subscription(uow, user_id)
    if subscription.plan_id != plan.id:
        previous = subscription.plan_id
        subscription.plan_id = plan.id
        subscription.updated_at = utc_now()
        await uow.subscriptions.save(subscription)
        logger.info(
            "billing.subscription.plan_changed",
            user_id=user_id,
            from_plan=previous,
            to_plan=plan.id,
        )
    return subscription


async def get_billing_summary(uow, user_id: str) -> dict[str, Any]:
    """Balance plus current subscription and plan details."""
    balance = await uow.credits.get_balance(user_id)
    subscription = await uow.subscriptions.get_by_user(user_id)

    summary: dict[str, Any] = {
        "balance": balance,
        "subscription": None,
        "plan": None,
        "trial_days_remaining": None,
    }
    if subscription is None:
        return summary

    summary["subscription"] = {
        "plan_id": subscription.plan_id,
        "status": subscription.status.value,
        "current_period_start": subscription.current_period_start,
        "current_period_end": subscription.current_period_end,
        "cancel_at_period_end": subscription.cancel_at_period_end,
    }
    plan = PLANS.get(subscription.plan_id)
    if plan is not None:
        summary["plan"] = plan.model_dump()
    if subscription.status == SubscriptionStatus.TRIALING and subscription.current_period_end:
        remaining = subscription.current_period_end - utc_now()
        summary["trial_days_remaining"] = max(0, remaining.days)
    return summary
