"""Subscription and credit ledger repositories for CommercePix backend."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from commercepix.models.billing import CreditLedgerEntry, Subscription


class SubscriptionRepository:
    """Repository for Subscription entities (one per user)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, subscription: Subscription) -> Subscription:
        self.session.add(subscription)
        await self.session.flush()
        return subscription

    async def save(self, subscription: Subscription) -> Subscription:
        self.session.add(subscription)
        await self.session.flush()
        return subscription

    async def get_by_user(self, user_id: str) -> Subscription | None:
        result = await self.session.execute(
            select(Subscription).where(Subscription.user_id == user_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def plan_distribution(self) -> dict[str, int]:
        """Count subscriptions per plan id."""
        result = await self.session.execute(
            select(Subscription.plan_id, func.count(Subscription.id)).group_by(  # type: ignore[arg-type]
                Subscription.plan_id
            )
        )
        return {plan_id: count for plan_id, count in result.all()}


class CreditLedgerRepository:
    """Repository for the append-only credit ledger."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, entry: CreditLedgerEntry) -> CreditLedgerEntry:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_balance(self, user_id: str) -> int:
        """Sum of all deltas for the user (0 when the ledger is empty)."""
        result = await self.session.execute(
            select(func.coalesce(func.sum(CreditLedgerEntry.delta), 0)).where(
                CreditLedgerEntry.user_id == user_id  # type: ignore[arg-type]
            )
        )
        return int(result.scalar_one())

    async def list_for_user(self, user_id: str, limit: int = 50) -> list[CreditLedgerEntry]:
        result = await self.session.execute(
            select(CreditLedgerEntry)
            .where(CreditLedgerEntry.user_id == user_id)  # type: ignore[arg-type]
            .order_by(CreditLedgerEntry.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return list(result.scalars().all())
