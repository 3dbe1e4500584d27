"""OnboardingProgress repository for CommercePix backend."""

from sqlalchemy import func, select, union
from sqlalchemy.ext.asyncio import AsyncSession

from commercepix.models.billing import Subscription
from commercepix.models.onboarding import OnboardingProgress
from commercepix.models.project import Project


class OnboardingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_or_create(self, user_id: str) -> OnboardingProgress:
        """Fetch the user's progress row, creating a blank one on first access."""
        progress = await self.session.get(OnboardingProgress, user_id)
        if progress is None:
            progress = OnboardingProgress(user_id=user_id)
            self.session.add(progress)
            await self.session.flush()
        return progress

    async def save(self, progress: OnboardingProgress) -> OnboardingProgress:
        self.session.add(progress)
        await self.session.flush()
        return progress

    async def count_known_users(self) -> int:
        """Distinct users seen in projects, subscriptions or onboarding rows."""
        users = union(
            select(Project.user_id),
            select(Subscription.user_id),
            select(OnboardingProgress.user_id),
        ).subquery()
        result = await self.session.execute(select(func.count()).select_from(users))
        return result.scalar_one()
