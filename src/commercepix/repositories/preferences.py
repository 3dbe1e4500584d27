"""UserPreferences repository for CommercePix backend."""

from sqlalchemy.ext.asyncio import AsyncSession

from commercepix.models.preferences import UserPreferences


class PreferencesRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: str) -> UserPreferences | None:
        return await self.session.get(UserPreferences, user_id)

    async def get_or_create(self, user_id: str) -> UserPreferences:
        """Fetch the user's preferences, inserting the defaults on first access."""
        preferences = await self.get(user_id)
        if preferences is None:
            preferences = UserPreferences(user_id=user_id)
            self.session.add(preferences)
            await self.session.flush()
        return preferences

    async def save(self, preferences: UserPreferences) -> UserPreferences:
        self.session.add(preferences)
        await self.session.flush()
        return preferences
