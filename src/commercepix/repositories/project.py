"""Project repository for CommercePix backend."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from commercepix.models.project import Project


class ProjectRepository:
    """Repository for Project entities. All lookups used by routes are owner-scoped."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, project: Project) -> Project:
        self.session.add(project)
        await self.session.flush()
        return project

    async def get_by_id(self, project_id: UUID) -> Project | None:
        result = await self.session.execute(
            select(Project).where(Project.id == project_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_owned(self, project_id: UUID, user_id: str) -> Project | None:
        """Retrieve a project only if it belongs to user_id."""
        result = await self.session.execute(
            select(Project).where(
                Project.id == project_id,  # type: ignore[arg-type]
                Project.user_id == user_id,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[Project]:
        result = await self.session.execute(
            select(Project)
            .where(Project.user_id == user_id)  # type: ignore[arg-type]
            .order_by(Project.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def count_for_user(self, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count(Project.id)).where(Project.user_id == user_id)  # type: ignore[arg-type]
        )
        return result.scalar_one()

    async def get_last_updated(self, user_id: str) -> Project | None:
        """The user's most recently updated project."""
        result = await self.session.execute(
            select(Project)
            .where(Project.user_id == user_id)  # type: ignore[arg-type]
            .order_by(Project.updated_at.desc())  # type: ignore[attr-defined]
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def delete(self, project: Project) -> None:
        await self.session.delete(project)
        await self.session.flush()
