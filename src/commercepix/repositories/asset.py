"""Asset repository for CommercePix backend."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from commercepix.models.asset import Asset, AssetKind


class AssetRepository:
    """Repository for Asset entities (uploaded inputs and generated outputs)."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, asset: Asset) -> Asset:
        self.session.add(asset)
        await self.session.flush()
        return asset

    async def get_by_id(self, asset_id: UUID) -> Asset | None:
        result = await self.session.execute(
            select(Asset).where(Asset.id == asset_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def list_for_project(
        self, project_id: UUID, kind: AssetKind | None = None
    ) -> list[Asset]:
        """List a project's assets, newest first.

        Args:
            project_id: Project to list
            kind: Restrict to inputs or outputs (None = both)
        """
        query = select(Asset).where(Asset.project_id == project_id)  # type: ignore[arg-type]
        if kind is not None:
            query = query.where(Asset.kind == kind)  # type: ignore[arg-type]
        result = await self.session.execute(
            query.order_by(Asset.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def count_outputs(
        self, user_id: Optional[str] = None, since: Optional[datetime] = None
    ) -> int:
        """Count generated images, across all users unless user_id is given.

        Args:
            user_id: Restrict to one user
            since: Only outputs created at or after this time
        """
        query = select(func.count(Asset.id)).where(Asset.kind == AssetKind.OUTPUT)  # type: ignore[arg-type]
        if user_id is not None:
            query = query.where(Asset.user_id == user_id)  # type: ignore[arg-type]
        if since is not None:
            query = query.where(Asset.created_at >= since)  # type: ignore[arg-type]
        result = await self.session.execute(query)
        return result.scalar_one()

    async def list_recent_outputs(self, user_id: str, limit: int = 12) -> list[Asset]:
        """A user's newest generated images across all projects."""
        result = await self.session.execute(
            select(Asset)
            .where(
                Asset.user_id == user_id,  # type: ignore[arg-type]
                Asset.kind == AssetKind.OUTPUT,  # type: ignore[arg-type]
            )
            .order_by(Asset.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return list(result.scalars().all())

    async def delete(self, asset: Asset) -> None:
        await self.session.delete(asset)
        await self.session.flush()
