"""Unit of Work pattern for CommercePix backend.

Provides transaction management with automatic commit/rollback and access to all repositories.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from commercepix.repositories.asset import AssetRepository
from commercepix.repositories.billing import CreditLedgerRepository, SubscriptionRepository
from commercepix.repositories.generation_job import GenerationJobRepository
from commercepix.repositories.onboarding import OnboardingRepository
from commercepix.repositories.preferences import PreferencesRepository
from commercepix.repositories.project import ProjectRepository
from commercepix.repositories.usage_counter import UsageCounterRepository

logger = structlog.get_logger(__name__)


class UnitOfWork:
    """Unit of Work pattern implementation.

    Manages database transactions and provides access to all repositories.
    Use as async context manager for automatic commit/rollback.

    Example:
        async with await uow_factory() as uow:
            job = await uow.jobs.get_by_id(job_id)
            await uow.jobs.transition_status(job.id, JobStatus.RUNNING)
            # Automatically commits on successful exit
            # Automatically rolls back on exception
    """

    def __init__(self, session: AsyncSession):
        """Initialize UnitOfWork with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

        self.projects = ProjectRepository(session)
        self.assets = AssetRepository(session)
        self.jobs = GenerationJobRepository(session)
        self.usage_counters = UsageCounterRepository(session)
        self.subscriptions = SubscriptionRepository(session)
        self.credits = CreditLedgerRepository(session)
        self.onboarding = OnboardingRepository(session)
        self.preferences = PreferencesRepository(session)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager with automatic commit/rollback.

        Returns:
            False: Always re-raise exceptions after rollback
        """
        try:
            if exc_type is None:
                await self.session.commit()
                logger.debug("transaction.committed")
            else:
                await self.session.rollback()
                logger.info("transaction.rolled_back", exc_type=exc_type.__name__)
        finally:
            await self.session.close()

        return False


def create_uow_factory(session_factory: async_sessionmaker[AsyncSession]):
    """Create a factory function that produces UnitOfWork instances.

    Args:
        session_factory: SQLAlchemy async session factory

    Returns:
        Callable that creates UnitOfWork instances from new sessions

    Example:
        uow_factory = create_uow_factory(setup_db_session(db_url))

        async with await uow_factory() as uow:
            await uow.projects.add(project)
    """

    async def _create_uow():
        return UnitOfWork(session_factory())

    return _create_uow
