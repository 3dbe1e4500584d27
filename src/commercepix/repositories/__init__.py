"""Repository layer for CommercePix backend.

Provides data access abstractions for all domain entities.
No base classes - each repository is self-contained.
"""

from commercepix.repositories.asset import AssetRepository
from commercepix.repositories.billing import CreditLedgerRepository, SubscriptionRepository
from commercepix.repositories.generation_job import GenerationJobRepository
from commercepix.repositories.onboarding import OnboardingRepository
from commercepix.repositories.preferences import PreferencesRepository
from commercepix.repositories.project import ProjectRepository
from commercepix.repositories.usage_counter import UsageCounterRepository

__all__ = [
    "ProjectRepository",
    "AssetRepository",
    "GenerationJobRepository",
    "UsageCounterRepository",
    "SubscriptionRepository",
    "CreditLedgerRepository",
    "OnboardingRepository",
    "PreferencesRepository",
]
