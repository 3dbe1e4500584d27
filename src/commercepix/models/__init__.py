"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from commercepix.models.asset import Asset, AssetKind
from commercepix.models.billing import (
    CreditLedgerEntry,
    CreditReason,
    CreditRefType,
    Subscription,
    SubscriptionStatus,
)
from commercepix.models.generation_job import (
    ALLOWED_SOURCES,
    TERMINAL_STATUSES,
    GenerationJob,
    GenerationMode,
    JobStatus,
)
from commercepix.models.onboarding import ONBOARDING_TASKS, OnboardingProgress
from commercepix.models.preferences import BrandTone, UserPreferences
from commercepix.models.project import Project
from commercepix.models.usage_counter import CounterType, UsageCounter

__all__ = [
    "Project",
    "Asset",
    "AssetKind",
    "GenerationJob",
    "GenerationMode",
    "JobStatus",
    "TERMINAL_STATUSES",
    "ALLOWED_SOURCES",
    "UsageCounter",
    "CounterType",
    "Subscription",
    "SubscriptionStatus",
    "CreditLedgerEntry",
    "CreditReason",
    "CreditRefType",
    "OnboardingProgress",
    "ONBOARDING_TASKS",
    "UserPreferences",
    "BrandTone",
]
