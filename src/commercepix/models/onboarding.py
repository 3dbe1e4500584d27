"""OnboardingProgress entity - first-run checklist state per user."""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from commercepix.core.timezone import utc_now

ONBOARDING_TASKS = (
    "uploaded_photo",
    "generated_main_image",
    "generated_lifestyle_image",
    "downloaded_asset",
)


class OnboardingProgress(SQLModel, table=True):
    __tablename__ = "onboarding_progress"  # type: ignore[assignment]

    user_id: str = Field(primary_key=True, max_length=255)
    uploaded_photo: bool = Field(default=False)
    generated_main_image: bool = Field(default=False)
    generated_lifestyle_image: bool = Field(default=False)
    downloaded_asset: bool = Field(default=False)
    checklist_dismissed: bool = Field(default=False)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def completed_tasks(self) -> int:
        return sum(1 for task in ONBOARDING_TASKS if getattr(self, task))

    @property
    def is_complete(self) -> bool:
        return self.completed_tasks == len(ONBOARDING_TASKS)
