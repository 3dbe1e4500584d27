"""UserPreferences entity - per-user settings and account deletion requests."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from commercepix.core.timezone import utc_now


class BrandTone(str, Enum):
    PROFESSIONAL = "professional"
    LUXURY = "luxury"
    PLAYFUL = "playful"
    MINIMAL = "minimal"
    BOLD = "bold"


class UserPreferences(SQLModel, table=True):
    """Settings row, created with defaults the first time a user opens settings.

    default_brand_tone fills in brand_tone on generation requests that leave it blank.
    """

    __tablename__ = "user_preferences"  # type: ignore[assignment]

    user_id: str = Field(primary_key=True, max_length=255)
    default_brand_tone: Optional[BrandTone] = Field(default=None)
    email_notifications: bool = Field(default=True)
    deletion_requested_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
