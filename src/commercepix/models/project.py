"""Project entity - a seller's container for product photos and generations."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from commercepix.core.timezone import utc_now


class Project(SQLModel, table=True):
    """Project groups input assets, output assets and generation jobs for one user."""

    __tablename__ = "projects"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, index=True)
    name: str = Field(max_length=100)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
