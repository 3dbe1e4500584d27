"""Asset entity - an uploaded product photo or a generated output image."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from commercepix.core.timezone import utc_now
from commercepix.models.generation_job import GenerationMode


class AssetKind(str, Enum):
    """Whether the asset was uploaded by the user or produced by a generation."""

    INPUT = "input"
    OUTPUT = "output"


class Asset(SQLModel, table=True):
    """Asset is a stored image plus the metadata needed to audit how it was made.

    Output assets point back at their input through source_asset_id; the
    prompt_payload records the exact sanitized prompt used.
    """

    __tablename__ = "assets"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, index=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True, ondelete="CASCADE")
    kind: AssetKind = Field(index=True)
    mode: GenerationMode
    source_asset_id: Optional[UUID] = Field(
        default=None, foreign_key="assets.id", ondelete="SET NULL"
    )
    prompt_version: str = Field(default="v1", max_length=20)
    prompt_payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    storage_path: str = Field(max_length=1024)
    mime_type: str = Field(max_length=100)
    width: Optional[int] = Field(default=None)
    height: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
