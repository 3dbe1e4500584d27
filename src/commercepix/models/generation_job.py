"""GenerationJob entity - one AI edit of an input asset, with lifecycle status."""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, Text
from sqlmodel import Field, SQLModel

from commercepix.core.timezone import utc_now


class GenerationMode(str, Enum):
    """Marketing image variants a seller can generate."""

    MAIN_WHITE = "main_white"
    LIFESTYLE = "lifestyle"
    FEATURE_CALLOUT = "feature_callout"
    PACKAGING = "packaging"


class JobStatus(str, Enum):
    """Generation job lifecycle status."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED})

# target status -> statuses it may be entered from
ALLOWED_SOURCES: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset(),
    JobStatus.RUNNING: frozenset({JobStatus.QUEUED}),
    JobStatus.SUCCEEDED: frozenset({JobStatus.RUNNING}),
    JobStatus.FAILED: frozenset({JobStatus.QUEUED, JobStatus.RUNNING}),
}


class GenerationJob(SQLModel, table=True):
    """GenerationJob tracks a single request to edit an input asset.

    Status only moves forward: queued -> running -> succeeded | failed
    (queued -> failed is allowed for jobs that never started). Terminal
    rows are never updated again; see GenerationJobRepository.transition_status.
    """

    __tablename__ = "generation_jobs"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, index=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True, ondelete="CASCADE")
    status: JobStatus = Field(default=JobStatus.QUEUED, index=True)
    mode: GenerationMode
    input_asset_id: Optional[UUID] = Field(
        default=None, foreign_key="assets.id", ondelete="SET NULL"
    )
    output_asset_id: Optional[UUID] = Field(
        default=None, foreign_key="assets.id", ondelete="SET NULL"
    )
    prompt_version: str = Field(default="v1", max_length=20)
    prompt_inputs: dict = Field(default_factory=dict, sa_column=Column(JSON))
    request_id: Optional[str] = Field(default=None, max_length=64)
    error: Optional[str] = Field(default=None, sa_column=Column(Text))
    cost_cents: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def error_details(self) -> Optional[dict[str, Any]]:
        """Parsed error payload, or the raw text under "message" if it is not JSON."""
        if not self.error:
            return None
        try:
            return json.loads(self.error)
        except ValueError:
            return {"message": self.error}
