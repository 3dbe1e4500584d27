"""initial_schema

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-18 09:12:40.118342

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

generation_mode = sa.Enum(
    "MAIN_WHITE", "LIFESTYLE", "FEATURE_CALLOUT", "PACKAGING", name="generationmode"
)
job_status = sa.Enum("QUEUED", "RUNNING", "SUCCEEDED", "FAILED", name="jobstatus")
asset_kind = sa.Enum("INPUT", "OUTPUT", name="assetkind")
counter_type = sa.Enum("PER_MINUTE", "PER_DAY", name="countertype")
subscription_status = sa.Enum(
    "TRIALING", "ACTIVE", "PAST_DUE", "CANCELED", name="subscriptionstatus"
)
credit_reason = sa.Enum(
    "SUBSCRIPTION_RESET",
    "GENERATION",
    "BONUS",
    "ADMIN_ADJUST",
    "OVERAGE_PURCHASE",
    name="creditreason",
)
credit_ref_type = sa.Enum("JOB", "SUBSCRIPTION", "ADMIN", "PURCHASE", name="creditreftype")


def upgrade() -> None:
    """Create projects, assets, generation jobs, usage counters, billing and onboarding tables."""
    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_user_id", "projects", ["user_id"])

    op.create_table(
        "assets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("kind", asset_kind, nullable=False),
        sa.Column("mode", generation_mode, nullable=False),
        sa.Column("source_asset_id", sa.Uuid(), nullable=True),
        sa.Column("prompt_version", sa.String(length=20), nullable=False),
        sa.Column("prompt_payload", sa.JSON(), nullable=True),
        sa.Column("storage_path", sa.String(length=1024), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["source_asset_id"], ["assets.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_assets_user_id", "assets", ["user_id"])
    op.create_index("ix_assets_project_id", "assets", ["project_id"])
    op.create_index("ix_assets_kind", "assets", ["kind"])

    op.create_table(
        "generation_jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("status", job_status, nullable=False),
        sa.Column("mode", generation_mode, nullable=False),
        sa.Column("input_asset_id", sa.Uuid(), nullable=True),
        sa.Column("output_asset_id", sa.Uuid(), nullable=True),
        sa.Column("prompt_version", sa.String(length=20), nullable=False),
        sa.Column("prompt_inputs", sa.JSON(), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("cost_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["input_asset_id"], ["assets.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["output_asset_id"], ["assets.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_generation_jobs_user_id", "generation_jobs", ["user_id"])
    op.create_index("ix_generation_jobs_project_id", "generation_jobs", ["project_id"])
    op.create_index("ix_generation_jobs_status", "generation_jobs", ["status"])

    op.create_table(
        "usage_counters",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("counter_type", counter_type, nullable=False),
        sa.Column("period_start", sa.DateTime(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "counter_type", "period_start", name="uq_usage_counters_user_type_period"
        ),
    )
    op.create_index("ix_usage_counters_user_id", "usage_counters", ["user_id"])
    op.create_index("ix_usage_counters_period_start", "usage_counters", ["period_start"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("plan_id", sa.String(length=50), nullable=False),
        sa.Column("status", subscription_status, nullable=False),
        sa.Column("current_period_start", sa.DateTime(), nullable=True),
        sa.Column("current_period_end", sa.DateTime(), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"], unique=True)

    op.create_table(
        "credit_ledger",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("reason", credit_reason, nullable=False),
        sa.Column("ref_type", credit_ref_type, nullable=True),
        sa.Column("ref_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_credit_ledger_user_id", "credit_ledger", ["user_id"])

    op.create_table(
        "onboarding_progress",
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("uploaded_photo", sa.Boolean(), nullable=False),
        sa.Column("generated_main_image", sa.Boolean(), nullable=False),
        sa.Column("generated_lifestyle_image", sa.Boolean(), nullable=False),
        sa.Column("downloaded_asset", sa.Boolean(), nullable=False),
        sa.Column("checklist_dismissed", sa.Boolean(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_table("onboarding_progress")
    op.drop_index("ix_credit_ledger_user_id", table_name="credit_ledger")
    op.drop_table("credit_ledger")
    op.drop_index("ix_subscriptions_user_id", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_usage_counters_period_start", table_name="usage_counters")
    op.drop_index("ix_usage_counters_user_id", table_name="usage_counters")
    op.drop_table("usage_counters")
    op.drop_index("ix_generation_jobs_status", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_project_id", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_user_id", table_name="generation_jobs")
    op.drop_table("generation_jobs")
    op.drop_index("ix_assets_kind", table_name="assets")
    op.drop_index("ix_assets_project_id", table_name="assets")
    op.drop_index("ix_assets_user_id", table_name="assets")
    op.drop_table("assets")
    op.drop_index("ix_projects_user_id", table_name="projects")
    op.drop_table("projects")

    bind = op.get_bind()
    for enum_type in (
        credit_ref_type,
        credit_reason,
        subscription_status,
        counter_type,
        asset_kind,
        job_status,
        generation_mode,
    ):
        enum_type.drop(bind, checkfirst=True)
