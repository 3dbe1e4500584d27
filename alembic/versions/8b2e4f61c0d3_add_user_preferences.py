"""add_user_preferences

Revision ID: 8b2e4f61c0d3
Revises: 3f1c9a7d2b10
Create Date: 2026-10-18 16:41:05.902117

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8b2e4f61c0d3"
down_revision: Union[str, Sequence[str], None] = "3f1c9a7d2b10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

brand_tone = sa.Enum("PROFESSIONAL", "LUXURY", "PLAYFUL", "MINIMAL", "BOLD", name="brandtone")


def upgrade() -> None:
    """Add user_preferences table (default brand tone, notifications, deletion request)."""
    op.create_table(
        "user_preferences",
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("default_brand_tone", brand_tone, nullable=True),
        sa.Column("email_notifications", sa.Boolean(), nullable=False),
        sa.Column("deletion_requested_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )


def downgrade() -> None:
    """Drop user_preferences table and brandtone enum."""
    op.drop_table("user_preferences")
    brand_tone.drop(op.get_bind(), checkfirst=True)
