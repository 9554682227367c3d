"""Initial schema — courses, activities and the bulk operation tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -- Courses / activity feed (EXTERNAL) --
    op.create_table(
        "courses",
        sa.Column("course_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, index=True),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("owner_id", UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("assignee_id", UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("due_date", sa.Date, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", UUID(as_uuid=True), nullable=True),
    )
    op.create_index("ix_courses_created_at_course_id", "courses", ["created_at", "course_id"])

    op.create_table(
        "activities",
        sa.Column("activity_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("metadata_json", JSONB, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_activities_entity", "activities", ["entity_type", "entity_id"])

    # -- Bulk operations (OPERATIONAL) --
    op.create_table(
        "bulk_previews",
        sa.Column("preview_id", sa.String(64), primary_key=True),
        sa.Column("criteria", JSONB, nullable=False),
        sa.Column("action", JSONB, nullable=False),
        sa.Column("matched_ids", JSONB, nullable=False),
        sa.Column("matched_count", sa.Integer, nullable=False),
        sa.Column("created_by", UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("state", sa.String(20), nullable=False),
        sa.Column("state_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("state_changed_by", UUID(as_uuid=True), nullable=True),
        sa.Column("template_id", UUID(as_uuid=True), nullable=True),
    )
    op.create_index(
        "ix_bulk_previews_state_expires_at", "bulk_previews", ["state", "expires_at"],
    )

    op.create_table(
        "bulk_templates",
        sa.Column("template_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("criteria", JSONB, nullable=False),
        sa.Column("action", JSONB, nullable=False),
        sa.Column("created_by", UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    # -- Bulk operations (IMMUTABLE) --
    op.create_table(
        "bulk_history",
        sa.Column("history_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("preview_id", sa.String(64), nullable=False, index=True),
        sa.Column("action", JSONB, nullable=False),
        sa.Column("criteria", JSONB, nullable=False),
        sa.Column("affected_count", sa.Integer, nullable=False),
        sa.Column("performed_by", UUID(as_uuid=True), nullable=False),
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("outcome", sa.String(20), nullable=False, index=True),
        sa.Column("error_detail", JSONB, nullable=True),
    )
    op.create_index(
        "ix_bulk_history_performed_by_at", "bulk_history", ["performed_by", "performed_at"],
    )


def downgrade() -> None:
    op.drop_table("bulk_history")
    op.drop_table("bulk_templates")
    op.drop_table("bulk_previews")
    op.drop_table("activities")
    op.drop_table("courses")
