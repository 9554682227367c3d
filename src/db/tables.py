"""SQLAlchemy ORM table models for CourseFlow.

Uses FlexJSON (JSONB on Postgres, JSON on SQLite) for criteria, actions,
snapshots and activity metadata.

Categories:
- EXTERNAL: CourseRow, ActivityRow (owned by the course CRUD and activity
            subsystems; the bulk engine reads/updates courses and appends
            activities)
- OPERATIONAL: BulkPreviewRow (state transitions only), BulkTemplateRow
- IMMUTABLE: BulkHistoryRow (append-only audit log)
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Date, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from src.db.session import Base

# JSONB on PostgreSQL, plain JSON on SQLite (for tests)
FlexJSON = JSONB().with_variant(JSON(), "sqlite")


# ---------------------------------------------------------------------------
# Courses and activity log — EXTERNAL
# ---------------------------------------------------------------------------


class CourseRow(Base):
    __tablename__ = "courses"
    __table_args__ = (
        Index("ix_courses_created_at_course_id", "created_at", "course_id"),
    )

    course_id: Mapped[UUID] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    owner_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)
    assignee_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_by: Mapped[UUID | None] = mapped_column(nullable=True)


class ActivityRow(Base):
    """Append-only user activity feed."""

    __tablename__ = "activities"
    __table_args__ = (
        Index("ix_activities_entity", "entity_type", "entity_id"),
    )

    activity_id: Mapped[UUID] = mapped_column(primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    user_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)
    metadata_json = mapped_column(FlexJSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Bulk operations — OPERATIONAL
# ---------------------------------------------------------------------------


class BulkPreviewRow(Base):
    """Pending bulk operation keyed by its unguessable token.

    Only the state columns change after insert.
    """

    __tablename__ = "bulk_previews"
    __table_args__ = (
        Index("ix_bulk_previews_state_expires_at", "state", "expires_at"),
    )

    preview_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    criteria = mapped_column(FlexJSON, nullable=False)
    action = mapped_column(FlexJSON, nullable=False)
    matched_ids = mapped_column(FlexJSON, nullable=False)
    matched_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[UUID] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False)
    state_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    state_changed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    template_id: Mapped[UUID | None] = mapped_column(nullable=True)


class BulkTemplateRow(Base):
    __tablename__ = "bulk_templates"

    template_id: Mapped[UUID] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    criteria = mapped_column(FlexJSON, nullable=False)
    action = mapped_column(FlexJSON, nullable=False)
    created_by: Mapped[UUID] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Bulk operations — IMMUTABLE
# ---------------------------------------------------------------------------


class BulkHistoryRow(Base):
    """Append-only audit log of executed bulk operations."""

    __tablename__ = "bulk_history"
    __table_args__ = (
        Index("ix_bulk_history_performed_by_at", "performed_by", "performed_at"),
    )

    history_id: Mapped[UUID] = mapped_column(primary_key=True)
    preview_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action = mapped_column(FlexJSON, nullable=False)
    criteria = mapped_column(FlexJSON, nullable=False)
    affected_count: Mapped[int] = mapped_column(Integer, nullable=False)
    performed_by: Mapped[UUID] = mapped_column(nullable=False)
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    outcome: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    error_detail = mapped_column(FlexJSON, nullable=True)
