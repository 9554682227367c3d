"""Shared types, enums, and base models used across CourseFlow domain models."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, Field
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from SQLite; convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_uuid7() -> UUID:
    """Generate a new time-sortable UUID v7."""
    return uuid7()


# --- Reusable annotated types ---

UUIDv7 = Annotated[UUID, Field(description="Time-sortable UUID v7.")]
UTCTimestamp = Annotated[
    datetime,
    AfterValidator(ensure_utc),
    Field(description="UTC timezone-aware timestamp."),
]


# --- Course domain enums ---


class CourseStatus(StrEnum):
    """Workflow states of a training course."""

    PRE_DEVELOPMENT = "pre_development"
    IN_PROGRESS = "in_progress"
    OUTLINES = "outlines"
    STORYBOARD = "storyboard"
    DEVELOPMENT = "development"
    ON_HOLD = "on_hold"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DELETED = "deleted"


class CoursePriority(StrEnum):
    """Course priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    URGENT = "urgent"


class ActorRole(StrEnum):
    """Roles an authenticated actor may hold."""

    ADMIN = "admin"
    MANAGER = "manager"
    DESIGNER = "designer"
    REVIEWER = "reviewer"


# --- Bulk operation enums ---


class PreviewState(StrEnum):
    """Lifecycle of a bulk preview. Everything but PENDING is terminal."""

    PENDING = "PENDING"
    EXECUTED = "EXECUTED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class BulkOutcome(StrEnum):
    """Terminal outcome recorded in bulk history.

    PARTIAL is part of the audit vocabulary but the engine executes
    all-or-nothing and never produces it.
    """

    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class ActionField(StrEnum):
    """Course fields a bulk action may change."""

    STATUS = "status"
    PRIORITY = "priority"
    ASSIGNEE = "assignee"


class ImpactLevel(StrEnum):
    """Severity of a single course change shown in a preview."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# --- Base model ---


class CourseFlowBase(BaseModel):
    """Base model with common configuration for all CourseFlow Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "ser_json_timedelta": "iso8601",
        "protected_namespaces": (),
    }


class Actor(CourseFlowBase, frozen=True):
    """Authenticated caller as forwarded by the gateway."""

    actor_id: UUID
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN
