"""Course models — the entity bulk operations act on, and its status state machine."""

from datetime import date
from uuid import UUID

from pydantic import Field

from src.models.common import (
    CourseFlowBase,
    CoursePriority,
    CourseStatus,
    UTCTimestamp,
    UUIDv7,
    new_uuid7,
    utc_now,
)


# ---------------------------------------------------------------------------
# Valid course status transitions (state machine)
# ---------------------------------------------------------------------------

_ACTIVE_STAGES = frozenset({
    CourseStatus.IN_PROGRESS,
    CourseStatus.OUTLINES,
    CourseStatus.STORYBOARD,
    CourseStatus.DEVELOPMENT,
})

_SUSPEND_OR_CANCEL = frozenset({
    CourseStatus.ON_HOLD,
    CourseStatus.PAUSED,
    CourseStatus.CANCELLED,
})

VALID_STATUS_TRANSITIONS: dict[CourseStatus, frozenset[CourseStatus]] = {
    CourseStatus.PRE_DEVELOPMENT: _ACTIVE_STAGES | _SUSPEND_OR_CANCEL,
    CourseStatus.IN_PROGRESS: (
        _ACTIVE_STAGES | _SUSPEND_OR_CANCEL | {CourseStatus.COMPLETED}
    ) - {CourseStatus.IN_PROGRESS},
    CourseStatus.OUTLINES: (
        _ACTIVE_STAGES | _SUSPEND_OR_CANCEL
    ) - {CourseStatus.OUTLINES},
    CourseStatus.STORYBOARD: (
        _ACTIVE_STAGES | _SUSPEND_OR_CANCEL
    ) - {CourseStatus.STORYBOARD},
    CourseStatus.DEVELOPMENT: (
        _ACTIVE_STAGES | _SUSPEND_OR_CANCEL | {CourseStatus.COMPLETED}
    ) - {CourseStatus.DEVELOPMENT},
    CourseStatus.ON_HOLD: _ACTIVE_STAGES | {
        CourseStatus.PRE_DEVELOPMENT,
        CourseStatus.PAUSED,
        CourseStatus.CANCELLED,
    },
    CourseStatus.PAUSED: _ACTIVE_STAGES | {
        CourseStatus.PRE_DEVELOPMENT,
        CourseStatus.ON_HOLD,
        CourseStatus.CANCELLED,
    },
    CourseStatus.COMPLETED: frozenset({CourseStatus.IN_PROGRESS}),
    CourseStatus.CANCELLED: frozenset(),
    CourseStatus.DELETED: frozenset(),
}


def can_transition(current: CourseStatus, target: CourseStatus) -> bool:
    """Setting a status to its current value is always allowed (no-op)."""
    if current == target:
        return True
    return target in VALID_STATUS_TRANSITIONS[current]


class Course(CourseFlowBase):
    """A training course as seen by the bulk engine."""

    course_id: UUIDv7 = Field(default_factory=new_uuid7)
    title: str = Field(..., min_length=1, max_length=255)
    status: CourseStatus = Field(default=CourseStatus.PRE_DEVELOPMENT)
    priority: CoursePriority = Field(default=CoursePriority.MEDIUM)
    owner_id: UUID | None = None
    assignee_id: UUID | None = None
    due_date: date | None = None
    created_at: UTCTimestamp = Field(default_factory=utc_now)
    updated_at: UTCTimestamp = Field(default_factory=utc_now)
