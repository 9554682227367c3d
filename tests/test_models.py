"""Tests for CourseFlow core Pydantic models.

Covers: enums, the course status state machine, criteria and action
models, and timestamp helpers.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from uuid_extensions import uuid7

from src.db.tables import BulkHistoryRow, BulkPreviewRow, BulkTemplateRow
from src.models.bulk import (
    BulkAction,
    BulkTemplate,
    CancelResult,
    Criteria,
    DateRange,
    ExecutionResult,
    HistoryRecord,
    PreviewRecord,
)
from src.models.common import (
    ActionField,
    Actor,
    ActorRole,
    BulkOutcome,
    CoursePriority,
    CourseStatus,
    PreviewState,
    ensure_utc,
    utc_now,
)
from src.models.course import VALID_STATUS_TRANSITIONS, Course, can_transition


# ---------------------------------------------------------------------------
# Enums and helpers
# ---------------------------------------------------------------------------


class TestEnums:
    def test_preview_states(self) -> None:
        assert {s.value for s in PreviewState} == {"PENDING", "EXECUTED", "CANCELLED", "EXPIRED"}

    def test_outcomes(self) -> None:
        assert {o.value for o in BulkOutcome} == {"SUCCESS", "PARTIAL", "FAILED"}

    def test_action_fields(self) -> None:
        assert {f.value for f in ActionField} == {"status", "priority", "assignee"}

    def test_every_status_has_transitions_entry(self) -> None:
        assert set(VALID_STATUS_TRANSITIONS) == set(CourseStatus)


class TestTimestamps:
    def test_utc_now_is_aware(self) -> None:
        assert utc_now().tzinfo is not None

    def test_ensure_utc_naive(self) -> None:
        naive = datetime(2026, 10, 19, 12, 0)
        assert ensure_utc(naive) == datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def test_ensure_utc_converts_offset(self) -> None:
        plus3 = datetime(2026, 10, 19, 15, 0, tzinfo=timezone(timedelta(hours=3)))
        assert ensure_utc(plus3) == datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestActor:
    def test_is_admin(self) -> None:
        assert Actor(actor_id=uuid7(), role=ActorRole.ADMIN).is_admin
        assert not Actor(actor_id=uuid7(), role=ActorRole.MANAGER).is_admin

    def test_frozen(self) -> None:
        actor = Actor(actor_id=uuid7(), role=ActorRole.MANAGER)
        with pytest.raises(ValidationError):
            actor.role = ActorRole.ADMIN  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Course state machine
# ---------------------------------------------------------------------------


class TestCourseTransitions:
    @pytest.mark.parametrize("current,target", [
        (CourseStatus.PRE_DEVELOPMENT, CourseStatus.IN_PROGRESS),
        (CourseStatus.IN_PROGRESS, CourseStatus.ON_HOLD),
        (CourseStatus.DEVELOPMENT, CourseStatus.COMPLETED),
        (CourseStatus.ON_HOLD, CourseStatus.STORYBOARD),
        (CourseStatus.COMPLETED, CourseStatus.IN_PROGRESS),
    ])
    def test_allowed(self, current: CourseStatus, target: CourseStatus) -> None:
        assert can_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        (CourseStatus.PRE_DEVELOPMENT, CourseStatus.COMPLETED),
        (CourseStatus.COMPLETED, CourseStatus.ON_HOLD),
        (CourseStatus.CANCELLED, CourseStatus.IN_PROGRESS),
        (CourseStatus.IN_PROGRESS, CourseStatus.DELETED),
    ])
    def test_rejected(self, current: CourseStatus, target: CourseStatus) -> None:
        assert not can_transition(current, target)

    def test_same_status_is_noop(self) -> None:
        assert can_transition(CourseStatus.CANCELLED, CourseStatus.CANCELLED)


class TestCourse:
    def test_defaults(self) -> None:
        course = Course(title="Ethics 101")
        assert course.status == CourseStatus.PRE_DEVELOPMENT
        assert course.priority == CoursePriority.MEDIUM
        assert course.assignee_id is None

    def test_blank_title_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Course(title="")


# ---------------------------------------------------------------------------
# Criteria and actions
# ---------------------------------------------------------------------------


class TestCriteria:
    def test_requires_a_predicate(self) -> None:
        with pytest.raises(ValidationError, match="at least one predicate"):
            Criteria()

    def test_present_fields_in_declaration_order(self) -> None:
        criteria = Criteria(search="ethics", status=CourseStatus.IN_PROGRESS)
        assert criteria.present_fields() == ["status", "search"]

    def test_to_json_drops_unset(self) -> None:
        owner = uuid7()
        criteria = Criteria(owner_id=owner, due_date=DateRange(before=date(2026, 12, 31)))
        assert criteria.to_json() == {"owner_id": str(owner), "due_date": {"before": "2026-12-31"}}

    def test_extra_keys_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            Criteria.model_validate({"status": "in_progress", "color": "red"})

    def test_empty_date_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DateRange()

    def test_single_day_range(self) -> None:
        day = date(2026, 11, 1)
        assert DateRange(after=day, before=day).after == day


class TestBulkAction:
    def test_typed_value(self) -> None:
        assignee = uuid7()
        assert BulkAction(field=ActionField.STATUS, value="on_hold").typed_value() == CourseStatus.ON_HOLD
        assert BulkAction(field=ActionField.PRIORITY, value="high").typed_value() == CoursePriority.HIGH
        assert BulkAction(field=ActionField.ASSIGNEE, value=str(assignee)).typed_value() == assignee
        assert BulkAction(field=ActionField.ASSIGNEE, value=None).typed_value() is None

    def test_to_json_keeps_null_value(self) -> None:
        assert BulkAction(field=ActionField.ASSIGNEE).to_json() == {"field": "assignee", "value": None}


class TestResults:
    def test_execution_result_defaults(self) -> None:
        result = ExecutionResult(preview_id="tok", outcome=BulkOutcome.SUCCESS)
        assert result.affected_count == 0
        assert result.failures == []
        assert result.executed_at.tzinfo is not None

    def test_cancel_result_serializes_state(self) -> None:
        result = CancelResult(preview_id="tok", state=PreviewState.CANCELLED, cancelled=True)
        assert result.model_dump(mode="json")["state"] == "CANCELLED"


class TestStoredRecords:
    """Domain records built straight from ORM rows, as the API returns them."""

    NAIVE = datetime(2026, 3, 1, 12, 0)

    def test_history_record_from_row(self) -> None:
        row = BulkHistoryRow(
            history_id=uuid7(), preview_id="tok", action={"field": "status", "value": "on_hold"},
            criteria={"status": "in_progress"}, affected_count=2, performed_by=uuid7(),
            performed_at=self.NAIVE, outcome="SUCCESS", error_detail=None,
        )
        record = HistoryRecord.model_validate(row, from_attributes=True)
        assert record.outcome == BulkOutcome.SUCCESS
        assert record.performed_at == self.NAIVE.replace(tzinfo=timezone.utc)

    def test_preview_record_from_row(self) -> None:
        course_id = uuid7()
        row = BulkPreviewRow(
            preview_id="tok", criteria={}, action={}, matched_ids=[str(course_id)],
            matched_count=1, created_by=uuid7(), created_at=self.NAIVE,
            expires_at=self.NAIVE + timedelta(minutes=5), state="PENDING",
        )
        record = PreviewRecord.model_validate(row, from_attributes=True)
        assert record.state == PreviewState.PENDING
        assert record.matched_ids == [course_id]
        assert record.expires_at.tzinfo is not None
        assert record.state_changed_at is None

    def test_template_from_row(self) -> None:
        row = BulkTemplateRow(
            template_id=uuid7(), name="Hold", description="", criteria={"status": "in_progress"},
            action={"field": "status", "value": "on_hold"}, created_by=uuid7(),
            created_at=self.NAIVE, updated_at=self.NAIVE,
        )
        template = BulkTemplate.model_validate(row, from_attributes=True)
        assert template.name == "Hold"
        assert template.updated_at.tzinfo is not None
