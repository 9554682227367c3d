"""Tests for per-course impact analysis used by previews and execution checks."""

from datetime import date, timedelta

from uuid_extensions import uuid7

from src.bulk import impact
from src.db.tables import CourseRow
from src.models.bulk import BulkAction
from src.models.common import ActionField, ImpactLevel, utc_now


def _row(status: str = "in_progress", priority: str = "medium", assignee_id=None,
         due_date: date | None = None) -> CourseRow:
    now = utc_now()
    return CourseRow(
        course_id=uuid7(), title="Fire Safety", status=status, priority=priority,
        assignee_id=assignee_id, due_date=due_date, created_at=now, updated_at=now,
    )


class TestStatusImpact:
    def test_hold_active_course_is_medium(self) -> None:
        diff = impact.analyze(_row("development"), BulkAction(field=ActionField.STATUS, value="on_hold"))
        assert diff.changed
        assert diff.is_valid
        assert diff.impact_level == ImpactLevel.MEDIUM
        assert diff.current_value == "development"
        assert diff.new_value == "on_hold"

    def test_cancel_is_high(self) -> None:
        diff = impact.analyze(_row("outlines"), BulkAction(field=ActionField.STATUS, value="cancelled"))
        assert diff.impact_level == ImpactLevel.HIGH
        assert diff.is_valid

    def test_invalid_transition(self) -> None:
        diff = impact.analyze(_row("cancelled"), BulkAction(field=ActionField.STATUS, value="in_progress"))
        assert not diff.is_valid
        assert diff.impact_level == ImpactLevel.HIGH
        assert diff.warnings == ["Status cannot change from cancelled to in_progress"]

    def test_same_value_is_unchanged(self) -> None:
        diff = impact.analyze(_row("on_hold"), BulkAction(field=ActionField.STATUS, value="on_hold"))
        assert not diff.changed
        assert diff.is_valid
        assert diff.warnings == []


class TestPriorityImpact:
    def test_downgrade_critical_is_high(self) -> None:
        diff = impact.analyze(_row(priority="critical"), BulkAction(field=ActionField.PRIORITY, value="low"))
        assert diff.impact_level == ImpactLevel.HIGH

    def test_upgrade_to_critical_is_medium(self) -> None:
        diff = impact.analyze(_row(priority="low"), BulkAction(field=ActionField.PRIORITY, value="critical"))
        assert diff.impact_level == ImpactLevel.MEDIUM


class TestAssigneeImpact:
    def test_unassign_is_medium(self) -> None:
        diff = impact.analyze(_row(assignee_id=uuid7()), BulkAction(field=ActionField.ASSIGNEE, value=None))
        assert diff.impact_level == ImpactLevel.MEDIUM
        assert diff.new_value is None

    def test_reassign_warns(self) -> None:
        new = str(uuid7())
        diff = impact.analyze(_row(assignee_id=uuid7()), BulkAction(field=ActionField.ASSIGNEE, value=new))
        assert diff.impact_level == ImpactLevel.LOW
        assert diff.warnings == ["Replacing the current assignee"]

    def test_same_assignee_unchanged(self) -> None:
        uid = uuid7()
        diff = impact.analyze(_row(assignee_id=uid), BulkAction(field=ActionField.ASSIGNEE, value=str(uid)))
        assert not diff.changed


class TestSummary:
    def test_counts_and_warnings(self) -> None:
        action = BulkAction(field=ActionField.STATUS, value="on_hold")
        rows = [_row("development"), _row("on_hold"), _row("cancelled")]  # medium, unchanged, invalid
        diffs = [impact.analyze(row, action) for row in rows]
        summary = impact.summarize(diffs)
        assert summary.medium == 1
        assert summary.unchanged == 1
        assert summary.invalid == 1
        assert summary.high == 1

        warnings = impact.overall_warnings(summary, rows)
        assert "1 courses cannot take this change; execution will fail" in warnings

    def test_no_matches_warning(self) -> None:
        warnings = impact.overall_warnings(impact.summarize([]), [])
        assert warnings == ["No courses match the specified criteria"]

    def test_large_operation_warning(self) -> None:
        rows = [_row() for _ in range(impact.LARGE_OPERATION_THRESHOLD + 1)]
        warnings = impact.overall_warnings(impact.summarize([]), rows)
        assert any(w.startswith("Large bulk operation") for w in warnings)

    def test_critical_priority_warning(self) -> None:
        rows = [_row(priority="critical"), _row(priority="critical"), _row(priority="low")]
        warnings = impact.overall_warnings(impact.summarize([]), rows)
        assert "2 critical priority courses will be affected" in warnings

    def test_due_soon_warning_window(self) -> None:
        today = date(2026, 3, 2)
        rows = [
            _row(due_date=today),                        # due today: excluded
            _row(due_date=today + timedelta(days=1)),
            _row(due_date=today + timedelta(days=7)),
            _row(due_date=today + timedelta(days=8)),    # outside the window
            _row(due_date=today - timedelta(days=3)),    # overdue
            _row(),
        ]
        warnings = impact.overall_warnings(impact.summarize([]), rows, today=today)
        assert "2 courses are due within 7 days" in warnings
        assert not any("critical" in w for w in warnings)
