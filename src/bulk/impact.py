"""Per-course impact analysis for bulk previews and execution checks.

For one course and one action, works out the before/after values, whether
the change is allowed (status state machine), how disruptive it is, and
which warnings an operator should see before confirming.

Deterministic — no database access.
"""

from collections.abc import Iterable, Sequence
from datetime import date

from src.db.tables import CourseRow
from src.models.bulk import BulkAction, ImpactSummary, SampleDiff
from src.models.common import ActionField, CoursePriority, CourseStatus, ImpactLevel, utc_now
from src.models.course import can_transition

LARGE_OPERATION_THRESHOLD = 50
DUE_SOON_DAYS = 7

_ACTIVE = frozenset({
    CourseStatus.IN_PROGRESS,
    CourseStatus.OUTLINES,
    CourseStatus.STORYBOARD,
    CourseStatus.DEVELOPMENT,
})


def current_value(row: CourseRow, field: ActionField) -> str | None:
    """Current value of the action's target column, in its JSON form."""
    if field == ActionField.STATUS:
        return row.status
    if field == ActionField.PRIORITY:
        return row.priority
    return str(row.assignee_id) if row.assignee_id is not None else None


def _status_impact(current: str, new: str) -> tuple[ImpactLevel, list[str], bool]:
    cur, tgt = CourseStatus(current), CourseStatus(new)
    if not can_transition(cur, tgt):
        return ImpactLevel.HIGH, [f"Status cannot change from {cur.value} to {tgt.value}"], False
    if tgt == CourseStatus.CANCELLED:
        return ImpactLevel.HIGH, ["Course will be cancelled"], True
    if cur in _ACTIVE and tgt in {CourseStatus.ON_HOLD, CourseStatus.PAUSED}:
        return ImpactLevel.MEDIUM, ["Putting active course on hold"], True
    if cur == CourseStatus.COMPLETED:
        return ImpactLevel.MEDIUM, ["Reopening a completed course"], True
    return ImpactLevel.LOW, [], True


def _priority_impact(current: str, new: str) -> tuple[ImpactLevel, list[str], bool]:
    if current == CoursePriority.CRITICAL and new != CoursePriority.CRITICAL:
        return ImpactLevel.HIGH, ["Downgrading critical priority course"], True
    if new == CoursePriority.CRITICAL and current != CoursePriority.CRITICAL:
        return ImpactLevel.MEDIUM, ["Upgrading to critical priority"], True
    return ImpactLevel.LOW, [], True


def _assignee_impact(current: str | None, new: str | None) -> tuple[ImpactLevel, list[str], bool]:
    if new is None:
        return ImpactLevel.MEDIUM, ["Course will be left without an assignee"], True
    if current is not None:
        return ImpactLevel.LOW, ["Replacing the current assignee"], True
    return ImpactLevel.LOW, [], True


_ANALYZERS = {
    ActionField.STATUS: _status_impact,
    ActionField.PRIORITY: _priority_impact,
    ActionField.ASSIGNEE: _assignee_impact,
}


def analyze(row: CourseRow, action: BulkAction) -> SampleDiff:
    """Diff and impact of applying action to a single course."""
    before = current_value(row, action.field)
    changed = before != action.value

    level, warnings, is_valid = ImpactLevel.LOW, [], True
    if changed:
        level, warnings, is_valid = _ANALYZERS[action.field](before, action.value)

    return SampleDiff(
        course_id=row.course_id,
        title=row.title,
        field=action.field,
        current_value=before,
        new_value=action.value,
        changed=changed,
        impact_level=level,
        warnings=warnings,
        is_valid=is_valid,
    )


def summarize(diffs: Iterable[SampleDiff]) -> ImpactSummary:
    """Count impact levels over the whole matched set."""
    summary = ImpactSummary()
    for diff in diffs:
        if not diff.is_valid:
            summary.invalid += 1
        if not diff.changed:
            summary.unchanged += 1
        elif diff.impact_level == ImpactLevel.HIGH:
            summary.high += 1
        elif diff.impact_level == ImpactLevel.MEDIUM:
            summary.medium += 1
        else:
            summary.low += 1
    return summary


def overall_warnings(summary: ImpactSummary, rows: Sequence[CourseRow],
                     today: date | None = None) -> list[str]:
    """Operation-level warnings shown above the sample.

    Deadline warnings count courses due within DUE_SOON_DAYS after today
    (UTC), excluding today itself and anything overdue.
    """
    matched_count = len(rows)
    today = today or utc_now().date()
    warnings: list[str] = []
    if matched_count == 0:
        warnings.append("No courses match the specified criteria")
    if summary.invalid:
        warnings.append(f"{summary.invalid} courses cannot take this change; execution will fail")
    if summary.high:
        warnings.append(f"{summary.high} courses have high-impact changes")
    if summary.unchanged and summary.unchanged == matched_count:
        warnings.append("No matched course would change")
    critical = sum(1 for row in rows if row.priority == CoursePriority.CRITICAL)
    if critical:
        warnings.append(f"{critical} critical priority courses will be affected")
    due_soon = sum(
        1 for row in rows
        if row.due_date is not None and 0 < (row.due_date - today).days <= DUE_SOON_DAYS
    )
    if due_soon:
        warnings.append(f"{due_soon} courses are due within {DUE_SOON_DAYS} days")
    if matched_count > LARGE_OPERATION_THRESHOLD:
        warnings.append("Large bulk operation - consider splitting into smaller batches")
    return warnings
