"""Typed predicate builder shared by the course listing and the bulk MatchResolver.

Each Criteria field maps to exactly one parameterized SQLAlchemy condition.
Preview, execute and GET /v1/courses all go through matching_statement(),
so they cannot disagree about which courses a criteria object selects.
"""

from collections.abc import Callable
from typing import Any

from sqlalchemy import ColumnElement, Select, and_, select

from src.db.tables import CourseRow
from src.models.bulk import Criteria, DateRange
from src.models.common import CourseStatus

# Stable key for deterministic ordering of matches and preview samples.
STABLE_ORDER = (CourseRow.created_at.asc(), CourseRow.course_id.asc())


def _due_date(window: DateRange) -> ColumnElement[bool]:
    bounds = []
    if window.after is not None:
        bounds.append(CourseRow.due_date >= window.after)
    if window.before is not None:
        bounds.append(CourseRow.due_date <= window.before)
    return and_(*bounds)


_PREDICATES: dict[str, Callable[[Any], ColumnElement[bool]]] = {
    "status": lambda v: CourseRow.status == v.value,
    "priority": lambda v: CourseRow.priority == v.value,
    "owner_id": lambda v: CourseRow.owner_id == v,
    "assignee_id": lambda v: CourseRow.assignee_id == v,
    "course_ids": lambda v: CourseRow.course_id.in_(v),
    "due_date": _due_date,
    "search": lambda v: CourseRow.title.icontains(v, autoescape=True),
}


def build_conditions(criteria: Criteria | None) -> list[ColumnElement[bool]]:
    """Map each present predicate to its condition. Deleted courses never match.

    None (unfiltered course listing) selects every non-deleted course.
    """
    conditions: list[ColumnElement[bool]] = [CourseRow.status != CourseStatus.DELETED.value]
    if criteria is None:
        return conditions
    for name in criteria.present_fields():
        conditions.append(_PREDICATES[name](getattr(criteria, name)))
    return conditions


def matching_statement(criteria: Criteria | None, *columns) -> Select:
    """SELECT the given columns (default: full rows) of courses matching criteria, stably ordered."""
    stmt = select(*columns) if columns else select(CourseRow)
    return stmt.where(*build_conditions(criteria)).order_by(*STABLE_ORDER)
