"""FastAPI course listing endpoint.

GET /v1/courses — courses filtered by the same predicates bulk operations use

Filtering goes through the shared predicate builder, so a listing with the
same filters shows exactly the courses a bulk preview would match.
"""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from src.api.auth import get_current_actor
from src.api.dependencies import get_course_repo
from src.bulk.errors import BulkOperationError
from src.bulk.validator import CriteriaValidator
from src.db.tables import CourseRow
from src.models.common import Actor, ensure_utc
from src.repositories.courses import CourseRepository

router = APIRouter(prefix="/v1/courses", tags=["courses"])

_validator = CriteriaValidator()


class CourseResponse(BaseModel):
    course_id: str
    title: str
    status: str
    priority: str
    owner_id: str | None = None
    assignee_id: str | None = None
    due_date: date | None = None
    created_at: datetime
    updated_at: datetime


class CourseListResponse(BaseModel):
    items: list[CourseResponse]
    total: int
    limit: int
    offset: int


def _row_to_response(row: CourseRow) -> CourseResponse:
    return CourseResponse(
        course_id=str(row.course_id),
        title=row.title,
        status=row.status,
        priority=row.priority,
        owner_id=str(row.owner_id) if row.owner_id else None,
        assignee_id=str(row.assignee_id) if row.assignee_id else None,
        due_date=row.due_date,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


@router.get("", response_model=CourseListResponse)
async def list_courses(
    status: str | None = None,
    priority: str | None = None,
    owner_id: UUID | None = None,
    assignee_id: UUID | None = None,
    due_after: date | None = None,
    due_before: date | None = None,
    search: str | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_current_actor),
    repo: CourseRepository = Depends(get_course_repo),
) -> CourseListResponse:
    """List non-deleted courses in stable (created_at, course_id) order."""
    raw: dict = {
        "status": status,
        "priority": priority,
        "owner_id": owner_id,
        "assignee_id": assignee_id,
        "search": search,
    }
    if due_after is not None or due_before is not None:
        raw["due_date"] = {"after": due_after, "before": due_before}
    raw = {k: v for k, v in raw.items() if v is not None}

    criteria = None
    if raw:
        try:
            criteria = _validator.validate_criteria(raw)
        except BulkOperationError as exc:
            raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc

    rows = await repo.list_matching(criteria, limit=limit, offset=offset)
    total = await repo.count_matching(criteria)
    return CourseListResponse(
        items=[_row_to_response(r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
    )
