"""Course repository — the slice of course persistence the bulk engine needs."""

from collections.abc import Sequence
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.bulk.predicates import build_conditions, matching_statement
from src.db.tables import CourseRow
from src.models.bulk import Criteria
from src.models.common import utc_now


class CourseRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, course_id: UUID, title: str,
                     status: str = "pre_development", priority: str = "medium",
                     owner_id: UUID | None = None,
                     assignee_id: UUID | None = None,
                     due_date: date | None = None,
                     created_at: datetime | None = None) -> CourseRow:
        now = created_at or utc_now()
        row = CourseRow(
            course_id=course_id, title=title, status=status, priority=priority,
            owner_id=owner_id, assignee_id=assignee_id, due_date=due_date,
            created_at=now, updated_at=now,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, course_id: UUID) -> CourseRow | None:
        return await self._session.get(CourseRow, course_id)

    async def lock_matching(self, criteria: Criteria,
                            course_ids: Sequence[UUID]) -> dict[UUID, CourseRow]:
        """Rows among course_ids that still match criteria, locked FOR UPDATE.

        Locked rows cannot change under a concurrent transaction until this
        one ends. IDs absent from the result no longer match.
        """
        if not course_ids:
            return {}
        stmt = (
            matching_statement(criteria)
            .where(CourseRow.course_id.in_(course_ids))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return {row.course_id: row for row in result.scalars().all()}

    async def list_matching(self, criteria: Criteria | None, *, limit: int = 20,
                            offset: int = 0) -> list[CourseRow]:
        """Listing page filtered with the same predicates bulk operations use."""
        result = await self._session.execute(
            matching_statement(criteria).limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def count_matching(self, criteria: Criteria | None) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(CourseRow).where(*build_conditions(criteria))
        )
        return result.scalar_one()

    async def list_all(self) -> list[CourseRow]:
        result = await self._session.execute(select(CourseRow))
        return list(result.scalars().all())
