"""MatchResolver — enumerates the courses currently satisfying a criteria object.

Read-only. Uses the same statement as the course listing endpoint.
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.bulk.predicates import matching_statement
from src.db.tables import CourseRow
from src.models.bulk import Criteria


class MatchResolver:
    """Resolves criteria to matched courses, ordered by (created_at, course_id)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def resolve(self, criteria: Criteria) -> list[UUID]:
        """Ordered IDs of every matching course."""
        result = await self._session.execute(matching_statement(criteria, CourseRow.course_id))
        return list(result.scalars().all())

    async def fetch(self, criteria: Criteria) -> list[CourseRow]:
        """Ordered rows of every matching course (needed for preview diffs)."""
        result = await self._session.execute(matching_statement(criteria))
        return list(result.scalars().all())
