"""Tests for the seed script — verifies sample data can be loaded into DB."""

from datetime import date, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from scripts.seed import (
    BUILTIN_TEMPLATES,
    SAMPLE_COURSES,
    SYSTEM_ACTOR_ID,
    seed_courses,
    seed_templates,
)
from src.models.bulk import BulkAction, Criteria
from src.models.common import CourseStatus
from src.repositories.bulk import TemplateRepository
from src.repositories.courses import CourseRepository


class TestSeedCourses:
    """seed_courses creates one course per sample row."""

    @pytest.mark.anyio
    async def test_creates_all_courses(self, db_session: AsyncSession) -> None:
        today = date(2026, 10, 19)
        rows = await seed_courses(db_session, today=today)
        assert len(rows) == len(SAMPLE_COURSES)

        stored = await CourseRepository(db_session).list_all()
        assert {r.title for r in stored} == {c[0] for c in SAMPLE_COURSES}
        first = next(r for r in stored if r.title == SAMPLE_COURSES[0][0])
        assert first.due_date == today + timedelta(days=SAMPLE_COURSES[0][3])

    @pytest.mark.anyio
    async def test_single_owner(self, db_session: AsyncSession) -> None:
        rows = await seed_courses(db_session)
        assert len({r.owner_id for r in rows}) == 1

    def test_sample_values_are_valid(self) -> None:
        for _, status, priority, _ in SAMPLE_COURSES:
            CourseStatus(status)
            assert priority in {"low", "medium", "high", "critical", "urgent"}


class TestSeedTemplates:
    """seed_templates creates the built-in templates once."""

    @pytest.mark.anyio
    async def test_creates_builtins(self, db_session: AsyncSession) -> None:
        rows = await seed_templates(db_session)
        assert [r.name for r in rows] == [t["name"] for t in BUILTIN_TEMPLATES]
        assert all(r.created_by == SYSTEM_ACTOR_ID for r in rows)

    @pytest.mark.anyio
    async def test_skips_existing(self, db_session: AsyncSession) -> None:
        await seed_templates(db_session)
        assert await seed_templates(db_session) == []
        assert len(await TemplateRepository(db_session).list_all()) == len(BUILTIN_TEMPLATES)

    def test_builtin_definitions_validate(self) -> None:
        for template in BUILTIN_TEMPLATES:
            Criteria.model_validate(template["criteria"])
            BulkAction.model_validate(template["action"])
