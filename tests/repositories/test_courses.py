"""Tests for CourseRepository and ActivityRepository."""

import pytest
from uuid_extensions import uuid7

from src.models.bulk import Criteria
from src.repositories.activities import ActivityRepository
from src.repositories.courses import CourseRepository


@pytest.fixture
def repo(db_session):
    return CourseRepository(db_session)


class TestCourseRepository:
    @pytest.mark.anyio
    async def test_create_and_get(self, repo: CourseRepository) -> None:
        cid = uuid7()
        row = await repo.create(course_id=cid, title="Ethics 101")
        assert row.status == "pre_development"
        assert row.priority == "medium"
        assert row.created_at == row.updated_at

        fetched = await repo.get(cid)
        assert fetched.title == "Ethics 101"

    @pytest.mark.anyio
    async def test_lock_matching_reapplies_criteria(self, repo: CourseRepository, make_course) -> None:
        keep = await make_course(priority="low")
        moved = await make_course(priority="low")
        moved.priority = "high"
        missing = uuid7()

        found = await repo.lock_matching(
            Criteria(priority="low"), [keep.course_id, moved.course_id, missing],
        )
        assert list(found) == [keep.course_id]
        assert await repo.lock_matching(Criteria(priority="low"), []) == {}

    @pytest.mark.anyio
    async def test_list_matching_paginates(self, repo: CourseRepository, make_course) -> None:
        courses = [await make_course(priority="low") for _ in range(5)]
        page = await repo.list_matching(Criteria(priority="low"), limit=2, offset=2)
        assert [r.course_id for r in page] == [c.course_id for c in courses[2:4]]

    @pytest.mark.anyio
    async def test_unfiltered_listing_hides_deleted(self, repo: CourseRepository, make_course) -> None:
        await make_course()
        await make_course(status="deleted")
        rows = await repo.list_matching(None, limit=10)
        assert len(rows) == 1
        assert len(await repo.list_all()) == 2


class TestActivityRepository:
    @pytest.mark.anyio
    async def test_entries_visible_after_flush(self, db_session) -> None:
        repo = ActivityRepository(db_session)
        user = uuid7()
        await repo.create(entity_type="course", entity_id="c-1", action="bulk_updated", user_id=user)
        await repo.create(
            entity_type="course", entity_id="c-1", action="commented", user_id=user,
            metadata={"text": "ok"},
        )
        await db_session.flush()

        rows = await repo.get_by_entity("course", "c-1")
        assert [r.action for r in rows] == ["bulk_updated", "commented"]
        assert rows[0].metadata_json == {}
        assert rows[1].metadata_json == {"text": "ok"}
        assert len(await repo.get_by_action("bulk_updated")) == 1
