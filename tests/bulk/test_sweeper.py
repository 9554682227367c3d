"""Tests for PreviewSweeper — durable expiry and purge of old previews."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker
from uuid_extensions import uuid7

from src.bulk.sweeper import PreviewSweeper
from src.config.settings import Settings
from src.db.tables import BulkPreviewRow
from src.models.common import PreviewState, utc_now
from src.repositories.bulk import PreviewRepository


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


async def _states(session) -> dict[str, str]:
    result = await session.execute(select(BulkPreviewRow.preview_id, BulkPreviewRow.state))
    return dict(result.all())


class TestSweepOnce:
    @pytest.mark.anyio
    async def test_expires_overdue_and_purges_old_terminal(self, db_session, session_factory) -> None:
        repo = PreviewRepository(db_session)
        now = utc_now()
        owner = uuid7()
        for pid, expires in (
            ("fresh", now + timedelta(minutes=5)),
            ("overdue", now - timedelta(minutes=5)),
            ("old-cancelled", now - timedelta(days=3)),
            ("new-cancelled", now + timedelta(minutes=5)),
        ):
            await repo.create(
                preview_id=pid, criteria={"priority": "low"},
                action={"field": "priority", "value": "high"},
                matched_ids=[], created_by=owner, expires_at=expires,
            )
        await repo.transition("old-cancelled", from_state=PreviewState.PENDING, to_state=PreviewState.CANCELLED)
        await repo.transition("new-cancelled", from_state=PreviewState.PENDING, to_state=PreviewState.CANCELLED)
        old = await repo.get("old-cancelled")
        old.state_changed_at = now - timedelta(days=2)
        await db_session.commit()

        sweeper = PreviewSweeper(session_factory, Settings(BULK_PREVIEW_RETENTION_SECONDS=86_400))
        report = await sweeper.sweep_once(now)

        assert report.expired == 1
        assert report.purged == 1
        assert await _states(db_session) == {
            "fresh": PreviewState.PENDING.value,
            "overdue": PreviewState.EXPIRED.value,
            "new-cancelled": PreviewState.CANCELLED.value,
        }

    @pytest.mark.anyio
    async def test_empty_store(self, session_factory) -> None:
        report = await PreviewSweeper(session_factory, Settings()).sweep_once()
        assert (report.expired, report.purged) == (0, 0)


class TestSweepLoop:
    @pytest.mark.anyio
    async def test_run_stops_on_event(self, session_factory) -> None:
        sweeper = PreviewSweeper(session_factory, Settings(BULK_SWEEP_INTERVAL_SECONDS=1))
        stop = asyncio.Event()
        task = asyncio.create_task(sweeper.run(stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=2)
        assert task.done()

    @pytest.mark.anyio
    async def test_start_disabled_when_interval_zero(self, session_factory) -> None:
        sweeper = PreviewSweeper(session_factory, Settings(BULK_SWEEP_INTERVAL_SECONDS=0))
        sweeper.start()
        assert sweeper._task is None
        await sweeper.stop()

    @pytest.mark.anyio
    async def test_start_and_stop(self, session_factory) -> None:
        sweeper = PreviewSweeper(session_factory, Settings(BULK_SWEEP_INTERVAL_SECONDS=60))
        sweeper.start()
        await asyncio.sleep(0.05)
        await sweeper.stop()
        assert sweeper._task is None
