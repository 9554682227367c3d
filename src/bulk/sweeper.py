"""PreviewSweeper — periodic expiry and purge of bulk previews.

Lookups already treat overdue PENDING previews as expired; the sweeper
makes that durable (PENDING → EXPIRED) and deletes terminal previews once
they are older than the retention window. Each pass runs in its own
session and commits.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.settings import Settings
from src.models.common import utc_now
from src.repositories.bulk import PreviewRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepReport:
    expired: int
    purged: int


class PreviewSweeper:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession],
                 settings: Settings) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._task: asyncio.Task[None] | None = None
        self._stop = asyncio.Event()

    async def sweep_once(self, now: datetime | None = None) -> SweepReport:
        now = now or utc_now()
        cutoff = now - timedelta(seconds=self._settings.BULK_PREVIEW_RETENTION_SECONDS)
        async with self._session_factory() as session:
            repo = PreviewRepository(session)
            expired = await repo.expire_overdue(now)
            purged = await repo.purge_terminal(cutoff)
            await session.commit()
        if expired or purged:
            logger.info("Preview sweep: %d expired, %d purged", expired, purged)
        return SweepReport(expired=expired, purged=purged)

    async def run(self, stop_event: asyncio.Event) -> None:
        """Sweep every BULK_SWEEP_INTERVAL_SECONDS until stop_event is set.

        A failed pass is logged and retried on the next tick.
        """
        interval = self._settings.BULK_SWEEP_INTERVAL_SECONDS
        while not stop_event.is_set():
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Preview sweep failed")
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=interval)

    def start(self) -> None:
        """Start the background loop. No-op when the interval is 0."""
        if self._settings.BULK_SWEEP_INTERVAL_SECONDS == 0:
            logger.info("Preview sweeper disabled")
            return
        if self._task is None or self._task.done():
            self._stop.clear()
            self._task = asyncio.get_running_loop().create_task(
                self.run(self._stop), name="bulk-preview-sweeper",
            )

    async def stop(self) -> None:
        self._stop.set()
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
