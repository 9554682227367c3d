"""Run one preview sweep: expire overdue PENDING previews, purge old terminal ones.

Usage:
    python -m scripts.sweep_previews
"""

import asyncio

from src.bulk.sweeper import PreviewSweeper
from src.config.settings import get_settings


async def _run_sweep() -> None:
    from src.db.session import async_session_factory

    report = await PreviewSweeper(async_session_factory, get_settings()).sweep_once()
    print(f"Preview sweep: {report.expired} expired, {report.purged} purged.")


if __name__ == "__main__":
    asyncio.run(_run_sweep())
