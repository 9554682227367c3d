"""FastAPI dependency injection factories for repositories and bulk services.

Each factory takes AsyncSession via Depends(get_async_session) and returns
a repository or service instance. API endpoints use these via Depends().
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.bulk.cancellation import CancellationRegistry
from src.bulk.execution import ExecutionEngine
from src.bulk.notifications import LoggingNotificationDispatcher, NotificationDispatcher
from src.bulk.preview import PreviewEngine
from src.bulk.templates import TemplateService
from src.config.settings import Settings, get_settings
from src.db.session import get_async_session
from src.repositories.bulk import HistoryRepository, PreviewRepository
from src.repositories.courses import CourseRepository

# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


async def get_course_repo(
    session: AsyncSession = Depends(get_async_session),
) -> CourseRepository:
    return CourseRepository(session)


# ---------------------------------------------------------------------------
# Bulk stores
# ---------------------------------------------------------------------------


async def get_preview_repo(
    session: AsyncSession = Depends(get_async_session),
) -> PreviewRepository:
    return PreviewRepository(session)


async def get_history_repo(
    session: AsyncSession = Depends(get_async_session),
) -> HistoryRepository:
    return HistoryRepository(session)


# ---------------------------------------------------------------------------
# Bulk engines
# ---------------------------------------------------------------------------


async def get_preview_engine(
    session: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> PreviewEngine:
    return PreviewEngine(session, settings)


async def get_execution_engine(
    session: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> ExecutionEngine:
    return ExecutionEngine(session, settings)


async def get_cancellation_registry(
    session: AsyncSession = Depends(get_async_session),
) -> CancellationRegistry:
    return CancellationRegistry(session)


async def get_template_service(
    session: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> TemplateService:
    return TemplateService(session, settings)


def get_notification_dispatcher() -> NotificationDispatcher:
    return LoggingNotificationDispatcher()
