"""Shared pytest fixtures for CourseFlow test suite.

Provides:
- db_engine: in-memory SQLite async engine with all tables (fresh per test)
- db_session: async session on that engine
- client: AsyncClient with the session dependency overridden (Unit-of-Work kept)
- admin / manager / designer: actors, plus header helpers for the API
- make_course: course factory with controllable creation order
"""

from collections.abc import Awaitable, Callable
from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool
from uuid_extensions import uuid7

from src.config.settings import Settings
from src.db.session import Base, get_async_session
from src.db.tables import CourseRow
from src.models.common import Actor, ActorRole, utc_now
from src.repositories.courses import CourseRepository
import src.db.tables  # noqa: F401 — register ORM models on Base.metadata


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with all tables.

    pysqlite's implicit BEGIN handling breaks SAVEPOINTs, so BEGIN is
    emitted explicitly (bulk execution runs inside session.begin_nested()).
    """
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )

    @event.listens_for(eng.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):  # noqa: ARG001
        dbapi_connection.isolation_level = None

    @event.listens_for(eng.sync_engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Session on the per-test engine. Each test gets an empty database."""
    session = AsyncSession(db_engine, expire_on_commit=False)
    yield session
    await session.close()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
async def client(db_session):
    """AsyncClient with get_async_session overridden to use the test session.

    Commit/rollback mirror the production Unit-of-Work dependency.
    """
    from src.api.main import app

    async def _override_session():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_async_session] = _override_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


@pytest.fixture
def admin() -> Actor:
    return Actor(actor_id=uuid7(), role=ActorRole.ADMIN)


@pytest.fixture
def manager() -> Actor:
    return Actor(actor_id=uuid7(), role=ActorRole.MANAGER)


@pytest.fixture
def other_manager() -> Actor:
    return Actor(actor_id=uuid7(), role=ActorRole.MANAGER)


@pytest.fixture
def designer() -> Actor:
    return Actor(actor_id=uuid7(), role=ActorRole.DESIGNER)


def _actor_headers(actor: Actor) -> dict[str, str]:
    return {"X-Actor-Id": str(actor.actor_id), "X-Actor-Role": actor.role.value}


@pytest.fixture
def headers_for() -> Callable[[Actor], dict[str, str]]:
    """Gateway identity headers for an actor."""
    return _actor_headers


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


MakeCourse = Callable[..., Awaitable[CourseRow]]


@pytest.fixture
def make_course(db_session: AsyncSession) -> MakeCourse:
    """Create courses whose created_at increases with each call (stable order)."""
    repo = CourseRepository(db_session)
    base = utc_now() - timedelta(days=30)
    counter = {"n": 0}

    async def _make(title: str | None = None, *, status: str = "in_progress",
                    priority: str = "medium", owner_id=None, assignee_id=None,
                    due_date: date | None = None) -> CourseRow:
        counter["n"] += 1
        return await repo.create(
            course_id=uuid7(),
            title=title or f"Course {counter['n']:03d}",
            status=status,
            priority=priority,
            owner_id=owner_id,
            assignee_id=assignee_id,
            due_date=due_date,
            created_at=base + timedelta(minutes=counter["n"]),
        )

    return _make
