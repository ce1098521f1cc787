"""
Pytest fixtures for test database, engine, and HTTP client.

Each test gets its own SQLite file database (via aiosqlite) with fresh
tables, so tests are isolated without a running PostgreSQL.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from openday.core.config import Settings
from openday.db.base import Base
from openday.db.session import create_engine, create_session_factory
from openday.main import app
from openday.models.activity import Activity
from openday.services.engine import ReservationEngine, build_engine
from openday.services.interfaces.memory_cache_backend import MemoryCacheBackend

# activity_id -> capacity
SEED_ACTIVITIES = {
    "simlab": 2,
    "robotics": 3,
    "robotics-2": 1,
    "chemistry": 10,
}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        CACHE_BACKEND="memory",
        PRESERVE_VARIANTS=True,
        MAX_SLOTS_PER_ACTIVITY=5,
        LOCK_TIMEOUT_SECONDS=10.0,
        MAX_TRANSACTION_ATTEMPTS=5,
        RETRY_BACKOFF_SECONDS=0.01,
    )


@pytest_asyncio.fixture
async def db_engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables, yield the engine, then drop tables."""
    engine = create_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def activities(session_factory) -> dict[str, int]:
    """Seed the activity table; returns activity_id -> row id."""
    async with session_factory() as session:
        rows = [
            Activity(activity_id=activity_id, title=activity_id.title(), capacity=capacity)
            for activity_id, capacity in SEED_ACTIVITIES.items()
        ]
        session.add_all(rows)
        await session.commit()
        return {row.activity_id: row.id for row in rows}


@pytest.fixture
def cache_backend() -> MemoryCacheBackend:
    return MemoryCacheBackend()


@pytest_asyncio.fixture
async def engine(
    settings: Settings,
    session_factory,
    cache_backend: MemoryCacheBackend,
    activities,
) -> AsyncGenerator[ReservationEngine, None]:
    """Engine wired the way the application lifespan wires it."""
    engine = build_engine(settings, session_factory, cache_backend)
    yield engine
    await engine.close()


@pytest_asyncio.fixture
async def client(engine: ReservationEngine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the test engine installed."""
    app.state.engine = engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.engine = None


@pytest.fixture
def counter_of(engine: ReservationEngine):
    """Current participant counter straight from the store."""

    async def _counter(activity_id: str) -> int:
        async with engine.ledger.reader() as reader:
            activity = await reader.get_activity(activity_id)
        return activity.participant_counter

    return _counter


@pytest.fixture
def force_counter(session_factory):
    """Write a participant counter out of band, the way an admin edit would."""

    async def _force(activity_id: str, value: int) -> None:
        async with session_factory() as session:
            await session.execute(
                update(Activity).where(Activity.activity_id == activity_id).values(participant_counter=value)
            )
            await session.commit()

    return _force
