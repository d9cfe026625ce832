from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from jobtracker.api.deps import get_game_allocator, get_task_queue
from jobtracker.main import app
from jobtracker.models import Base
from jobtracker.services.matchmaking import InMemoryGameAllocator
from jobtracker.services.task_queue import TaskQueue
from jobtracker.store import InMemoryJobStore, SqlJobStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def sqlite_path(tmp_path: Path) -> Path:
    return tmp_path / "jobs.db"


@pytest.fixture
async def sessionmaker(sqlite_path: Path):
    """Fresh SQLite database (via aiosqlite) with the schema created from metadata."""

    engine = create_async_engine(f"sqlite+aiosqlite:///{sqlite_path}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    await engine.dispose()


@pytest.fixture(params=["memory", "sql"])
async def store(request, sessionmaker):
    if request.param == "memory":
        return InMemoryJobStore()
    return SqlJobStore(sessionmaker)


@pytest.fixture
async def queue(store) -> TaskQueue:
    return TaskQueue(store)


@pytest.fixture
def memory_queue() -> TaskQueue:
    return TaskQueue(InMemoryJobStore())


@pytest.fixture
def client(memory_queue: TaskQueue):
    allocator = InMemoryGameAllocator(start=42)
    app.dependency_overrides[get_task_queue] = lambda: memory_queue
    app.dependency_overrides[get_game_allocator] = lambda: allocator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
