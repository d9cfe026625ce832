from __future__ import annotations

import os
import sys
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from jobtracker.config import settings


def make_engine(url: str, **kwargs: Any) -> AsyncEngine:
    return create_async_engine(url, pool_pre_ping=True, **kwargs)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def make_unpooled_engine(url: str) -> AsyncEngine:
    """Engine whose connections never outlive the event loop that opened them.

    Celery tasks run each job in its own ``asyncio.run`` loop; pooled asyncpg
    connections from a previous loop cannot be reused there.
    """

    return make_engine(url, poolclass=NullPool)


# Under pytest the sync TestClient may drive requests from different event
# loops, which has the same problem as the Celery tasks.
if os.getenv("PYTEST_CURRENT_TEST") or ("pytest" in sys.modules):
    engine = make_unpooled_engine(settings.database_url)
else:
    engine = make_engine(settings.database_url)

SessionLocal = make_sessionmaker(engine)
