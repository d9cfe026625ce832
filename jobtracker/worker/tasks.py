from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from jobtracker.config import settings
from jobtracker.database import make_sessionmaker, make_unpooled_engine
from jobtracker.services.matchmaking import SqlGameAllocator
from jobtracker.services.task_queue import TaskQueue, TaskQueueDefaults
from jobtracker.store import SqlJobStore
from jobtracker.worker import handlers
from jobtracker.worker.celery_app import celery_app
from jobtracker.worker.generation import HttpImageGenerator


logger = logging.getLogger(__name__)


@asynccontextmanager
async def _worker_context() -> AsyncIterator[tuple[TaskQueue, SqlGameAllocator]]:
    """Queue and allocator bound to an engine that lives as long as one task."""

    if settings.job_store != "sql":
        raise RuntimeError(
            f"Celery workers require JOB_STORE=sql (got {settings.job_store!r}); "
            "an in-memory store is not shared with the API process"
        )

    engine = make_unpooled_engine(settings.database_url)
    try:
        sessionmaker = make_sessionmaker(engine)
        queue = TaskQueue(
            SqlJobStore(sessionmaker),
            defaults=TaskQueueDefaults(advance_max_attempts=settings.advance_max_attempts),
        )
        yield queue, SqlGameAllocator(sessionmaker)
    finally:
        await engine.dispose()


async def _process_image_job(job_id: str):
    async with _worker_context() as (queue, _):
        return await handlers.process_image_job(queue, job_id, HttpImageGenerator(settings))


async def _run_matchmaking():
    async with _worker_context() as (queue, allocator):
        return await handlers.run_matchmaking(queue, allocator)


@celery_app.task(name="jobtracker.process_image_job")
def process_image_job(job_id: str) -> str | None:
    logger.info("process_image_job received (job_id=%s)", job_id)
    job = asyncio.run(_process_image_job(job_id))
    return job.status if job is not None else None


@celery_app.task(name="jobtracker.run_matchmaking")
def run_matchmaking() -> list[int]:
    games = asyncio.run(_run_matchmaking())
    return [g.id for g in games]
