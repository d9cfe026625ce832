from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobtracker.crud import job as crud_job
from jobtracker.errors import JobConflict, JobNotFound
from jobtracker.schemas.job import Job
from jobtracker.store.base import JobStore, Mutation, apply_changes, utcnow


logger = logging.getLogger("jobtracker.store")


def _row_values(job: Job) -> dict:
    data = job.model_dump(mode="json")
    # Keep real datetimes for the DateTime columns.
    data["created_at"] = job.created_at
    data["updated_at"] = job.updated_at
    return data


class SqlJobStore(JobStore):
    """Job store over a SQL table (see ``jobtracker.models.job``).

    Each call opens its own session and transaction; nothing is cached between
    calls. Updates are a read followed by a conditional UPDATE on
    ``(id, version, status)``.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._sessionmaker = sessionmaker
        self._clock = clock

    async def insert(self, job: Job) -> Job:
        async with self._sessionmaker() as session:
            try:
                await crud_job.insert_job(session, values=_row_values(job))
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise JobConflict(job.id, f"Job already exists: {job.id}")
        return job

    async def get_by_id(self, job_id: str) -> Job:
        async with self._sessionmaker() as session:
            row = await crud_job.get_job(session, job_id=job_id)
            if row is None:
                raise JobNotFound(job_id)
            return Job.model_validate(row)

    async def update(self, job_id: str, mutation: Mutation) -> Job:
        async with self._sessionmaker() as session:
            row = await crud_job.get_job(session, job_id=job_id)
            if row is None:
                raise JobNotFound(job_id)

            current = Job.model_validate(row)
            updated = apply_changes(current, mutation(current), now=self._clock())

            values = _row_values(updated)
            swapped = await crud_job.swap_job(
                session,
                job_id=job_id,
                expected_version=current.version,
                expected_status=current.status,
                values={k: values[k] for k in ("status", "output", "error", "updated_at")},
            )
            if not swapped:
                await session.rollback()
                logger.info(
                    "job_swap_lost job_id=%s expected_version=%s expected_status=%s",
                    job_id,
                    current.version,
                    current.status,
                )
                raise JobConflict(job_id)

            await session.commit()
        return updated

    async def list_jobs(
        self,
        *,
        kind: str | None = None,
        status: str | None = None,
        owner: str | None = None,
        limit: int = 100,
    ) -> list[Job]:
        async with self._sessionmaker() as session:
            rows = await crud_job.list_jobs(session, kind=kind, status=status, owner=owner, limit=limit)
            return [Job.model_validate(r) for r in rows]
