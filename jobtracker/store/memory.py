from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from threading import Lock

from jobtracker.errors import JobConflict, JobNotFound
from jobtracker.schemas.job import Job
from jobtracker.store.base import JobStore, Mutation, apply_changes, utcnow


class InMemoryJobStore(JobStore):
    """Process-local store for development and tests.

    Updates are linearized under a lock, so a losing writer always observes the
    winner's state rather than a conflict.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = Lock()
        self._clock = clock

    async def insert(self, job: Job) -> Job:
        with self._lock:
            if job.id in self._jobs:
                raise JobConflict(job.id, f"Job already exists: {job.id}")
            self._jobs[job.id] = job
        return job

    async def get_by_id(self, job_id: str) -> Job:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    async def update(self, job_id: str, mutation: Mutation) -> Job:
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise JobNotFound(job_id)
            updated = apply_changes(current, mutation(current), now=self._clock())
            self._jobs[job_id] = updated
        return updated

    async def list_jobs(
        self,
        *,
        kind: str | None = None,
        status: str | None = None,
        owner: str | None = None,
        limit: int = 100,
    ) -> list[Job]:
        with self._lock:
            jobs = list(self._jobs.values())

        matches = [
            j
            for j in jobs
            if (kind is None or j.kind == kind)
            and (status is None or j.status == status)
            and (owner is None or j.owner == owner)
        ]
        # Stable sort: ties keep insertion order.
        matches.sort(key=lambda j: j.created_at)
        return matches[: max(1, limit)]
