from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from jobtracker.schemas.job import Job, JobErrorDetail, JobOutput, JobStatus


@dataclass(frozen=True)
class JobChanges:
    """The part of a job a transition is allowed to touch."""

    status: JobStatus
    output: JobOutput | None = None
    error: JobErrorDetail | None = None


Mutation = Callable[[Job], JobChanges]


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def apply_changes(current: Job, changes: JobChanges, *, now: datetime) -> Job:
    """Build the next snapshot of ``current``; invariants are re-validated."""

    data = current.model_dump()
    data.update(
        status=changes.status,
        output=changes.output.model_dump() if changes.output is not None else None,
        error=changes.error.model_dump() if changes.error is not None else None,
        # Clocks can step backwards; updated_at must not.
        updated_at=max(now, current.updated_at),
        version=current.version + 1,
    )
    return Job.model_validate(data)


class JobStore(ABC):
    """Race-safe storage of jobs keyed by identifier."""

    @abstractmethod
    async def insert(self, job: Job) -> Job:
        """Store a new job. Raises JobConflict if the identifier exists."""

    @abstractmethod
    async def get_by_id(self, job_id: str) -> Job:
        """Return the current job. Raises JobNotFound."""

    @abstractmethod
    async def update(self, job_id: str, mutation: Mutation) -> Job:
        """Read, apply ``mutation`` and write atomically.

        Raises JobNotFound if absent and JobConflict if a concurrent writer
        changed the job between the read and the write. Anything ``mutation``
        raises propagates and nothing is written.
        """

    @abstractmethod
    async def list_jobs(
        self,
        *,
        kind: str | None = None,
        status: str | None = None,
        owner: str | None = None,
        limit: int = 100,
    ) -> list[Job]:
        """Jobs matching the filters, oldest first."""
