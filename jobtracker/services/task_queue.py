from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from jobtracker.errors import InvalidTransition, JobConflict
from jobtracker.schemas.job import (
    Job,
    JobErrorDetail,
    JobInput,
    JobOutput,
    JobStatus,
    MatchmakingInput,
)
from jobtracker.store.base import JobChanges, JobStore, utcnow


logger = logging.getLogger("jobtracker.queue")


ALLOWED_TRANSITIONS: frozenset[tuple[str, str]] = frozenset(
    {
        ("pending", "processing"),
        ("pending", "failed"),
        ("processing", "completed"),
        ("processing", "failed"),
    }
)


def _new_job_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class TaskQueueDefaults:
    advance_max_attempts: int = 3
    default_failure_reason: str = "worker reported failure"


class TaskQueue:
    """Create, advance and read jobs.

    The queue owns the transition table. Atomicity comes from the store's
    compare-and-swap update; the queue keeps no state of its own.
    """

    def __init__(
        self,
        store: JobStore,
        *,
        defaults: TaskQueueDefaults | None = None,
        id_factory: Callable[[], str] = _new_job_id,
    ) -> None:
        self.store = store
        self._defaults = defaults or TaskQueueDefaults()
        self._id_factory = id_factory

    async def create_task(self, owner: str, input: JobInput) -> Job:
        now = utcnow()
        job = Job(
            id=self._id_factory(),
            owner=owner,
            kind=input.kind,
            status="pending",
            input=input,
            output=None,
            error=None,
            version=0,
            created_at=now,
            updated_at=now,
        )
        await self.store.insert(job)
        logger.info("job_created job_id=%s owner=%s kind=%s", job.id, owner, job.kind)
        return job

    async def get_task(self, job_id: str) -> Job:
        return await self.store.get_by_id(job_id)

    async def advance(
        self,
        job_id: str,
        new_status: JobStatus,
        *,
        output: JobOutput | None = None,
        error: JobErrorDetail | None = None,
    ) -> Job:
        """Move a job forward.

        Raises InvalidTransition (nothing written), JobNotFound, or JobConflict
        when a concurrent writer changed the job first.
        """

        def transition(current: Job) -> JobChanges:
            old_status = current.status
            if (old_status, new_status) not in ALLOWED_TRANSITIONS:
                raise InvalidTransition(job_id, old_status, new_status)

            if new_status == "completed":
                if output is None:
                    raise InvalidTransition(job_id, old_status, new_status, "completed requires an output")
                if output.kind != current.kind:
                    raise InvalidTransition(
                        job_id,
                        old_status,
                        new_status,
                        f"output kind {output.kind} does not match job kind {current.kind}",
                    )
                return JobChanges(status="completed", output=output)

            if output is not None:
                raise InvalidTransition(job_id, old_status, new_status, "output is only accepted on completed")

            if new_status == "failed":
                return JobChanges(
                    status="failed",
                    error=error or JobErrorDetail(reason=self._defaults.default_failure_reason),
                )

            if error is not None:
                raise InvalidTransition(job_id, old_status, new_status, "error is only accepted on failed")
            return JobChanges(status=new_status)

        job = await self.store.update(job_id, transition)
        logger.info("job_advanced job_id=%s status=%s version=%s", job_id, job.status, job.version)
        return job

    async def advance_with_retry(
        self,
        job_id: str,
        new_status: JobStatus,
        *,
        output: JobOutput | None = None,
        error: JobErrorDetail | None = None,
        max_attempts: int | None = None,
    ) -> Job:
        """``advance`` that re-runs the read-transition-write cycle on JobConflict."""

        attempts = max(1, max_attempts or self._defaults.advance_max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return await self.advance(job_id, new_status, output=output, error=error)
            except JobConflict:
                if attempt == attempts:
                    raise
                logger.warning(
                    "job_advance_conflict job_id=%s status=%s attempt=%s/%s",
                    job_id,
                    new_status,
                    attempt,
                    attempts,
                )
        raise AssertionError("unreachable")

    async def join_matchmaking(self, owner: str) -> tuple[Job, bool]:
        """Return the owner's waiting matchmaking job, or create one.

        The second element is True when a new job was created.
        """

        # Filter by status in the store; finished jobs can outnumber any limit.
        for status in ("pending", "processing"):
            waiting = await self.store.list_jobs(kind="matchmaking", status=status, owner=owner, limit=1)
            if waiting:
                return waiting[0], False
        return await self.create_task(owner, MatchmakingInput()), True
