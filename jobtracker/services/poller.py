"""Client side of the job protocol: create, then poll until done.

Polling is read-only. Any number of pollers may watch the same job, and a
poller restarted with nothing but the job id picks up where it left off.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from jobtracker.config import settings
from jobtracker.errors import JobFailed, JobKindMismatch, PollTimeout
from jobtracker.schemas.job import Job, JobOutput, MatchmakingOutput


logger = logging.getLogger("jobtracker.poller")

Fetch = Callable[[str], Awaitable[Job]]
Predicate = Callable[[Job], bool]


def is_terminal(job: Job) -> bool:
    return job.is_terminal


def has_game_session(job: Job) -> bool:
    # A failed job is also a reason to stop waiting for a match.
    if job.status == "failed":
        return True
    return isinstance(job.output, MatchmakingOutput) and job.output.game_id is not None


class Poller:
    """Repeatedly read a job until a condition holds, within a ceiling.

    ``fetch`` is any coroutine returning the current Job, e.g.
    ``TaskQueue.get_task`` or ``TaskApiClient.get_task``. JobNotFound from
    ``fetch`` is permanent and propagates on the first attempt.
    """

    def __init__(
        self,
        fetch: Fetch,
        *,
        interval: float | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self.interval = settings.poll_interval_seconds if interval is None else interval
        self.timeout = settings.poll_timeout_seconds if timeout is None else timeout
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._clock = clock

    async def poll(self, job_id: str, until: Predicate = is_terminal) -> Job:
        started = self._clock()
        attempts = 0

        while True:
            job = await self._fetch(job_id)
            attempts += 1

            if until(job):
                logger.debug("poll_done job_id=%s status=%s attempts=%s", job_id, job.status, attempts)
                return job

            elapsed = self._clock() - started
            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise PollTimeout(job_id, attempts, elapsed)
            if elapsed + self.interval > self.timeout:
                raise PollTimeout(job_id, attempts, elapsed)

            await self._sleep(self.interval)

    async def wait_for_output(self, job_id: str) -> JobOutput:
        """Poll to a terminal status; return the output or raise JobFailed."""

        job = await self.poll(job_id, until=is_terminal)
        _raise_if_failed(job)
        # Completed jobs always carry an output (checked by Job itself).
        return job.output

    async def wait_for_match(self, job_id: str) -> int:
        """Poll a matchmaking job until a game session id is assigned.

        Raises JobKindMismatch right away for jobs that are not matchmaking
        jobs, since those never get a game session.
        """

        def matched(job: Job) -> bool:
            if job.kind != "matchmaking":
                raise JobKindMismatch(job.id, expected="matchmaking", actual=job.kind)
            return has_game_session(job)

        job = await self.poll(job_id, until=matched)
        _raise_if_failed(job)
        return job.output.game_id


def _raise_if_failed(job: Job) -> None:
    if job.status == "failed":
        reason = job.error.reason if job.error else "unknown"
        code = job.error.code if job.error else None
        logger.info("poll_job_failed job_id=%s reason=%s", job.id, reason)
        raise JobFailed(job.id, reason, code)
