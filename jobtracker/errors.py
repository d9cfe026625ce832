from __future__ import annotations


class TaskQueueError(Exception):
    """Base class for job tracker errors."""


class JobNotFound(TaskQueueError):
    """Unknown job identifier. Permanent, never retried by pollers."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class JobConflict(TaskQueueError):
    """A concurrent writer won the race (or the identifier already exists).

    Retryable: re-read the job and re-apply the transition.
    """

    def __init__(self, job_id: str, message: str | None = None) -> None:
        super().__init__(message or f"Concurrent update lost for job {job_id}")
        self.job_id = job_id


class InvalidTransition(TaskQueueError):
    """Status change not allowed by the state machine, or bad payload for it."""

    def __init__(self, job_id: str, old_status: str, new_status: str, reason: str | None = None) -> None:
        message = f"Invalid status transition: {old_status} -> {new_status}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.job_id = job_id
        self.old_status = old_status
        self.new_status = new_status
        self.reason = reason


class JobFailed(TaskQueueError):
    """Raised on the polling side when a job ended in ``failed``."""

    def __init__(self, job_id: str, reason: str, code: str | None = None) -> None:
        super().__init__(f"Job {job_id} failed: {reason}")
        self.job_id = job_id
        self.reason = reason
        self.code = code


class PollTimeout(TaskQueueError):
    """Caller-side polling ceiling exceeded before the job reached the wanted state."""

    def __init__(self, job_id: str, attempts: int, elapsed: float) -> None:
        super().__init__(f"Gave up polling job {job_id} after {attempts} attempts ({elapsed:.1f}s)")
        self.job_id = job_id
        self.attempts = attempts
        self.elapsed = elapsed


class JobKindMismatch(TaskQueueError):
    """The job exists but is of a different kind than the caller expects."""

    def __init__(self, job_id: str, *, expected: str, actual: str) -> None:
        super().__init__(f"Job {job_id} is a {actual} job, expected {expected}")
        self.job_id = job_id
        self.expected = expected
        self.actual = actual
