from __future__ import annotations

from jobtracker.config import Settings
from jobtracker.store.base import JobChanges, JobStore, Mutation
from jobtracker.store.memory import InMemoryJobStore
from jobtracker.store.sql import SqlJobStore

__all__ = [
    "InMemoryJobStore",
    "JobChanges",
    "JobStore",
    "Mutation",
    "SqlJobStore",
    "build_store",
]


def build_store(cfg: Settings) -> JobStore:
    """Create the job store selected by ``JOB_STORE``."""

    if cfg.job_store == "memory":
        return InMemoryJobStore()
    if cfg.job_store == "sql":
        # Imported lazily so the memory store does not need a database driver.
        from jobtracker.database import SessionLocal

        return SqlJobStore(SessionLocal)
    raise ValueError(f"Unknown JOB_STORE: {cfg.job_store!r}. Valid options: sql, memory")
