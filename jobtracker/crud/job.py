from __future__ import annotations

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jobtracker.models.job import Job


async def get_job(session: AsyncSession, *, job_id: str) -> Job | None:
    res = await session.execute(select(Job).where(Job.id == job_id))
    return res.scalar_one_or_none()


async def insert_job(session: AsyncSession, *, values: dict[str, Any]) -> Job:
    """Add a job row. Does not commit; the caller owns the transaction."""

    row = Job(**values)
    session.add(row)
    await session.flush()
    return row


async def swap_job(
    session: AsyncSession,
    *,
    job_id: str,
    expected_version: int,
    expected_status: str,
    values: dict[str, Any],
) -> bool:
    """Conditionally write ``values`` if the row still has the expected stamp.

    Returns False when another writer got there first (no row matched).
    """

    stmt = (
        update(Job)
        .where(Job.id == job_id)
        .where(Job.version == expected_version)
        .where(Job.status == expected_status)
        .values(**values, version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def list_jobs(
    session: AsyncSession,
    *,
    kind: str | None = None,
    status: str | None = None,
    owner: str | None = None,
    limit: int = 100,
) -> list[Job]:
    limit = max(1, min(limit, 1000))

    q = select(Job)
    if kind is not None:
        q = q.where(Job.kind == kind)
    if status is not None:
        q = q.where(Job.status == status)
    if owner is not None:
        q = q.where(Job.owner == owner)

    q = q.order_by(Job.created_at.asc(), Job.id.asc()).limit(limit)
    res = await session.execute(q)
    return list(res.scalars().all())
