from typing import List, Optional

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from pos_edge.db.models.print_jobs import JobStatus, PrintJob


async def add_job(db: AsyncSession, job: PrintJob) -> PrintJob:
    await db.merge(job)
    await db.flush()
    return job


async def get_job(db: AsyncSession, job_id: str) -> Optional[PrintJob]:
    return await db.get(PrintJob, job_id)


async def next_eligible_job(db: AsyncSession, now: int) -> Optional[PrintJob]:
    result = await db.execute(
        select(PrintJob)
        .where(PrintJob.status == JobStatus.QUEUED.value, PrintJob.next_run_at <= now)
        .order_by(PrintJob.priority, PrintJob.created_at, PrintJob.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def claim_job(db: AsyncSession, job_id: str) -> bool:
    """Move a queued job to printing. False if another worker claimed it first."""
    result = await db.execute(
        update(PrintJob)
        .where(PrintJob.id == job_id, PrintJob.status == JobStatus.QUEUED.value)
        .values(status=JobStatus.PRINTING.value)
    )
    return bool(result.rowcount)


async def list_jobs(db: AsyncSession, status: Optional[str] = None) -> List[PrintJob]:
    query = select(PrintJob).order_by(PrintJob.priority, PrintJob.created_at, PrintJob.id)
    if status is not None:
        query = query.where(PrintJob.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def delete_job(db: AsyncSession, job_id: str) -> None:
    await db.execute(delete(PrintJob).where(PrintJob.id == job_id))
