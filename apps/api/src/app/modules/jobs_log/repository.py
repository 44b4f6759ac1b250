"""
Jobs Log Repository

Creates the "running" entry at job start and writes the single terminal
update at job end.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.jobs_log.models import JobLog, JobStatus

logger = logging.getLogger(__name__)


async def create_running_entry(db: AsyncSession, job_name: str, started_at: datetime) -> JobLog:
    """
    Insert a jobs_log entry in the running state and commit it.

    Args:
        db: Database session
        job_name: Name of the job
        started_at: Timezone-aware start instant

    Returns:
        The persisted JobLog
    """
    entry = JobLog(
        job_name=job_name,
        started_at=started_at,
        status=JobStatus.RUNNING.value,
        records_updated=0,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)

    logger.info(f"Job {job_name} started, jobs_log id {entry.id}")
    return entry


async def complete_entry(
    db: AsyncSession,
    job_log_id: str,
    *,
    status: JobStatus,
    completed_at: datetime,
    records_updated: int,
    error_message: str | None,
    metadata: dict[str, Any],
) -> None:
    """
    Write the terminal state of a job run.

    Only a running entry is updated, so an entry can't be completed twice.

    Args:
        db: Database session
        job_log_id: ID returned by create_running_entry
        status: JobStatus.SUCCESS or JobStatus.FAILED
        completed_at: Timezone-aware completion instant
        records_updated: Total installments updated across agencies
        error_message: Summary of failures, None on success
        metadata: Per-agency breakdown and run details
    """
    if status == JobStatus.RUNNING:
        raise ValueError("A job run can only be completed as success or failed")

    result = await db.execute(
        update(JobLog)
        .where(JobLog.id == job_log_id, JobLog.status == JobStatus.RUNNING.value)
        .values(
            status=status.value,
            completed_at=completed_at,
            records_updated=records_updated,
            error_message=error_message,
            job_metadata=metadata,
        )
    )
    await db.commit()

    if result.rowcount == 0:
        logger.warning(f"jobs_log entry {job_log_id} was not running, completion ignored")
    else:
        logger.info(f"jobs_log entry {job_log_id} completed with status {status.value}")

