"""
Installment Status Background Jobs

Registers the status update with the in-process scheduler.

Schedule:
- Daily at STATUS_JOB_CRON_HOUR:STATUS_JOB_CRON_MINUTE UTC (07:00 by default)
  when STATUS_JOB_SCHEDULE_ENABLED is set
- Otherwise the job is registered for manual triggering only and the
  external scheduler calls POST /api/v1/jobs/update-installment-statuses

Every agency shares the same run time. Each agency's own timezone and
cutoff decide what is overdue at that instant.
"""

import logging
from typing import Any

from apscheduler.triggers.cron import CronTrigger

from app.core.config import settings
from app.core.scheduler import register_job
from app.modules.installment_statuses.service import run_status_update_job

logger = logging.getLogger(__name__)

JOB_ID_UPDATE_INSTALLMENT_STATUSES = "installment_statuses_update"


async def update_installment_statuses() -> dict[str, Any]:
    """
    Scheduled entry point for the status update.

    Returns:
        Summary of the run (jobs_log holds the full breakdown)
    """
    result = await run_status_update_job()
    return result.summary()


def register_installment_status_jobs() -> None:
    """
    Register the installment status job with the scheduler.

    Call during application startup, before the scheduler is started.
    """
    trigger = None
    if settings.status_job_schedule_enabled:
        trigger = CronTrigger(
            hour=settings.status_job_cron_hour,
            minute=settings.status_job_cron_minute,
            timezone="UTC",
        )

    register_job(
        job_id=JOB_ID_UPDATE_INSTALLMENT_STATUSES,
        func=update_installment_statuses,
        trigger=trigger,
    )

    if trigger is None:
        logger.info(f"Registered job: {JOB_ID_UPDATE_INSTALLMENT_STATUSES} (manual only)")
    else:
        logger.info(
            f"Registered job: {JOB_ID_UPDATE_INSTALLMENT_STATUSES} "
            f"(daily at {settings.status_job_cron_hour:02d}:{settings.status_job_cron_minute:02d} UTC)"
        )
