"""
Installment Status Service Layer

Job orchestration for the automated installment status update.

This module implements:
1. Per-agency update (update_agency_installments):
   - Computes the agency's effective cutoff date
   - Runs the conditional pending -> overdue batch write and its activity
     entries in ONE transaction (all-or-nothing per agency)

2. Job run (run_status_update_job):
   - Writes a "running" jobs_log entry
   - Processes every agency through the retry policy; one agency's failure
     never stops the others
   - Creates overdue notifications for newly overdue installments
     (failures here never fail the job)
   - Writes the jobs_log entry once, at the end, as success or failed
   - Alerts operations by email when the run failed

3. Dry-run preview (preview_agency_transitions):
   - Evaluates the engine rules in memory against current data

Authentication happens before this module is called; an unauthenticated
request never reaches run_status_update_job.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.database import async_session_maker
from app.core.email import send_job_failure_alert
from app.core.retry import classify_error, execute_with_retry
from app.modules.agencies.models import AgencySettings
from app.modules.agencies.repository import AgencyRepository
from app.modules.installment_statuses import repository
from app.modules.installment_statuses.engine import (
    TransitionResult,
    build_agency_result,
    effective_cutoff_date,
    evaluate_transitions,
)
from app.modules.installment_statuses.repository import OverdueInstallment
from app.modules.jobs_log import repository as jobs_log_repository
from app.modules.jobs_log.models import JobStatus
from app.modules.notifications import repository as notifications_repository
from app.modules.notifications.models import NOTIFICATION_TYPE_OVERDUE_PAYMENT

logger = logging.getLogger(__name__)

JOB_NAME = settings.status_job_name
OVERDUE_NOTIFICATIONS_LINK = "/payments/plans?status=overdue"

SessionFactory = async_sessionmaker[AsyncSession]
Sleep = Callable[[float], Awaitable[Any]]


class JobLogUnavailableError(Exception):
    """Raised when the running jobs_log entry can't be created."""


@dataclass
class AgencyUpdate:
    """Successful outcome of one agency's batch."""

    result: dict[str, Any]
    overdue: list[OverdueInstallment]


@dataclass
class JobRunResult:
    """Aggregate outcome of a job run."""

    job_log_id: str
    as_of: datetime
    success: bool
    records_updated: int
    agencies: list[dict[str, Any]]
    notifications_created: int = 0
    notification_errors: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def failed_agencies(self) -> list[dict[str, Any]]:
        return [a for a in self.agencies if a.get("status") == "failed"]

    def summary(self) -> dict[str, Any]:
        return {
            "job_log_id": self.job_log_id,
            "success": self.success,
            "records_updated": self.records_updated,
            "agencies_processed": len(self.agencies),
            "agencies_failed": len(self.failed_agencies),
            "notifications_created": self.notifications_created,
        }


async def update_agency_installments(
    agency: AgencySettings,
    as_of: datetime,
    *,
    session_factory: SessionFactory = async_session_maker,
) -> AgencyUpdate:
    """
    Run one attempt of the overdue transition for one agency.

    Args:
        agency: The agency's settings
        as_of: Timezone-aware instant of evaluation
        session_factory: Session factory (injectable for tests)

    Returns:
        AgencyUpdate with the per-agency result and the newly overdue rows

    Raises:
        InvalidAgencySettingsError: If the agency's timezone/cutoff is unusable
        Any database error; the transaction is rolled back
    """
    cutoff_date = effective_cutoff_date(
        as_of,
        agency.timezone,
        agency.overdue_cutoff_time,
        agency.agency_id,
    )

    async with session_factory() as db:
        async with db.begin():
            overdue = await repository.mark_overdue_installments(db, agency.agency_id, cutoff_date)
            repository.record_overdue_activity(db, agency.agency_id, overdue)

    logger.info(
        f"Agency {agency.agency_id}: marked {len(overdue)} installments overdue "
        f"(timezone {agency.timezone}, cutoff date {cutoff_date.isoformat()})"
    )
    return AgencyUpdate(
        result=build_agency_result(agency.agency_id, len(overdue)),
        overdue=overdue,
    )


def _overdue_notification(installment: OverdueInstallment) -> dict[str, Any]:
    return {
        "message": (
            f"Payment overdue: ${installment.amount:.2f} "
            f"due {installment.due_date.strftime('%m/%d/%Y')}"
        ),
        "link": OVERDUE_NOTIFICATIONS_LINK,
        "metadata": {
            "installment_id": installment.id,
            "payment_plan_id": installment.payment_plan_id,
            "amount": float(installment.amount),
            "due_date": installment.due_date.isoformat(),
        },
    }


async def create_overdue_notifications(
    agency_id: str,
    installments: Sequence[OverdueInstallment],
    *,
    session_factory: SessionFactory = async_session_maker,
) -> int:
    """
    Create one agency-wide notification per newly overdue installment.

    Installments that already have an overdue_payment notification are
    skipped, so re-running is safe.

    Returns:
        Number of notifications created
    """
    if not installments:
        return 0

    async with session_factory() as db:
        existing = await notifications_repository.get_notified_installment_ids(
            db,
            agency_id,
            NOTIFICATION_TYPE_OVERDUE_PAYMENT,
            [installment.id for installment in installments],
        )
        created = notifications_repository.add_notifications(
            db,
            agency_id,
            NOTIFICATION_TYPE_OVERDUE_PAYMENT,
            (_overdue_notification(i) for i in installments if i.id not in existing),
        )
        await db.commit()

    if existing:
        logger.info(f"Agency {agency_id}: {len(existing)} overdue notifications already existed")
    return created


async def _load_agencies(session_factory: SessionFactory) -> list[AgencySettings]:
    async with session_factory() as db:
        return await AgencyRepository.list_settings(db)


async def _complete_job_log(
    session_factory: SessionFactory,
    job_log_id: str,
    **values: Any,
) -> None:
    async with session_factory() as db:
        await jobs_log_repository.complete_entry(db, job_log_id, **values)


def _failure_summary(failed: list[dict[str, Any]], total: int) -> str:
    details = "; ".join(f"{a['agency_id']}: {a['error']}" for a in failed)
    return f"{len(failed)} of {total} agencies failed: {details}"


async def run_status_update_job(
    *,
    as_of: datetime | None = None,
    session_factory: SessionFactory = async_session_maker,
    sleep: Sleep = asyncio.sleep,
    send_alert: bool = True,
) -> JobRunResult:
    """
    Run the installment status update for every agency.

    Args:
        as_of: Instant of evaluation, defaults to now (UTC)
        session_factory: Session factory (injectable for tests)
        sleep: Backoff sleep used by the retry policy
        send_alert: Email operations when the run fails

    Returns:
        JobRunResult with the per-agency breakdown. success is False when
        any agency failed after retries; the totals still include the
        agencies that succeeded.

    Raises:
        JobLogUnavailableError: If the running jobs_log entry can't be written
    """
    started_at = datetime.now(UTC)
    as_of = as_of or started_at

    try:
        async with session_factory() as db:
            entry = await jobs_log_repository.create_running_entry(db, JOB_NAME, started_at)
            job_log_id = str(entry.id)
    except Exception as e:
        logger.error(f"Failed to insert job log for {JOB_NAME}: {e}", exc_info=True)
        raise JobLogUnavailableError(str(e)) from e

    logger.info(f"Starting {JOB_NAME} (jobs_log {job_log_id}) as of {as_of.isoformat()}")

    agency_results: list[dict[str, Any]] = []
    notifications_created = 0
    notification_errors: list[str] = []
    job_error: str | None = None

    try:
        agencies = await execute_with_retry(
            lambda: _load_agencies(session_factory),
            description="loading agency settings",
            sleep=sleep,
        )
    except Exception as e:
        logger.error(f"Failed to load agency settings: {e}", exc_info=True)
        agencies = []
        job_error = f"Failed to load agency settings: {e}"

    for agency in agencies:
        try:
            update = await execute_with_retry(
                lambda agency=agency: update_agency_installments(
                    agency, as_of, session_factory=session_factory
                ),
                description=f"agency {agency.agency_id}",
                sleep=sleep,
            )
        except Exception as e:
            error_type = classify_error(e)
            logger.error(
                f"Agency {agency.agency_id} failed ({error_type}): {e}",
                exc_info=True,
            )
            agency_results.append(
                {
                    **build_agency_result(agency.agency_id, 0),
                    "status": "failed",
                    "error": str(e) or e.__class__.__name__,
                    "error_type": error_type,
                }
            )
            continue

        agency_results.append({**update.result, "status": "success"})

        try:
            notifications_created += await create_overdue_notifications(
                agency.agency_id,
                update.overdue,
                session_factory=session_factory,
            )
        except Exception as e:
            message = f"Agency {agency.agency_id}: failed to create overdue notifications: {e}"
            logger.error(message, exc_info=True)
            notification_errors.append(message)

    failed = [a for a in agency_results if a["status"] == "failed"]
    records_updated = sum(a["updated_count"] for a in agency_results if a["status"] == "success")
    if failed and job_error is None:
        job_error = _failure_summary(failed, len(agency_results))
    success = job_error is None

    metadata: dict[str, Any] = {
        "as_of": as_of.isoformat(),
        "agencies": agency_results,
        "total_agencies_processed": len(agency_results),
        "failed_agencies": len(failed),
        "notifications_created": notifications_created,
    }
    if notification_errors:
        metadata["notification_errors"] = notification_errors

    try:
        await execute_with_retry(
            lambda: _complete_job_log(
                session_factory,
                job_log_id,
                status=JobStatus.SUCCESS if success else JobStatus.FAILED,
                completed_at=datetime.now(UTC),
                records_updated=records_updated,
                error_message=job_error,
                metadata=metadata,
            ),
            description=f"completing jobs_log {job_log_id}",
            sleep=sleep,
        )
    except Exception as e:
        # The entry stays "running"; monitoring picks that up
        logger.error(f"Failed to complete jobs_log entry {job_log_id}: {e}", exc_info=True)

    logger.info(
        f"{JOB_NAME} finished: {'success' if success else 'failed'}, "
        f"{records_updated} installments updated across {len(agency_results)} agencies, "
        f"{len(failed)} failed"
    )

    if not success and send_alert:
        alerted = await send_job_failure_alert(
            job_name=JOB_NAME,
            started_at=started_at.isoformat(),
            error_message=job_error,
            failed_agencies=failed,
        )
        if not alerted:
            logger.warning(f"Failure alert for jobs_log {job_log_id} was not delivered")

    return JobRunResult(
        job_log_id=job_log_id,
        as_of=as_of,
        success=success,
        records_updated=records_updated,
        agencies=agency_results,
        notifications_created=notifications_created,
        notification_errors=notification_errors,
        error=job_error,
    )


async def preview_agency_transitions(
    agency_id: str,
    as_of: datetime,
    *,
    session_factory: SessionFactory = async_session_maker,
) -> tuple[AgencySettings, TransitionResult] | None:
    """
    Evaluate which installments would become overdue, without writing.

    Returns:
        (settings, TransitionResult), or None if the agency doesn't exist
    """
    async with session_factory() as db:
        agency = await AgencyRepository.get_settings(db, agency_id)
        if agency is None:
            return None
        snapshots = await repository.list_installment_snapshots(db, agency.agency_id)

    return agency, evaluate_transitions(agency, as_of, snapshots)
