"""
Installment Status Repository

Storage adapter for the state transition engine. Every function takes the
agency_id explicitly and scopes its query by it; nothing relies on an
ambient row-level security policy.

Consistency:
- mark_overdue_installments is ONE conditional UPDATE ... RETURNING. The
  status = 'pending' predicate is evaluated at write time (PostgreSQL
  re-checks it after acquiring each row lock), so overlapping job runs
  can't double count or resurrect rows other flows moved to paid/cancelled.
- Activity entries are staged on the same session, so they commit or roll
  back together with the status change.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.notifications.models import ACTIVITY_ACTION_MARKED_OVERDUE
from app.modules.notifications.repository import add_system_activities
from app.modules.payment_plans.models import Installment, PaymentPlan

from .engine import (
    ELIGIBLE_PLAN_STATUS,
    SOURCE_STATUS,
    TARGET_STATUS,
    InstallmentSnapshot,
)


@dataclass(frozen=True)
class OverdueInstallment:
    """An installment the job has just moved to overdue."""

    id: str
    payment_plan_id: str
    amount: Decimal
    due_date: date


def _active_plan_ids(agency_id: str):
    return select(PaymentPlan.id).where(
        PaymentPlan.agency_id == agency_id,
        PaymentPlan.status == ELIGIBLE_PLAN_STATUS,
    )


async def mark_overdue_installments(
    db: AsyncSession,
    agency_id: str,
    cutoff_date: date,
) -> list[OverdueInstallment]:
    """
    Move one agency's qualifying installments from pending to overdue.

    Does not commit; the caller owns the transaction.

    Args:
        db: Database session (inside a transaction)
        agency_id: Agency whose installments are updated
        cutoff_date: Effective cutoff date from the engine

    Returns:
        The installments updated by this statement
    """
    stmt = (
        update(Installment)
        .where(
            Installment.payment_plan_id.in_(_active_plan_ids(agency_id)),
            Installment.status == SOURCE_STATUS,
            Installment.due_date <= cutoff_date,
        )
        .values(status=TARGET_STATUS, updated_at=func.now())
        .returning(
            Installment.id,
            Installment.payment_plan_id,
            Installment.amount,
            Installment.due_date,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)

    return [
        OverdueInstallment(
            id=str(row.id),
            payment_plan_id=str(row.payment_plan_id),
            amount=row.amount,
            due_date=row.due_date,
        )
        for row in result.all()
    ]


async def list_installment_snapshots(
    db: AsyncSession,
    agency_id: str,
) -> list[InstallmentSnapshot]:
    """
    Load an agency's installments with their plan status for the engine.

    Args:
        db: Database session
        agency_id: Agency to load

    Returns:
        One snapshot per installment on the agency's plans
    """
    result = await db.execute(
        select(
            Installment.id,
            Installment.payment_plan_id,
            Installment.status,
            Installment.due_date,
            Installment.amount,
            PaymentPlan.status.label("plan_status"),
        )
        .join(PaymentPlan, Installment.payment_plan_id == PaymentPlan.id)
        .where(PaymentPlan.agency_id == agency_id)
        .order_by(Installment.due_date, Installment.id)
    )

    return [
        InstallmentSnapshot(
            id=str(row.id),
            agency_id=agency_id,
            payment_plan_id=str(row.payment_plan_id),
            plan_status=row.plan_status,
            status=row.status,
            due_date=row.due_date,
            amount=row.amount,
        )
        for row in result.all()
    ]


def record_overdue_activity(
    db: AsyncSession,
    agency_id: str,
    installments: Sequence[OverdueInstallment],
) -> int:
    """
    Stage one system activity entry per newly overdue installment.

    Args:
        db: Database session (same transaction as the status update)
        agency_id: Agency the installments belong to
        installments: Rows returned by mark_overdue_installments

    Returns:
        Number of activity entries staged
    """
    return add_system_activities(
        db,
        agency_id,
        entity_type="installment",
        action=ACTIVITY_ACTION_MARKED_OVERDUE,
        items=(
            {
                "entity_id": installment.id,
                "description": (
                    f"System marked installment of {installment.amount:.2f} "
                    f"due {installment.due_date.isoformat()} as overdue"
                ),
                "metadata": {
                    "installment_id": installment.id,
                    "payment_plan_id": installment.payment_plan_id,
                    "amount": float(installment.amount),
                    "original_due_date": installment.due_date.isoformat(),
                },
            }
            for installment in installments
        ),
    )
