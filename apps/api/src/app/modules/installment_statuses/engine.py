"""
Installment State Transition Engine

Pure, storage-independent rules deciding which installments move from
pending to overdue for one agency at one instant.

Rules:
1. Convert the as-of instant to the agency's local wall-clock time.
2. Effective cutoff date: the local date if the local time of day has
   reached the agency's overdue_cutoff_time, otherwise the day before.
   An installment is not late until the cutoff has passed on its due date.
3. An installment transitions when it is pending, its payment plan is
   active, and its due_date is on or before the effective cutoff date.

Nothing else is ever touched: overdue, paid and cancelled installments,
and installments on completed or cancelled plans, are left as they are.
Running the rules twice for the same instant transitions nothing the
second time because transitioned rows are no longer pending.

The repository applies the same predicate as one conditional UPDATE;
these functions are also used directly for dry-run previews.
"""

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.retry import PermanentError
from app.modules.agencies.models import AgencySettings
from app.modules.payment_plans.models import InstallmentStatus, PaymentPlanStatus

# The single edge this engine performs
SOURCE_STATUS = InstallmentStatus.PENDING
TARGET_STATUS = InstallmentStatus.OVERDUE
ELIGIBLE_PLAN_STATUS = PaymentPlanStatus.ACTIVE

TRANSITION_KEY = "pending_to_overdue"


class InvalidAgencySettingsError(PermanentError):
    """Raised when an agency's timezone or cutoff time cannot be used."""

    def __init__(self, agency_id: str | None, message: str):
        self.agency_id = agency_id
        super().__init__(f"Invalid settings for agency {agency_id}: {message}")


@dataclass(frozen=True)
class InstallmentSnapshot:
    """An installment as seen by the engine, with its plan's status."""

    id: str
    agency_id: str
    payment_plan_id: str
    plan_status: PaymentPlanStatus
    status: InstallmentStatus
    due_date: date
    amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of evaluating one agency's installments."""

    agency_id: str
    cutoff_date: date
    installments: tuple[InstallmentSnapshot, ...]
    transitioned_ids: tuple[str, ...]

    @property
    def pending_to_overdue(self) -> int:
        return len(self.transitioned_ids)

    def as_agency_result(self) -> dict[str, Any]:
        return build_agency_result(self.agency_id, self.pending_to_overdue)


def _zone(timezone: str, agency_id: str | None = None) -> ZoneInfo:
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise InvalidAgencySettingsError(agency_id, f"unknown timezone {timezone!r}") from e


def local_now(as_of: datetime, timezone: str, agency_id: str | None = None) -> datetime:
    """
    Convert an instant to an agency's local wall-clock time.

    Args:
        as_of: Timezone-aware instant
        timezone: IANA zone name
        agency_id: Used in error messages only

    Raises:
        ValueError: If as_of is naive
        InvalidAgencySettingsError: If the zone is unknown
    """
    if as_of.tzinfo is None or as_of.utcoffset() is None:
        raise ValueError("as_of must be timezone-aware")
    return as_of.astimezone(_zone(timezone, agency_id))


def effective_cutoff_date(
    as_of: datetime,
    timezone: str,
    cutoff_time: time,
    agency_id: str | None = None,
) -> date:
    """
    Latest due date that counts as overdue at as_of.

    Args:
        as_of: Timezone-aware instant of evaluation
        timezone: Agency IANA zone name
        cutoff_time: Agency-local time of day after which due-today is late
        agency_id: Used in error messages only

    Returns:
        Local today when the local time is at or past the cutoff,
        local yesterday otherwise
    """
    if not isinstance(cutoff_time, time):
        raise InvalidAgencySettingsError(agency_id, f"invalid cutoff time {cutoff_time!r}")

    local = local_now(as_of, timezone, agency_id)
    today = local.date()
    if local.time() >= cutoff_time.replace(tzinfo=None):
        return today
    return today - timedelta(days=1)


def is_due_for_overdue(installment: InstallmentSnapshot, cutoff_date: date) -> bool:
    """True if the installment must move from pending to overdue."""
    return (
        installment.status == SOURCE_STATUS
        and installment.plan_status == ELIGIBLE_PLAN_STATUS
        and installment.due_date <= cutoff_date
    )


def evaluate_transitions(
    settings: AgencySettings,
    as_of: datetime,
    installments: Iterable[InstallmentSnapshot],
) -> TransitionResult:
    """
    Apply the overdue rules to one agency's installments.

    The input is not modified. Installments that belong to another agency
    are dropped from the result.

    Args:
        settings: The agency's timezone and cutoff settings
        as_of: Timezone-aware instant of evaluation
        installments: Current installments of the agency

    Returns:
        TransitionResult holding the new installment set and the IDs moved
        to overdue
    """
    cutoff = effective_cutoff_date(
        as_of,
        settings.timezone,
        settings.overdue_cutoff_time,
        settings.agency_id,
    )

    updated: list[InstallmentSnapshot] = []
    transitioned: list[str] = []

    for installment in installments:
        if installment.agency_id != settings.agency_id:
            continue
        if is_due_for_overdue(installment, cutoff):
            updated.append(replace(installment, status=TARGET_STATUS))
            transitioned.append(installment.id)
        else:
            updated.append(installment)

    return TransitionResult(
        agency_id=settings.agency_id,
        cutoff_date=cutoff,
        installments=tuple(updated),
        transitioned_ids=tuple(transitioned),
    )


def build_agency_result(agency_id: str, updated_count: int) -> dict[str, Any]:
    """Per-agency result entry as reported to the scheduler and jobs_log."""
    return {
        "agency_id": agency_id,
        "updated_count": updated_count,
        "transitions": {TRANSITION_KEY: updated_count},
    }
