"""
Fixtures for installment status tests.
"""

from datetime import date, time
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.modules.agencies.models import AgencySettings
from app.modules.installment_statuses.engine import InstallmentSnapshot
from app.modules.installment_statuses.repository import OverdueInstallment
from app.modules.payment_plans.models import InstallmentStatus, PaymentPlanStatus

SERVICE = "app.modules.installment_statuses.service"


class AsyncContext:
    """Async context manager yielding a fixed value; records exits."""

    def __init__(self, value):
        self.value = value
        self.exits = []

    async def __aenter__(self):
        return self.value

    async def __aexit__(self, exc_type, exc, tb):
        self.exits.append(exc_type)
        return False


@pytest.fixture
def mock_db():
    """Create a mock database session with a usable begin() block."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.begin = MagicMock(side_effect=lambda: AsyncContext(db))
    return db


@pytest.fixture
def session_factory(mock_db):
    """Session factory returning mock_db as an async context manager."""
    return MagicMock(side_effect=lambda: AsyncContext(mock_db))


@pytest.fixture
def brisbane_agency():
    return AgencySettings(
        agency_id="agency-brisbane",
        timezone="Australia/Brisbane",
        overdue_cutoff_time=time(17, 0),
    )


@pytest.fixture
def los_angeles_agency():
    return AgencySettings(
        agency_id="agency-los-angeles",
        timezone="America/Los_Angeles",
        overdue_cutoff_time=time(17, 0),
    )


@pytest.fixture
def tokyo_agency():
    return AgencySettings(
        agency_id="agency-tokyo",
        timezone="Asia/Tokyo",
        overdue_cutoff_time=time(17, 0),
    )


@pytest.fixture
def make_snapshot():
    """Build an InstallmentSnapshot with sensible defaults."""

    def _make(
        id: str,
        due_date: date,
        *,
        agency_id: str = "agency-brisbane",
        status: InstallmentStatus = InstallmentStatus.PENDING,
        plan_status: PaymentPlanStatus = PaymentPlanStatus.ACTIVE,
        amount: Decimal = Decimal("150.00"),
    ) -> InstallmentSnapshot:
        return InstallmentSnapshot(
            id=id,
            agency_id=agency_id,
            payment_plan_id=f"plan-{id}",
            plan_status=plan_status,
            status=status,
            due_date=due_date,
            amount=amount,
        )

    return _make


@pytest.fixture
def make_overdue():
    """Build an OverdueInstallment as returned by the batch update."""

    def _make(id: str, due_date: date = date(2025, 11, 9), amount: str = "150.00"):
        return OverdueInstallment(
            id=id,
            payment_plan_id=f"plan-{id}",
            amount=Decimal(amount),
            due_date=due_date,
        )

    return _make


@pytest.fixture
def job_deps():
    """Patch every storage and alerting collaborator of the job service."""
    with (
        patch(f"{SERVICE}.jobs_log_repository") as jobs_log_repo,
        patch(f"{SERVICE}.AgencyRepository") as agency_repo,
        patch(f"{SERVICE}.repository") as status_repo,
        patch(f"{SERVICE}.notifications_repository") as notifications_repo,
        patch(f"{SERVICE}.send_job_failure_alert", new_callable=AsyncMock) as alert,
    ):
        jobs_log_repo.create_running_entry = AsyncMock(
            return_value=SimpleNamespace(id="job-log-1")
        )
        jobs_log_repo.complete_entry = AsyncMock()

        agency_repo.list_settings = AsyncMock(return_value=[])

        status_repo.mark_overdue_installments = AsyncMock(return_value=[])
        status_repo.record_overdue_activity = MagicMock(
            side_effect=lambda db, agency_id, installments: len(installments)
        )

        notifications_repo.get_notified_installment_ids = AsyncMock(return_value=set())
        notifications_repo.add_notifications = MagicMock(
            side_effect=lambda db, agency_id, notification_type, items: len(list(items))
        )

        alert.return_value = True

        yield SimpleNamespace(
            jobs_log=jobs_log_repo,
            agencies=agency_repo,
            installments=status_repo,
            notifications=notifications_repo,
            alert=alert,
        )
