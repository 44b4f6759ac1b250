"""
Unit tests for the installment status state machine.
"""

from app.modules.payment_plans.models import (
    VALID_INSTALLMENT_TRANSITIONS,
    InstallmentStatus,
)


class TestInstallmentTransitions:
    """Tests for the installment transition table."""

    def test_pending_can_become_overdue(self):
        valid = VALID_INSTALLMENT_TRANSITIONS[InstallmentStatus.PENDING]
        assert InstallmentStatus.OVERDUE in valid
        assert InstallmentStatus.PAID in valid
        assert InstallmentStatus.CANCELLED in valid

    def test_overdue_never_returns_to_pending(self):
        valid = VALID_INSTALLMENT_TRANSITIONS[InstallmentStatus.OVERDUE]
        assert InstallmentStatus.PENDING not in valid
        assert InstallmentStatus.PAID in valid

    def test_terminal_statuses(self):
        assert VALID_INSTALLMENT_TRANSITIONS[InstallmentStatus.PAID] == set()
        assert VALID_INSTALLMENT_TRANSITIONS[InstallmentStatus.CANCELLED] == set()

    def test_every_status_has_an_entry(self):
        assert set(VALID_INSTALLMENT_TRANSITIONS) == set(InstallmentStatus)
