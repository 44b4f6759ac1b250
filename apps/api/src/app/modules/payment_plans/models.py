"""
Payment Plan Models

Payment plans and their installments. Plans belong to an agency; every
installment query is scoped through its plan's agency_id.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import ENUM, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.modules.shared import BaseModel


class PaymentPlanStatus(str, Enum):
    """Status of a payment plan."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InstallmentStatus(str, Enum):
    """Status of a single installment."""

    PENDING = "pending"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"


# Valid installment transitions. Payment and cancellation flows only ever
# move installments out of pending/overdue, never back.
VALID_INSTALLMENT_TRANSITIONS: dict[InstallmentStatus, set[InstallmentStatus]] = {
    InstallmentStatus.PENDING: {
        InstallmentStatus.OVERDUE,  # Status job, after the agency's cutoff
        InstallmentStatus.PAID,
        InstallmentStatus.CANCELLED,
    },
    InstallmentStatus.OVERDUE: {
        InstallmentStatus.PAID,
    },
    InstallmentStatus.PAID: set(),
    InstallmentStatus.CANCELLED: set(),
}


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class PaymentPlan(BaseModel):
    """A financial agreement between a student enrollment and an agency."""

    __tablename__ = "payment_plans"

    agency_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Enrollments live in the entities service
    enrollment_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="AUD")
    status: Mapped[PaymentPlanStatus] = mapped_column(
        ENUM(
            PaymentPlanStatus,
            name="payment_plan_status",
            values_callable=_enum_values,
            create_type=True,
        ),
        nullable=False,
        default=PaymentPlanStatus.ACTIVE,
    )

    installments: Mapped[list["Installment"]] = relationship(
        "Installment",
        back_populates="payment_plan",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (Index("ix_payment_plans_agency_status", "agency_id", "status"),)

    def __repr__(self) -> str:
        return f"<PaymentPlan(id={self.id}, agency_id={self.agency_id}, status={self.status.value})>"


class Installment(BaseModel):
    """A single scheduled payment within a payment plan."""

    __tablename__ = "installments"

    payment_plan_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("payment_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    installment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # Calendar date in the agency's local timezone
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[InstallmentStatus] = mapped_column(
        ENUM(
            InstallmentStatus,
            name="installment_status",
            values_callable=_enum_values,
            create_type=True,
        ),
        nullable=False,
        default=InstallmentStatus.PENDING,
    )

    payment_plan: Mapped["PaymentPlan"] = relationship(
        "PaymentPlan", back_populates="installments"
    )

    __table_args__ = (Index("ix_installments_status_due_date", "status", "due_date"),)

    def __repr__(self) -> str:
        return (
            f"<Installment(id={self.id}, due_date={self.due_date}, status={self.status.value})>"
        )
