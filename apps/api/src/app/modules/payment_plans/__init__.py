"""
Payment plans module - Payment plans and installments.
"""

from app.modules.payment_plans.models import (
    VALID_INSTALLMENT_TRANSITIONS,
    Installment,
    InstallmentStatus,
    PaymentPlan,
    PaymentPlanStatus,
)

__all__ = [
    "Installment",
    "InstallmentStatus",
    "PaymentPlan",
    "PaymentPlanStatus",
    "VALID_INSTALLMENT_TRANSITIONS",
]
