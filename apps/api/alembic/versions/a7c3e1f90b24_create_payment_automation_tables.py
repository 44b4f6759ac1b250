"""create payment automation tables

Revision ID: a7c3e1f90b24
Revises:
Create Date: 2026-10-18 09:00:00.000000

This migration:
1. Creates the agencies table with timezone and overdue cutoff settings
2. Creates payment_plans and installments with their status enums
3. Creates jobs_log for the automated job audit trail
4. Creates notifications and activity_log

Installment lookups by the status job filter on (status, due_date) and go
through payment_plans(agency_id, status), both indexed here.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7c3e1f90b24"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

SUPPORTED_TIMEZONES = (
    "Australia/Brisbane",
    "Australia/Sydney",
    "Australia/Melbourne",
    "Australia/Perth",
    "Australia/Adelaide",
    "America/Los_Angeles",
    "America/New_York",
    "America/Chicago",
    "Europe/London",
    "Europe/Paris",
    "Asia/Tokyo",
    "Asia/Singapore",
    "Pacific/Auckland",
    "UTC",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create agencies, payment plans, installments, jobs_log, notifications, activity_log."""
    payment_plan_status_enum = postgresql.ENUM(
        "active",
        "completed",
        "cancelled",
        name="payment_plan_status",
        create_type=False,
    )
    payment_plan_status_enum.create(op.get_bind(), checkfirst=True)

    installment_status_enum = postgresql.ENUM(
        "pending",
        "overdue",
        "paid",
        "cancelled",
        name="installment_status",
        create_type=False,
    )
    installment_status_enum.create(op.get_bind(), checkfirst=True)

    # Agencies
    op.create_table(
        "agencies",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column(
            "timezone",
            sa.String(length=64),
            nullable=False,
            server_default="Australia/Brisbane",
        ),
        sa.Column(
            "overdue_cutoff_time",
            sa.Time(),
            nullable=False,
            server_default=sa.text("'17:00:00'"),
        ),
        sa.Column(
            "due_soon_threshold_days",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("4"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "due_soon_threshold_days BETWEEN 1 AND 30",
            name="agencies_due_soon_days_check",
        ),
        sa.CheckConstraint(
            "timezone IN ({})".format(", ".join(f"'{tz}'" for tz in SUPPORTED_TIMEZONES)),
            name="agencies_timezone_check",
        ),
    )

    # Payment plans
    op.create_table(
        "payment_plans",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        *_timestamps(),
        sa.Column("agency_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("enrollment_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="AUD"),
        sa.Column(
            "status",
            payment_plan_status_enum,
            nullable=False,
            server_default="active",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["agency_id"],
            ["agencies.id"],
            name="fk_payment_plans_agency_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index(op.f("ix_payment_plans_agency_id"), "payment_plans", ["agency_id"])
    op.create_index("ix_payment_plans_agency_status", "payment_plans", ["agency_id", "status"])

    # Installments
    op.create_table(
        "installments",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        *_timestamps(),
        sa.Column("payment_plan_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("installment_number", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column(
            "status",
            installment_status_enum,
            nullable=False,
            server_default="pending",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["payment_plan_id"],
            ["payment_plans.id"],
            name="fk_installments_payment_plan_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index(op.f("ix_installments_payment_plan_id"), "installments", ["payment_plan_id"])
    op.create_index("ix_installments_status_due_date", "installments", ["status", "due_date"])

    # Job audit trail
    op.create_table(
        "jobs_log",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("job_name", sa.String(length=100), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("records_updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('running', 'success', 'failed')",
            name="jobs_log_status_check",
        ),
    )
    op.create_index("idx_jobs_log_job_name", "jobs_log", ["job_name", "started_at"])
    op.create_index(
        "idx_jobs_log_status",
        "jobs_log",
        ["status"],
        postgresql_where=sa.text("status = 'failed'"),
    )

    # Notifications
    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        *_timestamps(),
        sa.Column("agency_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=500), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["agency_id"],
            ["agencies.id"],
            name="fk_notifications_agency_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_notifications_agency_type", "notifications", ["agency_id", "type"])
    op.create_index(
        "ix_notifications_metadata",
        "notifications",
        ["metadata"],
        postgresql_using="gin",
    )

    # Activity feed
    op.create_table(
        "activity_log",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        *_timestamps(),
        sa.Column("agency_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["agency_id"],
            ["agencies.id"],
            name="fk_activity_log_agency_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index(op.f("ix_activity_log_agency_id"), "activity_log", ["agency_id"])


def downgrade() -> None:
    """Drop all payment automation tables and enum types."""
    op.drop_index(op.f("ix_activity_log_agency_id"), table_name="activity_log")
    op.drop_table("activity_log")

    op.drop_index("ix_notifications_metadata", table_name="notifications")
    op.drop_index("ix_notifications_agency_type", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("idx_jobs_log_status", table_name="jobs_log")
    op.drop_index("idx_jobs_log_job_name", table_name="jobs_log")
    op.drop_table("jobs_log")

    op.drop_index("ix_installments_status_due_date", table_name="installments")
    op.drop_index(op.f("ix_installments_payment_plan_id"), table_name="installments")
    op.drop_table("installments")

    op.drop_index("ix_payment_plans_agency_status", table_name="payment_plans")
    op.drop_index(op.f("ix_payment_plans_agency_id"), table_name="payment_plans")
    op.drop_table("payment_plans")

    op.drop_table("agencies")

    postgresql.ENUM(name="installment_status").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="payment_plan_status").drop(op.get_bind(), checkfirst=True)
