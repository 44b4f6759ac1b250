"""
Jobs Log Models

Append/update-only audit trail of background job executions.

Status transitions: running -> success | failed. An entry left in "running"
means the process died mid-run; nothing in this service repairs it.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class JobStatus(str, Enum):
    """Status of a job execution."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class JobLog(Base):
    """One row per job invocation."""

    __tablename__ = "jobs_log"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    records_updated: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    job_metadata: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('running', 'success', 'failed')",
            name="jobs_log_status_check",
        ),
        Index("idx_jobs_log_job_name", "job_name", "started_at"),
        Index(
            "idx_jobs_log_status",
            "status",
            postgresql_where="status = 'failed'",
        ),
    )

    def __repr__(self) -> str:
        return f"<JobLog(id={self.id}, job_name={self.job_name}, status={self.status})>"
