"""
Installment Status Schemas

Pydantic models for the job endpoint responses. Top-level job fields use
the camelCase names external schedulers and dashboards already consume.
"""

from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class TransitionCounts(BaseModel):
    """Counts per status transition performed."""

    pending_to_overdue: int = 0


class AgencyStatusResult(BaseModel):
    """Per-agency outcome of a job run."""

    agency_id: str
    updated_count: int
    transitions: TransitionCounts
    status: Literal["success", "failed"] = "success"
    error: str | None = None
    error_type: Literal["transient", "permanent"] | None = None


class StatusUpdateResponse(BaseModel):
    """Response body for POST /jobs/update-installment-statuses."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    records_updated: int = Field(..., alias="recordsUpdated")
    notifications_created: int = Field(0, alias="notificationsCreated")
    agencies: list[AgencyStatusResult]
    notification_errors: list[str] | None = Field(None, alias="notificationErrors")
    error: str | None = None


class ErrorResponse(BaseModel):
    """Body for 401 and job-logging failures."""

    error: str = Field(..., examples=["Unauthorized"])


class OverduePreviewResponse(BaseModel):
    """Dry-run result for one agency; nothing is written."""

    agency_id: str
    timezone: str
    overdue_cutoff_time: time
    as_of: datetime
    cutoff_date: date
    would_update_count: int
    installment_ids: list[str]
