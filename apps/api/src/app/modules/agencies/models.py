"""
Agency Models

Each agency is a tenant in the multi-tenant architecture. The agency row also
carries the settings the installment status job needs: the local timezone,
the time of day after which a due-today installment is late, and the
"due soon" window.
"""

from dataclasses import dataclass
from datetime import time

from sqlalchemy import CheckConstraint, Integer, String, Time, text
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel

DEFAULT_TIMEZONE = "Australia/Brisbane"
DEFAULT_OVERDUE_CUTOFF_TIME = time(17, 0)
DEFAULT_DUE_SOON_THRESHOLD_DAYS = 4

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


class Agency(BaseModel):
    """
    Agency tenant model.

    Provisioning and settings screens own the lifecycle of this row; the
    status job only reads it.
    """

    __tablename__ = "agencies"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default=DEFAULT_TIMEZONE,
        server_default=DEFAULT_TIMEZONE,
    )
    overdue_cutoff_time: Mapped[time] = mapped_column(
        Time,
        nullable=False,
        default=DEFAULT_OVERDUE_CUTOFF_TIME,
        server_default=text("'17:00:00'"),
    )
    due_soon_threshold_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_DUE_SOON_THRESHOLD_DAYS,
        server_default=text(str(DEFAULT_DUE_SOON_THRESHOLD_DAYS)),
    )

    __table_args__ = (
        CheckConstraint(
            "due_soon_threshold_days BETWEEN 1 AND 30",
            name="agencies_due_soon_days_check",
        ),
        CheckConstraint(
            "timezone IN ({})".format(", ".join(f"'{tz}'" for tz in SUPPORTED_TIMEZONES)),
            name="agencies_timezone_check",
        ),
    )

    def __repr__(self) -> str:
        return f"<Agency(id={self.id}, name={self.name}, timezone={self.timezone})>"


@dataclass(frozen=True)
class AgencySettings:
    """Detached, read-only view of the settings the status job uses."""

    agency_id: str
    timezone: str
    overdue_cutoff_time: time
    due_soon_threshold_days: int = DEFAULT_DUE_SOON_THRESHOLD_DAYS

    @classmethod
    def from_model(cls, agency: Agency) -> "AgencySettings":
        return cls(
            agency_id=str(agency.id),
            timezone=agency.timezone,
            overdue_cutoff_time=agency.overdue_cutoff_time,
            due_soon_threshold_days=agency.due_soon_threshold_days,
        )
