"""
Notification and Activity Models

In-app notifications shown to agency users, and the activity feed that
records system and user actions against agency entities.
"""

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel

NOTIFICATION_TYPE_OVERDUE_PAYMENT = "overdue_payment"
ACTIVITY_ACTION_MARKED_OVERDUE = "marked_overdue"


class Notification(BaseModel):
    """
    In-app notification.

    user_id is NULL for agency-wide notifications.
    """

    __tablename__ = "notifications"

    agency_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notification_metadata: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)

    __table_args__ = (
        Index("ix_notifications_agency_type", "agency_id", "type"),
        Index(
            "ix_notifications_metadata",
            "metadata",
            postgresql_using="gin",
        ),
    )


class ActivityLog(BaseModel):
    """
    Activity feed entry.

    user_id is NULL for system actions such as the status job.
    """

    __tablename__ = "activity_log"

    agency_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    activity_metadata: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
