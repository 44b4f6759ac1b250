"""
Notifications Repository

Database operations for notifications and activity entries. Every function
takes the agency_id and scopes its query by it.
"""

from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ActivityLog, Notification


async def get_notified_installment_ids(
    db: AsyncSession,
    agency_id: str,
    notification_type: str,
    installment_ids: Sequence[str],
) -> set[str]:
    """
    Return which installments already have a notification of this type.

    Args:
        db: Database session
        agency_id: Agency the notifications belong to
        notification_type: Notification type, e.g. "overdue_payment"
        installment_ids: Candidate installment IDs

    Returns:
        Subset of installment_ids with an existing notification
    """
    if not installment_ids:
        return set()

    installment_key = Notification.notification_metadata["installment_id"].astext
    result = await db.execute(
        select(installment_key).where(
            Notification.agency_id == agency_id,
            Notification.type == notification_type,
            installment_key.in_([str(i) for i in installment_ids]),
        )
    )
    return {row[0] for row in result.all()}


def add_notifications(
    db: AsyncSession,
    agency_id: str,
    notification_type: str,
    items: Iterable[dict[str, Any]],
) -> int:
    """
    Stage agency-wide notifications on the session (caller commits).

    Args:
        db: Database session
        agency_id: Agency the notifications belong to
        notification_type: Notification type
        items: Dicts with message, link and metadata

    Returns:
        Number of notifications added
    """
    count = 0
    for item in items:
        db.add(
            Notification(
                agency_id=agency_id,
                user_id=None,
                type=notification_type,
                message=item["message"],
                link=item.get("link"),
                is_read=False,
                notification_metadata=item.get("metadata"),
            )
        )
        count += 1
    return count


def add_system_activities(
    db: AsyncSession,
    agency_id: str,
    entity_type: str,
    action: str,
    items: Iterable[dict[str, Any]],
) -> int:
    """
    Stage system activity entries on the session (caller commits).

    Args:
        db: Database session
        agency_id: Agency the entities belong to
        entity_type: Entity kind, e.g. "installment"
        action: Action performed, e.g. "marked_overdue"
        items: Dicts with entity_id, description and metadata

    Returns:
        Number of activity entries added
    """
    count = 0
    for item in items:
        db.add(
            ActivityLog(
                agency_id=agency_id,
                user_id=None,
                entity_type=entity_type,
                entity_id=item["entity_id"],
                action=action,
                description=item["description"],
                activity_metadata=item.get("metadata"),
            )
        )
        count += 1
    return count
