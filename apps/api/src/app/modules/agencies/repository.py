"""
Agency Repository

Read access to agency (tenant) configuration.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.agencies.models import Agency, AgencySettings

logger = logging.getLogger(__name__)


class AgencyRepository:
    """Repository for agency database operations."""

    @staticmethod
    async def get_by_id(db: AsyncSession, agency_id: str | UUID) -> Agency | None:
        """
        Get an agency by ID.

        Args:
            db: Database session
            agency_id: Agency UUID

        Returns:
            Agency instance or None if not found
        """
        result = await db.execute(select(Agency).where(Agency.id == str(agency_id)))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_settings(db: AsyncSession) -> list[AgencySettings]:
        """
        Load the status-job settings of every agency.

        Ordered by id so job runs process agencies in a stable order.

        Args:
            db: Database session

        Returns:
            One AgencySettings per agency
        """
        result = await db.execute(
            select(
                Agency.id,
                Agency.timezone,
                Agency.overdue_cutoff_time,
                Agency.due_soon_threshold_days,
            ).order_by(Agency.id)
        )
        agencies = [
            AgencySettings(
                agency_id=str(row.id),
                timezone=row.timezone,
                overdue_cutoff_time=row.overdue_cutoff_time,
                due_soon_threshold_days=row.due_soon_threshold_days,
            )
            for row in result.all()
        ]
        logger.debug(f"Loaded settings for {len(agencies)} agencies")
        return agencies

    @staticmethod
    async def get_settings(db: AsyncSession, agency_id: str | UUID) -> AgencySettings | None:
        """Load one agency's status-job settings, or None if it doesn't exist."""
        agency = await AgencyRepository.get_by_id(db, agency_id)
        return AgencySettings.from_model(agency) if agency else None
