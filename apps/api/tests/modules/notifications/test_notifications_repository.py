"""
Unit tests for the notifications repository.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from app.modules.notifications.models import Notification
from app.modules.notifications.repository import (
    add_notifications,
    get_notified_installment_ids,
)

AGENCY_ID = "0f6b3c2a-9d4e-4a1b-8c7d-6e5f4a3b2c1d"


class TestGetNotifiedInstallmentIds:
    """Tests for get_notified_installment_ids."""

    @pytest.mark.asyncio
    async def test_empty_candidates_skip_query(self, mock_db):
        assert await get_notified_installment_ids(mock_db, AGENCY_ID, "overdue_payment", []) == set()
        mock_db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_scoped_by_agency_type_and_installment(self, mock_db):
        mock_db.execute.return_value = MagicMock(all=MagicMock(return_value=[("i1",)]))

        found = await get_notified_installment_ids(
            mock_db, AGENCY_ID, "overdue_payment", ["i1", "i2"]
        )

        assert found == {"i1"}
        sql = str(mock_db.execute.call_args[0][0].compile(dialect=postgresql.dialect()))
        assert "notifications.agency_id = " in sql
        assert "notifications.type = " in sql
        assert "notifications.metadata ->> " in sql


class TestAddNotifications:
    def test_stages_agency_wide_notifications(self, mock_db):
        count = add_notifications(
            mock_db,
            AGENCY_ID,
            "overdue_payment",
            [
                {
                    "message": "Payment overdue: $150.00 due 11/09/2025",
                    "link": "/payments/plans?status=overdue",
                    "metadata": {"installment_id": "i1"},
                }
            ],
        )

        assert count == 1
        notification = mock_db.add.call_args[0][0]
        assert isinstance(notification, Notification)
        assert notification.user_id is None
        assert notification.is_read is False
        assert notification.type == "overdue_payment"
        assert notification.notification_metadata == {"installment_id": "i1"}
        mock_db.commit.assert_not_called()
