"""
API tests for the installment status job endpoints.

These tests cover:
- X-API-Key authentication (401 before any job work)
- 200 / 500 response bodies
- Rate limiting (429)
- Dry-run preview
"""

from datetime import UTC, date, datetime, time
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.core import rate_limit
from app.core.config import settings
from app.main import app
from app.modules.agencies.models import AgencySettings
from app.modules.installment_statuses.engine import TransitionResult
from app.modules.installment_statuses.service import JobLogUnavailableError, JobRunResult

URL = "/api/v1/jobs/update-installment-statuses"
API_KEY = "test-function-key"
RUN_JOB = "app.modules.installment_statuses.service.run_status_update_job"
PREVIEW = "app.modules.installment_statuses.service.preview_agency_transitions"


@pytest.fixture
def client(monkeypatch):
    """Test client with a configured key and an empty rate limit window."""
    monkeypatch.setattr(settings, "function_api_key", API_KEY)
    rate_limit._memory_store.clear()
    yield TestClient(app)
    rate_limit._memory_store.clear()


def _result(success: bool = True, **overrides) -> JobRunResult:
    values = {
        "job_log_id": "job-log-1",
        "as_of": datetime(2025, 11, 10, 7, 0, tzinfo=UTC),
        "success": success,
        "records_updated": 2,
        "agencies": [
            {
                "agency_id": "a1",
                "updated_count": 2,
                "transitions": {"pending_to_overdue": 2},
                "status": "success",
            }
        ],
        "notifications_created": 2,
    }
    values.update(overrides)
    return JobRunResult(**values)


class TestAuthentication:
    """Requests without a valid key never reach the job."""

    def test_missing_key(self, client):
        with patch(RUN_JOB, new_callable=AsyncMock) as run_job:
            response = client.post(URL)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        run_job.assert_not_called()

    def test_wrong_key(self, client):
        with patch(RUN_JOB, new_callable=AsyncMock) as run_job:
            response = client.post(URL, headers={"X-API-Key": "wrong"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        run_job.assert_not_called()

    def test_wrong_key_creates_no_job_log(self, client):
        """The job log is only written once authentication has passed."""
        with patch(
            "app.modules.installment_statuses.service.jobs_log_repository"
        ) as jobs_log_repo:
            response = client.post(URL, headers={"X-API-Key": "wrong"})

        assert response.status_code == 401
        jobs_log_repo.create_running_entry.assert_not_called()

    def test_unconfigured_key_rejects_everything(self, client, monkeypatch):
        monkeypatch.setattr(settings, "function_api_key", "")

        response = client.post(URL, headers={"X-API-Key": ""})

        assert response.status_code == 401


class TestUpdateInstallmentStatuses:
    """Tests for POST /jobs/update-installment-statuses."""

    def test_success(self, client):
        with patch(RUN_JOB, new_callable=AsyncMock, return_value=_result()) as run_job:
            response = client.post(URL, headers={"X-API-Key": API_KEY})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "recordsUpdated": 2,
            "notificationsCreated": 2,
            "agencies": [
                {
                    "agency_id": "a1",
                    "updated_count": 2,
                    "transitions": {"pending_to_overdue": 2},
                    "status": "success",
                }
            ],
        }
        run_job.assert_awaited_once()

    def test_notification_errors_reported(self, client):
        result = _result(notification_errors=["Agency a1: failed to create overdue notifications"])
        with patch(RUN_JOB, new_callable=AsyncMock, return_value=result):
            response = client.post(URL, headers={"X-API-Key": API_KEY})

        assert response.status_code == 200
        assert response.json()["notificationErrors"] == [
            "Agency a1: failed to create overdue notifications"
        ]

    def test_partial_failure_returns_500_with_totals(self, client):
        failed = {
            "agency_id": "a2",
            "updated_count": 0,
            "transitions": {"pending_to_overdue": 0},
            "status": "failed",
            "error": "connection reset",
            "error_type": "transient",
        }
        result = _result(
            success=False,
            agencies=[_result().agencies[0], failed],
            error="1 of 2 agencies failed: a2: connection reset",
        )
        with patch(RUN_JOB, new_callable=AsyncMock, return_value=result):
            response = client.post(URL, headers={"X-API-Key": API_KEY})

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["recordsUpdated"] == 2
        assert body["error"] == "1 of 2 agencies failed: a2: connection reset"
        assert body["agencies"][1] == failed

    def test_job_log_unavailable(self, client):
        with patch(RUN_JOB, new_callable=AsyncMock, side_effect=JobLogUnavailableError("down")):
            response = client.post(URL, headers={"X-API-Key": API_KEY})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to start job logging"}

    def test_rate_limited(self, client, monkeypatch):
        monkeypatch.setattr(settings, "job_rate_limit_requests", 2)

        with patch(RUN_JOB, new_callable=AsyncMock, return_value=_result()) as run_job:
            codes = [client.post(URL, headers={"X-API-Key": API_KEY}).status_code for _ in range(3)]

        assert codes == [200, 200, 429]
        assert run_job.await_count == 2

    def test_forwarded_for_header_does_not_reset_limit(self, client, monkeypatch):
        """Rotating X-Forwarded-For still counts against the same client."""
        monkeypatch.setattr(settings, "job_rate_limit_requests", 2)

        with patch(RUN_JOB, new_callable=AsyncMock, return_value=_result()) as run_job:
            codes = [
                client.post(
                    URL,
                    headers={"X-API-Key": API_KEY, "X-Forwarded-For": f"10.0.0.{i}"},
                ).status_code
                for i in range(5)
            ]

        assert codes == [200, 200, 429, 429, 429]
        assert run_job.await_count == 2
        assert len(rate_limit._memory_store) == 1

    def test_wrong_key_gets_401_not_429(self, client, monkeypatch):
        monkeypatch.setattr(settings, "job_rate_limit_requests", 1)

        with patch(RUN_JOB, new_callable=AsyncMock, return_value=_result()):
            codes = [client.post(URL, headers={"X-API-Key": "wrong"}).status_code for _ in range(3)]

        assert codes == [401, 401, 401]

    def test_unauthenticated_calls_do_not_consume_window(self, client, monkeypatch):
        monkeypatch.setattr(settings, "job_rate_limit_requests", 1)

        with patch(RUN_JOB, new_callable=AsyncMock, return_value=_result()) as run_job:
            for _ in range(3):
                client.post(URL)
            response = client.post(URL, headers={"X-API-Key": API_KEY})

        assert response.status_code == 200
        run_job.assert_awaited_once()


class TestPreview:
    """Tests for GET /jobs/update-installment-statuses/preview/{agency_id}."""

    def test_preview(self, client):
        agency = AgencySettings("a1", "Australia/Brisbane", time(17, 0))
        result = TransitionResult(
            agency_id="a1",
            cutoff_date=date(2025, 11, 10),
            installments=(),
            transitioned_ids=("i1", "i2"),
        )
        with patch(PREVIEW, new_callable=AsyncMock, return_value=(agency, result)):
            response = client.get(
                f"{URL}/preview/a1",
                params={"as_of": "2025-11-10T07:00:00+00:00"},
                headers={"X-API-Key": API_KEY},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["would_update_count"] == 2
        assert body["installment_ids"] == ["i1", "i2"]
        assert body["cutoff_date"] == "2025-11-10"
        assert body["timezone"] == "Australia/Brisbane"

    def test_unknown_agency(self, client):
        with patch(PREVIEW, new_callable=AsyncMock, return_value=None):
            response = client.get(f"{URL}/preview/missing", headers={"X-API-Key": API_KEY})

        assert response.status_code == 404

    def test_naive_as_of_rejected(self, client):
        with patch(PREVIEW, new_callable=AsyncMock) as preview:
            response = client.get(
                f"{URL}/preview/a1",
                params={"as_of": "2025-11-10T07:00:00"},
                headers={"X-API-Key": API_KEY},
            )

        assert response.status_code == 422
        preview.assert_not_called()

    def test_requires_key(self, client):
        response = client.get(f"{URL}/preview/a1")

        assert response.status_code == 401
