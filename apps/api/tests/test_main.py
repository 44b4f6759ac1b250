"""
Tests for application-level endpoints.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.core import rate_limit
from app.core.config import settings
from app.core.scheduler import clear_registry, register_job
from app.main import app

API_KEY = "test-function-key"
AUTH = {"X-API-Key": API_KEY}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "function_api_key", API_KEY)
    clear_registry()
    rate_limit._memory_store.clear()
    yield TestClient(app)
    clear_registry()
    rate_limit._memory_store.clear()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestDebugJobs:
    """Tests for the background job debug endpoints."""

    def test_list_jobs(self, client):
        register_job("installment_statuses_update", AsyncMock())

        response = client.get("/debug/jobs", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["jobs"][0]["job_id"] == "installment_statuses_update"

    def test_trigger_job(self, client):
        job = AsyncMock(return_value={"success": True})
        register_job("installment_statuses_update", job)

        response = client.post("/debug/jobs/installment_statuses_update/trigger", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        job.assert_awaited_once()

    def test_trigger_unknown_job(self, client):
        response = client.post("/debug/jobs/missing/trigger", headers=AUTH)

        assert response.status_code == 400


class TestDebugJobsAuthentication:
    """Debug endpoints reject callers without the job API key."""

    def test_trigger_without_key_never_runs_job(self, client):
        job = AsyncMock(return_value={"success": True})
        register_job("installment_statuses_update", job)

        response = client.post("/debug/jobs/installment_statuses_update/trigger")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        job.assert_not_called()

    def test_trigger_with_wrong_key_never_runs_job(self, client):
        job = AsyncMock(return_value={"success": True})
        register_job("installment_statuses_update", job)

        response = client.post(
            "/debug/jobs/installment_statuses_update/trigger",
            headers={"X-API-Key": "wrong"},
        )

        assert response.status_code == 401
        job.assert_not_called()

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/debug/jobs"),
            ("post", "/debug/jobs/installment_statuses_update/pause"),
            ("post", "/debug/jobs/installment_statuses_update/resume"),
        ],
    )
    def test_other_debug_endpoints_require_key(self, client, method, path):
        register_job("installment_statuses_update", AsyncMock())

        response = getattr(client, method)(path)

        assert response.status_code == 401

    def test_trigger_is_rate_limited(self, client, monkeypatch):
        monkeypatch.setattr(settings, "job_rate_limit_requests", 1)
        job = AsyncMock(return_value={"success": True})
        register_job("installment_statuses_update", job)

        codes = [
            client.post("/debug/jobs/installment_statuses_update/trigger", headers=AUTH).status_code
            for _ in range(2)
        ]

        assert codes == [200, 429]
        job.assert_awaited_once()
