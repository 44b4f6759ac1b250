"""
Job Authentication

Shared-secret authentication for scheduler-invoked job endpoints.

The external scheduler (pg_cron, Kubernetes CronJob, a CI runner, ...) sends
the configured secret in the X-API-Key header. Requests with a missing or
wrong key are rejected before any job work or audit logging happens.

SECURITY NOTE:
- Keys are compared in constant time (secrets.compare_digest)
- An unconfigured FUNCTION_API_KEY rejects every request
- Keys are never written to logs
"""

import logging
import secrets

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader

from app.core.config import settings

logger = logging.getLogger(__name__)

API_KEY_HEADER_NAME = "X-API-Key"

# auto_error=False so a missing header reaches our own 401 handling
api_key_header = APIKeyHeader(
    name=API_KEY_HEADER_NAME,
    auto_error=False,
    description="Shared secret for scheduler-invoked jobs",
)


class AuthenticationError(Exception):
    """Raised when a job invocation carries a missing or invalid credential."""

    def __init__(self, reason: str = "invalid_credential"):
        self.reason = reason
        super().__init__("Unauthorized")


def verify_function_key(provided_key: str | None, expected_key: str | None = None) -> None:
    """
    Verify a job invocation credential.

    Args:
        provided_key: Value of the X-API-Key header (None if absent)
        expected_key: Configured secret, defaults to settings.function_api_key

    Raises:
        AuthenticationError: If the key is missing, wrong, or no key is configured
    """
    expected = settings.function_api_key if expected_key is None else expected_key

    if not expected:
        logger.error("FUNCTION_API_KEY is not configured, rejecting job invocation")
        raise AuthenticationError("not_configured")

    if not provided_key:
        logger.warning("Job invocation rejected: missing API key")
        raise AuthenticationError("missing_credential")

    if not secrets.compare_digest(provided_key.encode(), expected.encode()):
        logger.warning("Job invocation rejected: invalid API key")
        raise AuthenticationError("invalid_credential")


async def require_function_key(api_key: str | None = Depends(api_key_header)) -> None:
    """
    FastAPI dependency guarding job endpoints.

    Usage:
        @router.post("/jobs/run", dependencies=[Depends(require_function_key)])
        async def run_job(): ...

    Raises:
        AuthenticationError: Mapped to 401 {"error": "Unauthorized"}
    """
    verify_function_key(api_key)


async def authentication_error_handler(_request: Request, _exc: AuthenticationError) -> JSONResponse:
    """Render AuthenticationError as the job API's 401 body."""
    return JSONResponse(status_code=401, content={"error": "Unauthorized"})


__all__ = [
    "API_KEY_HEADER_NAME",
    "AuthenticationError",
    "authentication_error_handler",
    "require_function_key",
    "verify_function_key",
]
