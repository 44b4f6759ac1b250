"""
Installment Status Job Router

Endpoints invoked by the external scheduler.

Endpoints:
- POST /jobs/update-installment-statuses - Run the pending -> overdue job
- GET /jobs/update-installment-statuses/preview/{agency_id} - Dry run

Security:
- X-API-Key shared secret, checked before any job work or audit logging
- Rate limited per client IP (Redis, in-memory fallback)
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from app.core.auth import require_function_key
from app.core.rate_limit import job_rate_limit
from app.modules.installment_statuses import service
from app.modules.installment_statuses.engine import InvalidAgencySettingsError
from app.modules.installment_statuses.schemas import (
    ErrorResponse,
    OverduePreviewResponse,
    StatusUpdateResponse,
)
from app.modules.installment_statuses.service import JobLogUnavailableError, JobRunResult

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(result: JobRunResult) -> StatusUpdateResponse:
    return StatusUpdateResponse(
        success=result.success,
        records_updated=result.records_updated,
        notifications_created=result.notifications_created,
        agencies=result.agencies,
        notification_errors=result.notification_errors or None,
        error=None if result.success else result.error,
    )


@router.post(
    "/update-installment-statuses",
    response_model=StatusUpdateResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_function_key), Depends(job_rate_limit)],
    summary="Update Installment Statuses",
    description="""
Move every agency's pending installments past their due date and the
agency's cutoff time to overdue.

Each agency is processed in its own transaction with retries on transient
errors. One agency failing never stops the others; the response then has
status 500 and still reports the agencies that succeeded.
""",
    responses={
        200: {"description": "All agencies processed", "model": StatusUpdateResponse},
        401: {"description": "Missing or invalid X-API-Key", "model": ErrorResponse},
        429: {"description": "Too many requests"},
        500: {
            "description": "One or more agencies failed, or job logging is unavailable",
            "content": {
                "application/json": {
                    "example": {
                        "success": False,
                        "recordsUpdated": 3,
                        "notificationsCreated": 3,
                        "agencies": [
                            {
                                "agency_id": "2f0c...",
                                "updated_count": 3,
                                "transitions": {"pending_to_overdue": 3},
                                "status": "success",
                            },
                            {
                                "agency_id": "9ab1...",
                                "updated_count": 0,
                                "transitions": {"pending_to_overdue": 0},
                                "status": "failed",
                                "error": "connection reset by peer",
                                "error_type": "transient",
                            },
                        ],
                        "error": "1 of 2 agencies failed: 9ab1...: connection reset by peer",
                    }
                }
            },
        },
    },
)
async def update_installment_statuses():
    """
    Run the installment status update job.

    Returns:
        200 with the job summary when every agency succeeded, otherwise 500
        with the same body plus error
    """
    try:
        result = await service.run_status_update_job()
    except JobLogUnavailableError:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to start job logging"},
        )

    response = _to_response(result)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=response.model_dump(mode="json", by_alias=True, exclude_none=True),
        )

    return response


@router.get(
    "/update-installment-statuses/preview/{agency_id}",
    response_model=OverduePreviewResponse,
    dependencies=[Depends(require_function_key)],
    summary="Preview Installment Status Update",
    responses={
        401: {"description": "Missing or invalid X-API-Key", "model": ErrorResponse},
        404: {"description": "Agency not found"},
        422: {"description": "Agency settings are invalid"},
    },
)
async def preview_installment_statuses(
    agency_id: str,
    as_of: datetime | None = Query(
        None,
        description="Timezone-aware instant to evaluate at (defaults to now)",
    ),
) -> OverduePreviewResponse:
    """
    Show which installments the job would mark overdue. Nothing is written.

    Raises:
        HTTPException 404: If the agency doesn't exist
        HTTPException 422: If as_of is naive or the agency settings are unusable
    """
    as_of = as_of or datetime.now(UTC)
    if as_of.tzinfo is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="as_of must include a timezone offset",
        )

    try:
        preview = await service.preview_agency_transitions(agency_id, as_of)
    except InvalidAgencySettingsError as e:
        logger.warning(f"Preview rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e

    if preview is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Agency {agency_id} not found",
        )

    agency, result = preview
    return OverduePreviewResponse(
        agency_id=agency.agency_id,
        timezone=agency.timezone,
        overdue_cutoff_time=agency.overdue_cutoff_time,
        as_of=as_of,
        cutoff_date=result.cutoff_date,
        would_update_count=result.pending_to_overdue,
        installment_ids=list(result.transitioned_ids),
    )
