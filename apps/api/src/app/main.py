"""
Agency Payments API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Database and Redis connections
- Background job scheduler
- Job endpoint authentication errors
- CORS middleware
- API routing
- Health check endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.api import api_router
from app.core import redis as redis_module
from app.core.auth import AuthenticationError, authentication_error_handler, require_function_key
from app.core.config import settings
from app.core.database import async_session_maker, close_db, init_db
from app.core.rate_limit import job_rate_limit
from app.core.redis import close_redis, init_redis
from app.core.scheduler import (
    list_registered_jobs,
    pause_job,
    resume_job,
    start_scheduler,
    stop_scheduler,
    trigger_job_manually,
)
from app.modules.installment_statuses import register_installment_status_jobs

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events including:
    - Redis connection (optional, rate limiting falls back to memory)
    - Database connection
    - Background job scheduler
    """
    logger.info(f"Starting Agency Payments API in {settings.python_env} mode...")

    try:
        await init_redis()
        logger.info("[OK] Redis connected")
    except Exception as e:
        logger.warning(f"[FAIL] Redis connection failed, using in-memory rate limiting: {e}")

    try:
        await init_db()
        logger.info("[OK] Database connected")
    except Exception as e:
        logger.error(f"[FAIL] Database connection failed: {e}")
        if settings.is_production:
            raise

    try:
        register_installment_status_jobs()
        await start_scheduler()
        logger.info("[OK] Background scheduler started")
    except Exception as e:
        logger.error(f"[FAIL] Background scheduler failed to start: {e}")
        if settings.is_production:
            raise

    yield

    logger.info("Shutting down Agency Payments API...")

    await stop_scheduler()
    logger.info("[OK] Background scheduler stopped")

    await close_redis()
    await close_db()
    logger.info("[OK] Cleanup complete")


app = FastAPI(
    title="Agency Payments API",
    description="Payment plan automation for education agencies",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")
app.add_exception_handler(AuthenticationError, authentication_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    """Readiness check: the database answers and Redis state is reported."""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        raise HTTPException(status_code=503, detail="database unavailable") from e

    redis_state = "connected" if redis_module.redis_client is not None else "fallback"
    return {"status": "ready", "redis": redis_state}


# ============================================
# Background Job Debug Endpoints
# ============================================
# Manual control of in-process jobs. Only mounted outside production and
# guarded by the same X-API-Key as the job endpoints.


DEBUG_DEPENDENCIES = [Depends(require_function_key)]

if not settings.is_production:

    @app.get("/debug/jobs", tags=["Debug"], dependencies=DEBUG_DEPENDENCIES)
    async def list_jobs():
        """List registered background jobs with next run time and pause state."""
        return {"jobs": list_registered_jobs()}

    @app.post(
        "/debug/jobs/{job_id}/trigger",
        tags=["Debug"],
        dependencies=[*DEBUG_DEPENDENCIES, Depends(job_rate_limit)],
    )
    async def trigger_job(job_id: str):
        """
        Run a background job immediately, bypassing its schedule.

        Args:
            job_id: The ID of the job to trigger, e.g. installment_statuses_update

        Raises:
            HTTPException 400: If job_id is not registered
        """
        try:
            return await trigger_job_manually(job_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    @app.post("/debug/jobs/{job_id}/pause", tags=["Debug"], dependencies=DEBUG_DEPENDENCIES)
    async def pause_job_endpoint(job_id: str):
        """Pause a scheduled background job."""
        return {"job_id": job_id, "paused": pause_job(job_id)}

    @app.post("/debug/jobs/{job_id}/resume", tags=["Debug"], dependencies=DEBUG_DEPENDENCIES)
    async def resume_job_endpoint(job_id: str):
        """Resume a paused background job."""
        return {"job_id": job_id, "resumed": resume_job(job_id)}
