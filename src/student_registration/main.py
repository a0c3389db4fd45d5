"""
Student Registration API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Logging
- Database and Redis connections
- Background job scheduler
- CORS headers on every response
- API routing
- Health check endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import MutableHeaders

from student_registration.api import api_router
from student_registration.core.config import settings
from student_registration.core.database import close_db, init_db
from student_registration.core.redis import close_redis, init_redis
from student_registration.core.scheduler import (
    list_registered_jobs,
    start_scheduler,
    stop_scheduler,
    trigger_job_manually,
)
from student_registration.modules.applications.jobs import register_application_jobs

logging.basicConfig(
    level=logging.DEBUG if settings.is_development else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = "Content-Type, Authorization"
CORS_ALLOW_METHODS = "GET, POST, OPTIONS"


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events including:
    - Redis connection (rate limiting falls back to memory without it)
    - Database connection
    - Background job scheduler
    """
    logger.info(f"Starting Student Registration API in {settings.python_env} mode...")

    try:
        await init_redis()
        logger.info("Redis connected")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        if settings.is_production:
            raise

    try:
        await init_db()
        logger.info("Database connected")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        if settings.is_production:
            raise

    try:
        # Register jobs before starting the scheduler
        register_application_jobs(settings)
        await start_scheduler()
        logger.info("Background scheduler started")
    except Exception as e:
        logger.error(f"Background scheduler failed to start: {e}")
        if settings.is_production:
            raise

    yield  # Application runs here

    logger.info("Shutting down Student Registration API...")

    # Stop the scheduler first (wait for running jobs)
    await stop_scheduler()
    await close_redis()
    await close_db()
    logger.info("Cleanup complete")


def _allowed_origin(request_origin: str | None) -> str:
    origins = settings.cors_origins_list
    if "*" in origins:
        return "*"
    if request_origin and request_origin in origins:
        return request_origin
    return origins[0] if origins else "*"


def apply_cors_headers(headers: MutableHeaders, request_origin: str | None) -> None:
    """Set the CORS and content type headers every response carries."""
    headers["Access-Control-Allow-Origin"] = _allowed_origin(request_origin)
    headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
    headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
    headers.setdefault("Content-Type", "application/json")


app = FastAPI(
    title="Student Registration API",
    description="Student application submission and review API",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")


@app.middleware("http")
async def cors_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    apply_cors_headers(response.headers, request.headers.get("origin"))
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Sanitized 500 for anything that escaped the routers."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    response = JSONResponse(
        status_code=500,
        content={
            "detail": {
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred.",
            }
        },
    )
    apply_cors_headers(response.headers, request.headers.get("origin"))
    return response


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    """Readiness check endpoint."""
    return {"status": "ready"}


# ============================================
# Background Job Debug Endpoints
# ============================================
# Development only. In other environments jobs run on their schedule.

if settings.is_development:

    @app.get("/debug/jobs", tags=["Debug"])
    async def list_jobs():
        """List all registered background jobs and their next run time."""
        return {"jobs": list_registered_jobs()}

    @app.post("/debug/jobs/{job_id}/trigger", tags=["Debug"])
    async def trigger_job(job_id: str):
        """
        Manually trigger a background job.

        Args:
            job_id: The ID of the job to trigger, e.g.
                applications_purge_upload_sessions

        Raises:
            HTTPException 400: If job_id is not found.
        """
        try:
            return await trigger_job_manually(job_id)
        except ValueError as e:
            raise HTTPException(
                status_code=400,
                detail={"error": "UNKNOWN_JOB", "message": str(e)},
            ) from e
