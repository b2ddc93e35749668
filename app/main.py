"""
Appraisal Queue API
FastAPI Backend Entry Point
"""

import io
import logging
import mimetypes
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from app.api import appraisals, queue
from app.core.config import settings
from app.core.database import init_db
from app.core.exceptions import AppraisalError, NotFoundError
from app.core.logging import setup_logging
from app.workers.reaper import StaleJobReaper, resubmit_pending_jobs
from app.workers.scheduler import InProcessScheduler, build_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME}...")
    init_db()

    scheduler = build_scheduler(settings)
    await scheduler.start()
    app.state.scheduler = scheduler
    logger.info(f"Scheduler backend: {settings.SCHEDULER_BACKEND}")

    if settings.RESUBMIT_PENDING_ON_STARTUP:
        await resubmit_pending_jobs(scheduler)

    reaper = None
    if settings.REAPER_ENABLED:
        reaper = StaleJobReaper()
        reaper.start()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    if reaper is not None:
        await reaper.stop()
    if isinstance(scheduler, InProcessScheduler):
        await scheduler.stop(timeout=settings.SHUTDOWN_GRACE_SECONDS)
    else:
        await scheduler.stop()


app = FastAPI(
    title="Appraisal Queue API",
    description="Background AI appraisal pipeline with client polling",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppraisalError)
async def appraisal_error_handler(request: Request, exc: AppraisalError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(queue.router, prefix="/api/v1/queue", tags=["Queue"])
app.include_router(appraisals.router, prefix="/api/v1/appraisals", tags=["Appraisals"])


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for monitoring.
    Returns detailed status of critical services.
    """
    status = {
        "status": "healthy",
        "version": "0.1.0",
        "environment": {
            "storage": settings.STORAGE_BACKEND,
            "scheduler": settings.SCHEDULER_BACKEND,
            "database": "sqlite" if settings.DATABASE_URL.startswith("sqlite") else "postgresql",
        },
        "services": {}
    }

    # Check database connection
    try:
        from app.core.database import SessionLocal
        from sqlalchemy import text
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        status["services"]["database"] = "ok"
    except Exception as e:
        status["services"]["database"] = f"error: {str(e)}"
        status["status"] = "degraded"

    # Check Redis connection (durable queue only)
    if settings.SCHEDULER_BACKEND == "rq":
        try:
            from app.core.redis import redis_health_check
            redis_status = redis_health_check()
            if redis_status.get("connected"):
                status["services"]["redis"] = "ok"
                status["services"]["redis_version"] = redis_status.get("redis_version")
                status["services"]["appraisal_backlog"] = redis_status.get("appraisal_backlog")
            else:
                status["services"]["redis"] = f"error: {redis_status.get('error', 'not connected')}"
                status["status"] = "degraded"
        except Exception as e:
            status["services"]["redis"] = f"error: {str(e)}"
            status["status"] = "degraded"

    # Check storage configuration
    try:
        from app.services.storage import StorageService
        StorageService()
        status["services"]["storage"] = "ok"
    except Exception as e:
        status["services"]["storage"] = f"error: {str(e)}"
        status["status"] = "degraded"

    return status


@app.get("/files/{file_path:path}", tags=["Files"])
async def serve_file(file_path: str):
    """Serve regenerated images written by the local storage backend."""
    from app.services.storage import StorageService

    try:
        file_bytes = await StorageService().get_file(file_path)
    except (OSError, ValueError) as e:
        raise NotFoundError(f"File not found: {file_path}", cause=e) from e

    content_type = mimetypes.guess_type(file_path)[0] or "application/octet-stream"
    return StreamingResponse(
        io.BytesIO(file_bytes),
        media_type=content_type,
        headers={"Cache-Control": "public, max-age=3600"},
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": "Appraisal Queue API",
        "docs": "/docs",
        "health": "/health",
    }
