"""
Billing maintenance service - FastAPI application hosting the background jobs.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from fastapi import FastAPI
from billing_jobs.config import settings
from billing_jobs.database import close_db
from billing_jobs.tasks import start_background_jobs, stop_background_jobs
from billing_jobs.api.router import api_router
from billing_jobs.schemas import HealthResponse

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.

    Handles:
    - Background job startup (backup scheduler, trial expiry check)
    - Background job shutdown
    - Database connection cleanup on shutdown
    """
    logger.info("Starting up billing maintenance service...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    if settings.BACKGROUND_JOBS_ENABLED:
        start_background_jobs()
    else:
        logger.info("Background jobs disabled (BACKGROUND_JOBS_ENABLED=false)")
    logger.info("Startup complete")

    yield

    logger.info("Shutting down billing maintenance service...")
    await stop_background_jobs()
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Billing Maintenance Service",
    description="Scheduled tenant backups, retention pruning and subscription checks",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Health status
    """
    return {
        "status": "healthy",
        "service": "billing-maintenance",
        "version": settings.APP_VERSION
    }


app.include_router(api_router)
