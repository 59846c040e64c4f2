"""
Main API router aggregating all endpoint modules.
"""

from fastapi import APIRouter

from billing_jobs.api import tasks

# Create main API router with /api prefix
api_router = APIRouter(prefix="/api")

api_router.include_router(tasks.router, prefix="/tasks", tags=["Background Tasks"])
