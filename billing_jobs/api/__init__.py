"""
API endpoints module.
"""

from billing_jobs.api import tasks
from billing_jobs.api.router import api_router

__all__ = [
    "tasks",
    "api_router",
]
