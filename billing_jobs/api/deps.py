"""
API dependency functions for operator authentication.
"""

import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from billing_jobs.config import settings


async def verify_admin_password(
    x_admin_password: Optional[str] = Header(None, alias="X-Admin-Password")
) -> bool:
    """
    Simple password authentication for the operator endpoints.

    Verifies the password from the X-Admin-Password header using
    constant-time comparison to prevent timing attacks.

    Raises:
        HTTPException: 503 if no admin password is configured, 401 if missing or invalid
    """
    if not settings.ADMIN_PASSWORD:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Operator endpoints are disabled (ADMIN_PASSWORD not set)"
        )
    if not x_admin_password or not secrets.compare_digest(x_admin_password, settings.ADMIN_PASSWORD):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin password"
        )
    return True
