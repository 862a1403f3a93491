"""Bearer-token authentication for the dashboard API."""

import logging
import secrets
from typing import Dict, Optional

from fastapi import Header, HTTPException, Request

logger = logging.getLogger("seabot.dashboard.auth")


async def require_admin(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Dict:
    """
    Dependency to require admin authentication.

    Checks the Authorization header for ``Bearer <dashboard_token>``.
    With no token configured the API is closed entirely.

    Raises:
        HTTPException: 503 if no token is configured, 401 if the header is
            missing or malformed, 403 if the token does not match.
    """
    expected = request.app.state.settings.dashboard_token
    if not expected:
        raise HTTPException(status_code=503, detail="Dashboard token not configured")

    if not authorization:
        logger.warning("Request missing Authorization header")
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.warning("Invalid Authorization header format")
        raise HTTPException(
            status_code=401,
            detail="Invalid Authorization header format. Expected: Bearer <token>",
        )

    if not secrets.compare_digest(parts[1], expected):
        logger.warning(f"Rejected dashboard token from {request.client.host if request.client else 'unknown'}")
        raise HTTPException(status_code=403, detail="Invalid token")

    return {"auth_type": "token"}
