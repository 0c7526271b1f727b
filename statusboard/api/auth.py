"""
Admin authentication: a static bearer API key.

Admin routes are closed when no API key is configured.
"""

import logging
import secrets

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

# Security
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """Authentication dependency for admin endpoints; returns the caller's address"""
    api_key = request.app.state.settings.auth.api_key
    client = request.client.host if request.client else "unknown"

    if not api_key:
        logger.warning(f"Admin request from {client} rejected, no API key configured")
        raise _unauthorized("Admin API is disabled")
    if credentials is None:
        raise _unauthorized("Authentication required")
    if not secrets.compare_digest(credentials.credentials.encode(), api_key.encode()):
        logger.warning(f"Admin request from {client} rejected, invalid API key")
        raise _unauthorized("Invalid authentication credentials")
    return client
