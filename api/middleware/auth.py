# WORKFLOW: Shared-secret authentication for the refresh trigger.
# Used by: /jobs/refresh-sources (external scheduler calls)
# Functions:
# 1. _extract_token() - Read the token from X-Refresh-Token, Bearer header, or ?token=
# 2. require_refresh_token() - FastAPI dependency comparing it with the configured secret
#
# Auth flow: Request -> Extract token -> Constant-time compare -> Allow / 401
# With no refresh_token configured every call is rejected.

import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

TOKEN_HEADER = "X-Refresh-Token"


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Extract token from request headers or query string."""
    token = request.headers.get(TOKEN_HEADER)
    if token:
        return token
    if credentials:
        return credentials.credentials
    return request.query_params.get("token")


async def require_refresh_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Reject the request unless it carries the configured refresh token."""
    expected = settings.refresh_token
    token = _extract_token(request, credentials)

    if not expected or not token or not hmac.compare_digest(token.encode(), expected.encode()):
        logger.warning(f"Rejected refresh trigger from {request.client.host if request.client else 'unknown'}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
