"""
Authentication and dependency helpers for API endpoints
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Header, HTTPException, Query, Request

from services.admin_auth import AdminAuthService
from services.sync_coordinator import SyncCoordinator
from services.sync_context import SyncContext

logger = logging.getLogger(__name__)


@dataclass
class AdminContext:
    """Authenticated admin session"""
    is_authenticated: bool
    username: str


def get_sync_context(request: Request) -> SyncContext:
    return request.app.state.sync_context


def get_coordinator(request: Request) -> SyncCoordinator:
    """FastAPI dependency: the coordinator of the running application"""
    return get_sync_context(request).coordinator


def get_admin_auth(request: Request) -> AdminAuthService:
    return request.app.state.admin_auth


def _authenticate(request: Request, token: Optional[str]) -> AdminContext:
    try:
        payload = get_admin_auth(request).validate_token(token)
    except jwt.InvalidTokenError as e:
        logger.error(f"AUTH: Invalid admin token: {str(e)}")
        raise HTTPException(401, "Invalid or expired token")

    return AdminContext(is_authenticated=True, username=payload["sub"])


async def authenticate_admin(
    request: Request,
    authorization: Optional[str] = Header(None)
) -> AdminContext:
    """
    FastAPI dependency for Bearer token authentication on admin endpoints

    Raises:
        HTTPException: 401 if the header is missing, malformed or the token is invalid
    """
    if not authorization:
        logger.error("AUTH: Admin request missing Authorization header - returning 401")
        raise HTTPException(401, "Missing Authorization header")

    if not authorization.startswith("Bearer "):
        logger.error("AUTH: Invalid Authorization header format - returning 401")
        raise HTTPException(401, "Invalid authorization header format. Expected 'Bearer <token>'")

    return _authenticate(request, authorization[7:])


async def authenticate_admin_stream(
    request: Request,
    authorization: Optional[str] = Header(None),
    access_token: Optional[str] = Query(None)
) -> AdminContext:
    """Like authenticate_admin, but also accepts ?access_token= (EventSource can't set headers)"""
    if authorization:
        return await authenticate_admin(request, authorization)
    if not access_token:
        logger.error("AUTH: Event stream request without credentials - returning 401")
        raise HTTPException(401, "Missing access token")
    return _authenticate(request, access_token)
