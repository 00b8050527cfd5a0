"""
Admin session and sync status routes
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from models.participant import AdminLoginRequest, AdminTokenResponse
from services.admin_auth import AdminAuthService
from services.sync_coordinator import SyncCoordinator
from utils.auth import authenticate_admin, get_admin_auth, get_coordinator

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=AdminTokenResponse)
async def login(request: AdminLoginRequest, auth: AdminAuthService = Depends(get_admin_auth)):
    """Exchange the admin credentials for a bearer token"""
    if not auth.check_credentials(request.username, request.password):
        logger.warning(f"AUTH: Failed admin login for '{request.username}'")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return AdminTokenResponse(
        access_token=auth.generate_token(request.username),
        expires_in=auth.max_token_age
    )


@router.get("/stats", dependencies=[Depends(authenticate_admin)])
async def get_stats(coordinator: SyncCoordinator = Depends(get_coordinator)):
    return coordinator.get_stats()


@router.get("/connection-status", dependencies=[Depends(authenticate_admin)])
async def get_connection_status(coordinator: SyncCoordinator = Depends(get_coordinator)):
    return coordinator.get_connection_status()


@router.post("/sync", dependencies=[Depends(authenticate_admin)])
async def sync_now(coordinator: SyncCoordinator = Depends(get_coordinator)):
    """Manual full refresh from the remote, republished to live listeners"""
    result = await coordinator.refresh()
    return {
        "synced": result.count,
        "connection": coordinator.get_connection_status()
    }
