"""
Health check API route
"""

from fastapi import APIRouter, Depends

from services.sync_coordinator import SyncCoordinator
from utils.auth import get_coordinator
from utils.helpers import utc_now

router = APIRouter()


@router.get("/health")
async def health_check(coordinator: SyncCoordinator = Depends(get_coordinator)):
    """
    Health check - always reports healthy while the process can serve lookups

    Remote outages degrade to the local store rather than failing requests,
    so the remote link state is reported for monitoring only.
    """
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "connection": coordinator.get_connection_status(),
    }
