"""
Certificate Verification Backend API Server
Core functionality: public certificate lookup, participant registry administration,
remote/local participant sync with live updates
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import ALLOWED_ORIGINS
from api.routes import health, certificates, participants, admin
from services.admin_auth import AdminAuthService
from services.sync_context import SyncContext
from utils.error_handling import setup_error_handling

logger = logging.getLogger(__name__)


def create_app(
    context_factory: Callable[[], SyncContext] = SyncContext.from_settings,
    admin_auth: Optional[AdminAuthService] = None
) -> FastAPI:
    """Build the application; tests pass their own context factory and auth service"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        context = context_factory()
        app.state.sync_context = context
        app.state.admin_auth = admin_auth or AdminAuthService()
        await context.start()
        yield
        await context.shutdown()

    app = FastAPI(
        title="Certificate Verification Backend",
        description="Public certificate lookup and admin management of the participant registry",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    setup_error_handling(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(certificates.router, prefix="/api", tags=["Certificates"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
    app.include_router(participants.router, prefix="/api/admin/participants", tags=["Participants"])

    return app


# FastAPI app instance is exported for use by uvicorn
# Server startup is handled by main.py at the project root
app = create_app()
