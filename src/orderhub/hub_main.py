"""Real-time hub application factory.

Learn: the hub is its own process (uvicorn orderhub.hub_main:app). It holds
no database connection — only the connection registry, the token service
for optional client authentication, and the internal API key that guards
/api/broadcast.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from orderhub import __version__
from orderhub.auth.jwt import TokenService
from orderhub.config import Settings, settings as default_settings
from orderhub.realtime.hub import ConnectionRegistry

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "hub.starting",
        version=__version__,
        environment=app.state.settings.environment,
        port=app.state.settings.hub_port,
        broadcast_key_required=bool(app.state.settings.internal_api_key),
    )
    yield
    logger.info("hub.shutdown")


def create_hub_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the hub FastAPI application."""
    settings = settings or default_settings

    app = FastAPI(
        title="OrderHub Notification Hub",
        description="Fans order change events out to connected clients",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.tokens = TokenService.from_settings(settings)
    app.state.registry = ConnectionRegistry(send_timeout=settings.hub_send_timeout_seconds)

    from orderhub.middleware.request_id import RequestIdMiddleware
    from orderhub.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, assume_https=settings.assume_https)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from orderhub.realtime.websocket import router as hub_router

    app.include_router(hub_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "notification-hub",
            "version": __version__,
            "connections": await app.state.registry.connection_count(),
        }

    return app


# Default app instance (used by uvicorn: orderhub.hub_main:app)
app = create_hub_app()
