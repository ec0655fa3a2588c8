"""FastAPI application factory for the OrderHub API.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Everything a request needs (settings, token service, policy,
notification dispatcher, session factory) is built once here and kept on
app.state; nothing is read from globals per request.

Lifespan manages startup/shutdown: create tables, seed the demo data,
then on shutdown wait for in-flight notifications and close the engine.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from orderhub import __version__
from orderhub.api import api_router
from orderhub.auth.jwt import TokenService
from orderhub.auth.policy import build_policy
from orderhub.config import Settings, settings as default_settings
from orderhub.db.engine import build_engine, build_session_factory, create_schema
from orderhub.db.seed import seed_demo_data
from orderhub.realtime.dispatcher import build_dispatcher

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: FastAPI lifespan replaces on_event("startup") / on_event("shutdown").
    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(
        "orderhub.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        policy=settings.authorization_policy,
        notification_mode=settings.notification_mode,
    )
    if settings.skip_jwt_validation:
        logger.warning("orderhub.jwt_validation_skipped")

    await create_schema(app.state.engine)
    if settings.seed_demo_data:
        async with app.state.session_factory() as db:
            await seed_demo_data(db, bcrypt_rounds=settings.bcrypt_rounds)

    yield

    # Shutdown
    logger.info("orderhub.shutdown")
    await app.state.notifier.aclose()
    await app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings

    app = FastAPI(
        title="OrderHub API",
        description="Order management over GraphQL with real-time change notifications",
        version=__version__,
        lifespan=lifespan,
    )

    engine = build_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.tokens = TokenService.from_settings(settings)
    app.state.policy = build_policy(settings.authorization_policy)
    app.state.notifier = build_dispatcher(settings)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → Security → RequestId → handler

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

    # Mount REST routes (health)
    app.include_router(api_router)

    # Mount GraphQL
    from orderhub.api.graphql import build_graphql_router

    app.include_router(build_graphql_router(settings), prefix="/graphql")

    return app


# Default app instance (used by uvicorn: orderhub.main:app)
app = create_app()
