"""
pr_desk.api.app

FastAPI app factory for the PR Desk service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Assemble the request pipeline: size guard, rate limiters, session resolver,
  access control, error normalizer.
- Initialize and dispose shared infrastructure (DB engine, outbound HTTP client).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from pr_desk import __version__
from pr_desk.api.error_handlers import install_error_handlers
from pr_desk.api.routers.ai import router as ai_router
from pr_desk.api.routers.auth import router as auth_router
from pr_desk.api.routers.client_activities import router as client_activities_router
from pr_desk.api.routers.client_assignments import router as client_assignments_router
from pr_desk.api.routers.clients import router as clients_router
from pr_desk.api.routers.health import router as health_router
from pr_desk.api.routers.usage_dashboard import router as usage_router
from pr_desk.api.routers.users import router as users_router
from pr_desk.auth.session import SessionResolver
from pr_desk.db.init_db import init_db
from pr_desk.db.session import create_engine, create_sessionmaker
from pr_desk.observability.logging import configure_logging, get_logger
from pr_desk.observability.middleware import RequestContextMiddleware
from pr_desk.security.rate_limit import RateLimitRegistry
from pr_desk.security.validation import RequestSizeLimitMiddleware
from pr_desk.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        app.state.http = httpx.AsyncClient(timeout=settings.outbound_timeout_seconds)
        if settings.env in ("dev", "test"):
            # Prod uses Alembic migrations.
            await init_db(engine)
        try:
            yield
        finally:
            await app.state.http.aclose()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="PR Desk",
        version=__version__,
        docs_url=None if settings.is_production else "/docs",
        openapi_url=None if settings.is_production else "/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_resolver = SessionResolver(settings)
    app.state.rate_limits = RateLimitRegistry(settings=settings)

    # Starlette wraps in reverse order of registration: the request context is
    # outermost, the size guard innermost.
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_bytes)
    install_error_handlers(app, settings)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(clients_router)
    app.include_router(client_activities_router)
    app.include_router(client_assignments_router)
    app.include_router(users_router)
    app.include_router(ai_router)
    app.include_router(usage_router)

    return app


# --- Module Notes -----------------------------------------------------------
# Per-route pipeline stages (rate limiters, session, access) are FastAPI
# dependencies declared in the routers; only process-wide concerns live here.
