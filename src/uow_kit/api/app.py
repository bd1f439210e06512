"""
uow_kit.api.app

FastAPI app factory for the blog API.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Initialize and dispose shared infrastructure (DB engine/session factory).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from uow_kit import __version__
from uow_kit.api.routers.blogs import router as blogs_router
from uow_kit.api.routers.health import router as health_router
from uow_kit.db.init_db import init_db
from uow_kit.db.session import create_engine, create_sessionmaker
from uow_kit.observability.logging import configure_logging, get_logger
from uow_kit.observability.middleware import RequestContextMiddleware
from uow_kit.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(
        service_name=settings.service_name, level=settings.log_level, sql_echo=settings.sql_echo
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        # One engine + sessionmaker per process; each request builds its own unit of
        # work from the sessionmaker (see `uow_kit.api.deps.unit_of_work`).
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            await init_db(engine)
        try:
            yield
        finally:
            # Dispose the engine to close pools/FDs gracefully.
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="uow-kit blog API",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(blogs_router)

    return app


# --- Module Notes -----------------------------------------------------------
# Schema migrations are out of scope; outside dev/test the tables must already exist.
