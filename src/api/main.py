"""
Application entry point.

Builds the FastAPI app for the account API: logging setup, the PostgreSQL
pool and migrations run from the lifespan, the versioned router and a
database-backed health check.

Run locally with ``uvicorn src.api.main:app``.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import run_migrations
from src.api.v1 import router as v1_router
from src.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

OPENAPI_TAGS = [
    {
        "name": "v1",
        "description": "Account API v1 - Register, confirm email, log in and reset passwords",
    },
]


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


def open_pool(settings: Settings) -> ConnectionPool:
    """Open the connection pool and bring the schema up to date."""
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        open=False,
    )
    pool.open(wait=True)
    logger.info(
        "Connection pool ready (min=%d, max=%d)", settings.pool_min_size, settings.pool_max_size
    )

    run_migrations(pool)
    return pool


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    configure_logging(settings)

    app.state.pool = open_pool(settings)
    logger.info("Account API started")
    try:
        yield
    finally:
        app.state.pool.close()
        logger.info("Account API stopped, connection pool closed")


def create_app() -> FastAPI:
    application = FastAPI(
        title="accounts",
        description="Account API - Registration with email confirmation and phone numbers",
        version="0.1.0",
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
    )
    application.include_router(v1_router, prefix="/v1")
    application.add_api_route("/health", health_check, methods=["GET"])
    return application


def health_check(request: Request) -> dict[str, str]:
    """
    Report whether the service can reach its database.

    A failing connection propagates and surfaces as a 500.
    """
    with request.app.state.pool.connection() as conn:
        conn.execute("SELECT 1")
    return {"status": "healthy"}


app = create_app()
