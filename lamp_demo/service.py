"""Application factory for the LAMP demo users page."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse

from .config import DatabaseConfig, load_config
from .database import Database, DatabaseUnavailableError
from .web import register_ui_routes

logger = logging.getLogger("lamp_demo.service")


def create_app(
    *,
    database: Optional[Database] = None,
    config: Optional[DatabaseConfig] = None,
) -> FastAPI:
    """Instantiate the FastAPI application serving the users page."""

    if database is None:
        database = Database(config or load_config())
    db = database

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info("Serving users from %s", db.config.describe())
        yield
        db.dispose()

    app = FastAPI(
        title="LAMP Stack Demo",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.database = db

    register_ui_routes(app, db)

    @app.exception_handler(DatabaseUnavailableError)
    async def handle_database_unavailable(_: Request, exc: DatabaseUnavailableError):
        return PlainTextResponse(
            f"Connection failed: {exc}",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return app


__all__ = ["create_app"]
