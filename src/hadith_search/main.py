"""
Hadith Search Application Entry Point

This module defines the FastAPI application instance, registers all routers,
configures exception handling, and provides a test-friendly application
factory.

Design Goals
------------
- Deterministic startup
- Clients built once per process in the lifespan and stored on app.state
- Centralized router registration
- Global exception safety net
- Test-friendly via create_app()
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .core.errors import (
    InvalidArgument,
    RetrievalError,
    StoreError,
    http_exception_handler,
    invalid_argument_handler,
    request_validation_handler,
    retrieval_error_handler,
    store_error_handler,
    unhandled_exception_handler,
)
from .db import build_engine, build_sessionmaker
from .embeddings.embedder import Embedder

from .api import (
    search_routes,
    history_routes,
    health_routes,
)


logger = logging.getLogger("hadith.app")


# ---------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Build the database engine and embedding client, and release them on
    shutdown.
    """
    logger.info("Starting hadith-search")

    engine = build_engine(settings.database_url)
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.embedder = Embedder(
        api_key=settings.openai_api_key.get_secret_value(),
        model=settings.embedding_model,
        dim=settings.embedding_dim,
        base_url=settings.embedding_api_url,
        timeout=settings.embedding_timeout,
    )
    logger.info(
        "Using embedding model %s (%d dimensions)",
        settings.embedding_model,
        settings.embedding_dim,
    )

    try:
        yield
    finally:
        logger.info("Shutting down hadith-search")
        await engine.dispose()


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    app = FastAPI(
        title="hadith-search",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # --------------------------------------------------------------
    # Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(InvalidArgument, invalid_argument_handler)
    app.add_exception_handler(RetrievalError, retrieval_error_handler)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(search_routes.router)
    app.include_router(history_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn/Gunicorn)
# ---------------------------------------------------------------------

app = create_app()
