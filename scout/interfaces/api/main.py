"""
FastAPI Main Application - Scout API entry point.

Run with: uvicorn scout.interfaces.api.main:app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scout import __version__
from scout.config import get_settings

from .deps import cleanup_services, init_services
from .middleware import (
    ErrorHandlerMiddleware,
    LatencyMiddleware,
    RateLimitMiddleware,
    RequestIDMiddleware,
)
from .routes import embeddings, health, projects, search

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("Starting Scout API...")
    logger.info("  Database: %s", settings.db_path)
    logger.info("  Embedding model: %s", settings.embedding_model)

    await init_services()
    logger.info("  Services initialized")

    yield

    logger.info("Shutting down Scout API...")
    await cleanup_services()


def create_app() -> FastAPI:
    """Create FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Scout API",
        description="Hybrid search over a directory of people and projects",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Middleware order matters: last added = outermost
    app.add_middleware(RateLimitMiddleware, requests_per_minute=settings.api_rate_limit_rpm)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LatencyMiddleware)
    app.add_middleware(RequestIDMiddleware)

    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_origin_regex=r"http://localhost:\d+" if settings.api_debug else None,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Admin-Token", "X-Request-ID"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(search.router, prefix="/api/search", tags=["Search"])
    app.include_router(projects.router, prefix="/api/projects", tags=["Projects"])
    app.include_router(embeddings.router, prefix="/api/embeddings", tags=["Embeddings"])

    return app


app = create_app()
