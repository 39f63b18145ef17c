"""
FastAPI Main Application - FilingGate API entry point.

Run with: uvicorn filinggate.interfaces.api.main:app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from filinggate import __version__
from filinggate.config import get_settings

from .deps import cleanup_services, init_services
from .middleware import ErrorHandlerMiddleware, LatencyMiddleware, RequestIDMiddleware
from .routes import analysis, documents, extraction, health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("Starting FilingGate API...")
    logger.info("  Database: %s", settings.db_path)
    logger.info("  Fallback provider: %s", "azure" if settings.azure_configured else "none")

    await init_services()
    logger.info("  Services initialized")

    yield

    logger.info("Shutting down FilingGate API...")
    await cleanup_services()


def create_app() -> FastAPI:
    """Create FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="FilingGate API",
        description="Quality-gated extraction and analysis of financial statements",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters - last added = outermost)
    # 1. Error handling (innermost - catches route exceptions)
    app.add_middleware(ErrorHandlerMiddleware)

    # 2. Latency tracking
    app.add_middleware(LatencyMiddleware)

    # 3. Request ID (outermost custom - runs first)
    app.add_middleware(RequestIDMiddleware)

    # 4. CORS (framework middleware)
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]
    if settings.api_debug:
        allowed_origins.append("http://localhost:*")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(documents.router, prefix="/api/documents", tags=["Documents"])
    app.include_router(extraction.router, prefix="/api/extraction", tags=["Extraction"])
    app.include_router(analysis.router, prefix="/api/analysis", tags=["Analysis"])

    return app


# Create app instance
app = create_app()
