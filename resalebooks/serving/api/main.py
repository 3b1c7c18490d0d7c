"""
FastAPI Application Factory

Creates and configures the Resale Books API application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import structlog

from resalebooks.config import get_settings
from resalebooks.config.logging import configure_logging
from resalebooks.database.connection import close_database, init_database
from resalebooks.serving.api.errors import register_error_handlers
from resalebooks.serving.api.middleware import RateLimitMiddleware, RequestLoggingMiddleware
from resalebooks.serving.api.routes import (
    health_router,
    ledger_router,
    platforms_router,
    records_router,
    reports_router,
    taxonomy_router,
)

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    logger.info("Starting Resale Books API", environment=settings.app_env)

    try:
        await init_database(create_tables=not settings.is_production)
    except Exception as e:
        # Readiness probe reports it until the database comes up
        logger.warning("Database init failed", error=str(e))

    yield

    logger.info("Shutting down...")
    await close_database()


def create_api_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Resale Books API",
        description="Transaction ledger, reconciliation and monthly reporting for resale bookkeeping",
        version=settings.version,
        debug=settings.debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )

    register_error_handlers(app)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(ledger_router, prefix="/api/v1/ledger", tags=["Ledger"])
    app.include_router(reports_router, prefix="/api/v1/reports", tags=["Reports"])
    app.include_router(records_router, prefix="/api/v1/records", tags=["Records"])
    app.include_router(taxonomy_router, prefix="/api/v1/taxonomy", tags=["Taxonomy"])
    app.include_router(platforms_router, prefix="/api/v1/platforms", tags=["Platforms"])

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "Resale Books API",
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": "/docs",
        }

    return app
