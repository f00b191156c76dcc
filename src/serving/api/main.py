"""
FastAPI Application Factory

Creates and configures the dashboard API application.
"""

from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from src.analytics.service import AnalyticsService
from src.config import get_settings
from src.serving.api.middleware import RequestLoggingMiddleware
from src.serving.api.routes import health_router, dashboard_router


def create_api_app(
    lifespan: Optional[Callable] = None,
    analytics_service: Optional[AnalyticsService] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Startup/shutdown context manager
        analytics_service: Pre-built service; otherwise the lifespan is
            expected to set ``app.state.analytics_service``

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    app = FastAPI(
        title="E-Commerce Dashboard Analytics API",
        description="Consolidated business metrics for the e-commerce dashboard",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    if analytics_service is not None:
        app.state.analytics_service = analytics_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(dashboard_router, prefix="/api/dashboard", tags=["Dashboard"])

    @app.get("/")
    async def root():
        return {"message": "E-commerce Analytics Dashboard"}

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "E-Commerce Dashboard Analytics API",
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": "/docs",
        }

    return app
