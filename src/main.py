"""
FastAPI Production Application

Main entry point for the E-Commerce Dashboard Analytics API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from src.analytics.assembler import ReportAssembler
from src.analytics.service import AnalyticsService
from src.analytics.store import RecordStore
from src.config import get_settings
from src.config.logging import configure_logging
from src.database.connection import init_database, close_database, get_session_factory
from src.serving.api.main import create_api_app
from src.serving.cache import init_redis, close_redis, create_report_cache

logger = structlog.get_logger(__name__)


def build_analytics_service() -> AnalyticsService:
    """Wire store, assembler and cache from settings"""
    settings = get_settings()
    store = RecordStore(
        get_session_factory(),
        query_timeout=settings.database.query_timeout,
    )
    assembler = ReportAssembler(
        store,
        low_stock_threshold=settings.analytics.low_stock_threshold,
        out_of_stock_threshold=settings.analytics.out_of_stock_threshold,
    )
    return AnalyticsService(
        assembler,
        create_report_cache(),
        single_flight=settings.analytics.single_flight,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    settings = get_settings()

    logger.info("Starting E-Commerce Dashboard Analytics API", environment=settings.app_env)

    await init_database()
    if settings.analytics.cache_backend == "redis":
        await init_redis()

    app.state.analytics_service = build_analytics_service()
    logger.info(
        "Analytics service ready",
        cache_backend=settings.analytics.cache_backend,
        cache_ttl_seconds=settings.analytics.cache_ttl_seconds,
    )

    yield

    logger.info("Shutting down...")
    await close_database()
    await close_redis()


app = create_api_app(lifespan=lifespan)


def run() -> None:
    """Console entry point"""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
