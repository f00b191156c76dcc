"""
Dashboard API Endpoints

Serves the consolidated analytics report consumed by the dashboard.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
import structlog

from src.analytics.exceptions import AnalyticsError
from src.analytics.service import AnalyticsService
from src.config import get_settings

router = APIRouter()
logger = structlog.get_logger(__name__)

CACHED_MESSAGE = "Cached data:"
ERROR_MESSAGE = "Error fetching dashboard analytics"


def get_analytics_service(request: Request) -> AnalyticsService:
    """FastAPI dependency returning the service built at startup"""
    service = getattr(request.app.state, "analytics_service", None)
    if service is None:
        raise RuntimeError("Analytics service not initialized")
    return service


@router.get("/analytics")
async def get_dashboard_analytics(
    service: AnalyticsService = Depends(get_analytics_service),
):
    """
    Get the dashboard analytics report.

    Freshly computed reports are returned as-is. Cached reports are wrapped
    as ``{"message": "Cached data:", "cacheAnalytics": <report>}`` unless
    ``ANALYTICS_WRAP_CACHED_RESPONSE`` is disabled.
    """
    try:
        report, cached = await service.get_report()
    except AnalyticsError as e:
        logger.error("Dashboard analytics failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(
            status_code=500,
            content={"message": ERROR_MESSAGE, "error": str(e)},
        )
    except Exception as e:
        logger.error("Unexpected dashboard analytics error", error=str(e), error_type=type(e).__name__)
        raise

    payload = report.to_wire()
    if cached and get_settings().analytics.wrap_cached_response:
        return {"message": CACHED_MESSAGE, "cacheAnalytics": payload}

    logger.info("Dashboard analytics returned", cached=cached)
    return payload
