"""
Report Cache Module

Caching layer for the dashboard report with:
- A single entry under a fixed key
- Fixed time-to-live with lazy expiry
- In-process and Redis backends behind one interface
- Injectable clocks
"""

import json
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import structlog
from pydantic import ValidationError
from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError

from src.analytics.schemas import Report
from src.config import get_settings

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 600
REPORT_CACHE_KEY = "dashboard:analytics"

# Global Redis connection
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()
    _redis_pool = ConnectionPool.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
        decode_responses=True,
    )
    _redis_client = Redis(connection_pool=_redis_pool)

    try:
        await _redis_client.ping()
        logger.info("Redis connection established")
    except RedisError as e:
        logger.error("Redis connection failed", error=str(e))
        raise

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


@dataclass(frozen=True)
class CacheEntry:
    """A cached report and the time it was stored"""
    report: Report
    computed_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.computed_at < self.ttl


class ReportCache(ABC):
    """
    Holds the most recently assembled report.

    ``get`` returns ``None`` on a miss, including when the stored entry has
    outlived its ttl. ``put`` replaces the entry; concurrent writes are
    last-writer-wins.
    """

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl

    @abstractmethod
    async def get(self) -> Optional[Report]:
        """Return the cached report if still valid"""

    @abstractmethod
    async def put(self, report: Report) -> None:
        """Store a freshly computed report"""

    async def describe(self) -> dict:
        """Backend status for health checks"""
        return {"status": "healthy", "backend": type(self).__name__, "ttl_seconds": self.ttl}


class InMemoryReportCache(ReportCache):
    """
    Process-local report cache.

    Expired entries are not evicted; they linger until the next ``put`` and
    are never returned.

    Example:
        cache = InMemoryReportCache(ttl=600)
        await cache.put(report)
        cached = await cache.get()
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(ttl)
        self._clock = clock
        self._entry: Optional[CacheEntry] = None

    async def get(self) -> Optional[Report]:
        entry = self._entry
        if entry is None or not entry.is_valid(self._clock()):
            return None
        return entry.report

    async def put(self, report: Report) -> None:
        self._entry = CacheEntry(report=report, computed_at=self._clock(), ttl=self.ttl)


class RedisReportCache(ReportCache):
    """
    Report cache shared through Redis.

    The entry is stored as JSON with ``SETEX``; the stored ``computed_at``
    is also checked on read so a clock-controlled ttl holds even when Redis
    has not expired the key yet. Redis failures degrade to a miss.
    """

    def __init__(
        self,
        client: Redis,
        key: str = REPORT_CACHE_KEY,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(ttl)
        self.client = client
        self.key = key
        self._clock = clock

    async def get(self) -> Optional[Report]:
        try:
            raw = await self.client.get(self.key)
        except RedisError as e:
            logger.warning("Report cache read failed", key=self.key, error=str(e))
            return None

        if raw is None:
            return None

        try:
            payload = json.loads(raw)
            entry = CacheEntry(
                report=Report.model_validate(payload["report"]),
                computed_at=float(payload["computed_at"]),
                ttl=float(payload["ttl"]),
            )
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            logger.warning("Discarding unreadable cache entry", key=self.key, error=str(e))
            return None

        if not entry.is_valid(self._clock()):
            return None
        return entry.report

    async def put(self, report: Report) -> None:
        payload = json.dumps({
            "report": report.to_wire(),
            "computed_at": self._clock(),
            "ttl": self.ttl,
        })
        try:
            await self.client.setex(self.key, math.ceil(self.ttl), payload)
        except RedisError as e:
            logger.warning("Report cache write failed", key=self.key, error=str(e))

    async def describe(self) -> dict:
        status = await super().describe()
        try:
            await self.client.ping()
        except RedisError as e:
            status.update(status="unhealthy", error=str(e))
        return status


def create_report_cache(redis_client: Optional[Redis] = None) -> ReportCache:
    """Build the report cache selected by ``ANALYTICS_CACHE_BACKEND``"""
    analytics = get_settings().analytics
    if analytics.cache_backend == "redis":
        return RedisReportCache(
            redis_client or get_redis(),
            key=analytics.cache_key,
            ttl=analytics.cache_ttl_seconds,
        )
    return InMemoryReportCache(ttl=analytics.cache_ttl_seconds)
