"""
Serving Module
"""
from .cache import (
    init_redis,
    close_redis,
    get_redis,
    ReportCache,
    InMemoryReportCache,
    RedisReportCache,
    create_report_cache,
)

__all__ = [
    "init_redis",
    "close_redis",
    "get_redis",
    "ReportCache",
    "InMemoryReportCache",
    "RedisReportCache",
    "create_report_cache",
]
