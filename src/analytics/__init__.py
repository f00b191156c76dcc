"""
Analytics Module

Dashboard report engine: record store adapter, metric computers and the
report assembler. The cache-backed service lives in ``service``.
"""
from .assembler import ReportAssembler, derive_kpis, summarize_customers
from .exceptions import (
    AnalyticsError,
    EmptyAggregationResult,
    ReportAssemblyError,
    StoreUnavailable,
)
from .schemas import Report, CustomerSegment
from .store import Collection, Condition, GroupKey, RecordStore, Reducer, SortOrder

__all__ = [
    "ReportAssembler",
    "derive_kpis",
    "summarize_customers",
    "AnalyticsError",
    "EmptyAggregationResult",
    "ReportAssemblyError",
    "StoreUnavailable",
    "Report",
    "CustomerSegment",
    "Collection",
    "Condition",
    "GroupKey",
    "RecordStore",
    "Reducer",
    "SortOrder",
]
