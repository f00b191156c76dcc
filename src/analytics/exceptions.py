"""
Analytics Errors

Failures raised by the record store and the report assembler.
"""

from typing import Dict


class AnalyticsError(Exception):
    """Base class for report engine failures"""


class StoreUnavailable(AnalyticsError):
    """The record store could not be reached or a query failed or timed out."""

    def __init__(self, message: str, collection: str = None):
        super().__init__(message)
        self.collection = collection


class EmptyAggregationResult(AnalyticsError):
    """A single-group aggregation produced no rows because the collection is empty."""

    def __init__(self, collection: str):
        super().__init__(f"Aggregation over '{collection}' returned no rows")
        self.collection = collection


class ReportAssemblyError(AnalyticsError):
    """
    One or more metric computers failed.

    ``failures`` maps metric name to the exception it raised. The first
    failure is chained as ``__cause__`` by the assembler.
    """

    def __init__(self, failures: Dict[str, BaseException]):
        self.failures = dict(failures)
        details = "; ".join(f"{name}: {exc}" for name, exc in self.failures.items())
        super().__init__(details or "Report assembly failed")
