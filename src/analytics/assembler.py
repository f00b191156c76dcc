"""
Report Assembler

Runs every metric computer concurrently, waits for all of them to settle
and merges their slices into one immutable ``Report`` with derived KPIs.
"""

import asyncio
import time
from datetime import datetime
from typing import Callable, Optional, Sequence

import structlog

from src.analytics import metrics
from src.analytics.exceptions import ReportAssemblyError
from src.analytics.schemas import (
    KPIs,
    CustomerAnalytics,
    CustomerProfile,
    InventoryHealth,
    Report,
    RevenueSummary,
)
from src.analytics.store import RecordStore

logger = structlog.get_logger(__name__)


def summarize_customers(profiles: Sequence[CustomerProfile]) -> CustomerAnalytics:
    total_customers = len(profiles)
    if total_customers == 0:
        average_ltv = 0.0
    else:
        average_ltv = float(sum(p.total_spent for p in profiles)) / total_customers

    return CustomerAnalytics(
        total_customers=total_customers,
        average_lifetime_value=average_ltv,
        customer_segments=tuple(profiles),
    )


def derive_kpis(
    revenue: RevenueSummary,
    active_users: int,
    inventory: InventoryHealth,
) -> KPIs:
    """
    Secondary indicators from the primary slices.

    Each ratio is 0 when its denominator is 0.
    """
    if revenue.total_orders > 0:
        average_order_value = float(revenue.total_revenue) / revenue.total_orders
    else:
        average_order_value = 0.0

    if active_users > 0:
        conversion_rate = round((revenue.total_orders / active_users) * 100, 2)
    else:
        conversion_rate = 0.0

    if inventory.total_stocks > 0:
        stock_turnover_rate = float(revenue.total_revenue) / inventory.total_stocks
    else:
        stock_turnover_rate = 0.0

    return KPIs(
        average_order_value=average_order_value,
        conversion_rate=conversion_rate,
        stock_turnover_rate=stock_turnover_rate,
    )


class ReportAssembler:
    """
    Builds the dashboard report from the record store.

    Holds no state between calls; each ``assemble()`` reflects the store
    contents at invocation time.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime] = metrics.utc_now,
        low_stock_threshold: int = metrics.LOW_STOCK_THRESHOLD,
        out_of_stock_threshold: int = metrics.OUT_OF_STOCK_THRESHOLD,
    ):
        self.store = store
        self.clock = clock
        self.low_stock_threshold = low_stock_threshold
        self.out_of_stock_threshold = out_of_stock_threshold

    async def assemble(self, now: Optional[datetime] = None) -> Report:
        """
        Compute a fresh report.

        Raises:
            ReportAssemblyError: Any metric computer failed. Sibling queries
                are not cancelled; the error is raised once all have settled.
        """
        now = now or self.clock()
        start = time.perf_counter()

        computations = {
            "active_users": metrics.active_user_count(self.store),
            "total_products": metrics.product_catalog_size(self.store),
            "revenue": metrics.revenue_summary(self.store),
            "monthly_sales": metrics.monthly_sales_series(self.store),
            "inventory": metrics.inventory_health(
                self.store,
                low_stock_threshold=self.low_stock_threshold,
                out_of_stock_threshold=self.out_of_stock_threshold,
            ),
            "customers": metrics.customer_segmentation(self.store, now=now),
        }
        outcomes = await asyncio.gather(*computations.values(), return_exceptions=True)
        results = dict(zip(computations.keys(), outcomes))

        failures = {
            name: outcome
            for name, outcome in results.items()
            if isinstance(outcome, BaseException)
        }
        if failures:
            logger.error(
                "Report assembly failed",
                failed_metrics=sorted(failures),
                errors={name: str(exc) for name, exc in failures.items()},
            )
            raise ReportAssemblyError(failures) from next(iter(failures.values()))

        revenue: RevenueSummary = results["revenue"]
        inventory: InventoryHealth = results["inventory"]

        report = Report(
            active_users=results["active_users"],
            total_products=results["total_products"],
            total_revenue=revenue.total_revenue,
            total_orders=revenue.total_orders,
            monthly_sales_data=tuple(results["monthly_sales"]),
            inventory_metrics=inventory,
            customer_analytics=summarize_customers(results["customers"]),
            kpis=derive_kpis(revenue, results["active_users"], inventory),
        )

        logger.info(
            "Report assembled",
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            active_users=report.active_users,
            total_orders=report.total_orders,
            customers=report.customer_analytics.total_customers,
        )
        return report
