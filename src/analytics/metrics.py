"""
Metric Computers

Each computer is an independent coroutine that issues its own query against
the record store and returns one slice of the dashboard report. Computers
share no state.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

import structlog

from src.analytics.exceptions import EmptyAggregationResult
from src.analytics.schemas import (
    CustomerProfile,
    CustomerSegment,
    InventoryHealth,
    MonthlySalesPoint,
    RevenueSummary,
)
from src.analytics.store import (
    Collection,
    Condition,
    GroupKey,
    RecordStore,
    Reducer,
    SortOrder,
    single_row,
)

logger = structlog.get_logger(__name__)

LOW_STOCK_THRESHOLD = 10
OUT_OF_STOCK_THRESHOLD = 0

# Evaluated in order, first match wins. Active precedes VIP, so the VIP rule
# never matches.
SEGMENT_RULES: Tuple[Tuple[CustomerSegment, Callable[[int, float], bool]], ...] = (
    (CustomerSegment.ACTIVE, lambda days, spent: days < 7),
    (CustomerSegment.VIP, lambda days, spent: days < 7 and spent > 1000),
    (CustomerSegment.REGULAR, lambda days, spent: days < 30),
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_money(value) -> Decimal:
    """Exact amount from a driver value; SUM over no rows is NULL"""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def days_between(start: datetime, end: datetime) -> int:
    """Whole days elapsed from ``start`` to ``end``"""
    return (_as_utc(end) - _as_utc(start)).days


def assign_segment(days_since_last_purchase: int, total_spent: float) -> CustomerSegment:
    """Label a customer by recency and spend"""
    for segment, matches in SEGMENT_RULES:
        if matches(days_since_last_purchase, total_spent):
            return segment
    return CustomerSegment.AT_RISK


async def active_user_count(store: RecordStore) -> int:
    """Number of user records. No activity filter is applied."""
    return await store.count(Collection.USERS)


async def product_catalog_size(store: RecordStore) -> int:
    return await store.count(Collection.PRODUCTS)


async def revenue_summary(store: RecordStore) -> RevenueSummary:
    rows = await store.aggregate(
        Collection.ORDERS,
        reducers={
            "total_revenue": Reducer.sum("total_amount"),
            "total_orders": Reducer.count(),
        },
    )
    try:
        row = single_row(rows, Collection.ORDERS)
    except EmptyAggregationResult:
        return RevenueSummary()

    return RevenueSummary(
        total_revenue=as_money(row["total_revenue"]),
        total_orders=int(row["total_orders"]),
    )


async def monthly_sales_series(store: RecordStore) -> List[MonthlySalesPoint]:
    """Revenue and order count per calendar month, oldest first"""
    rows = await store.aggregate(
        Collection.ORDERS,
        reducers={
            "revenue": Reducer.sum("total_amount"),
            "orders": Reducer.count(),
        },
        group_by={
            "year": GroupKey("order_date", part="year"),
            "month": GroupKey("order_date", part="month"),
        },
        sort=[("year", SortOrder.ASC), ("month", SortOrder.ASC)],
    )
    return [
        MonthlySalesPoint(
            year=int(row["year"]),
            month=int(row["month"]),
            revenue=as_money(row["revenue"]),
            orders=int(row["orders"]),
        )
        for row in rows
    ]


async def inventory_health(
    store: RecordStore,
    low_stock_threshold: int = LOW_STOCK_THRESHOLD,
    out_of_stock_threshold: int = OUT_OF_STOCK_THRESHOLD,
) -> InventoryHealth:
    """
    Stock totals over the catalog.

    Low stock includes out-of-stock products, so ``out_of_stock <= low_stock``
    whenever ``out_of_stock_threshold <= low_stock_threshold``.
    """
    rows = await store.aggregate(
        Collection.PRODUCTS,
        reducers={
            "total_stocks": Reducer.sum("stock"),
            "average_stock": Reducer.avg("stock"),
            "low_stock": Reducer.count_where(Condition("stock", "<=", low_stock_threshold)),
            "out_of_stock": Reducer.count_where(Condition("stock", "<=", out_of_stock_threshold)),
        },
    )
    try:
        row = single_row(rows, Collection.PRODUCTS)
    except EmptyAggregationResult:
        return InventoryHealth()

    return InventoryHealth(
        total_stocks=int(row["total_stocks"] or 0),
        average_stock=float(row["average_stock"] or 0),
        low_stock=int(row["low_stock"]),
        out_of_stock=int(row["out_of_stock"]),
    )


async def customer_segmentation(
    store: RecordStore,
    now: Optional[datetime] = None,
) -> List[CustomerProfile]:
    """Spend profile and segment of every user that has ordered"""
    now = now or utc_now()
    rows = await store.aggregate(
        Collection.ORDERS,
        reducers={
            "total_spent": Reducer.sum("total_amount"),
            "order_count": Reducer.count(),
            "average_order_value": Reducer.avg("total_amount"),
            "last_purchase_date": Reducer.max("order_date"),
        },
        group_by={"user_id": GroupKey("user_id")},
        sort=[("user_id", SortOrder.ASC)],
    )

    profiles = []
    for row in rows:
        total_spent = as_money(row["total_spent"])
        days = days_between(row["last_purchase_date"], now)
        profiles.append(
            CustomerProfile(
                user_id=str(row["user_id"]),
                total_spent=total_spent,
                order_count=int(row["order_count"]),
                average_order_value=float(row["average_order_value"] or 0),
                last_purchase_date=row["last_purchase_date"],
                days_since_last_purchase=days,
                segment=assign_segment(days, total_spent),
            )
        )

    logger.debug("Customer segmentation computed", customers=len(profiles))
    return profiles
