"""
Dashboard Report Models

Immutable Pydantic models for every slice of the dashboard report. Fields
are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Tuple

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

# Exact currency amounts; plain numbers on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ReportModel(BaseModel):
    """Frozen base with camelCase aliases"""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        """JSON-ready dict using wire field names"""
        return self.model_dump(mode="json", by_alias=True)


class CustomerSegment(str, Enum):
    """Customer segment labels"""
    REGULAR = "Regular"
    ACTIVE = "Active"
    VIP = "VIP"
    AT_RISK = "AtRisk"


class RevenueSummary(ReportModel):
    """Total revenue and order count over all orders"""
    total_revenue: Money = Decimal("0")
    total_orders: int = 0


class MonthlySalesPoint(ReportModel):
    """Revenue and order count for one calendar month"""
    year: int
    month: int
    revenue: Money
    orders: int


class InventoryHealth(ReportModel):
    """Stock summary over the whole catalog"""
    total_stocks: int = 0
    average_stock: float = 0.0
    low_stock: int = 0
    out_of_stock: int = 0


class CustomerProfile(ReportModel):
    """Spend profile of one ordering user"""
    user_id: str
    total_spent: Money
    order_count: int
    average_order_value: float
    last_purchase_date: datetime
    days_since_last_purchase: int
    segment: CustomerSegment


class CustomerAnalytics(ReportModel):
    """Customer-level aggregates"""
    total_customers: int = 0
    average_lifetime_value: float = 0.0
    customer_segments: Tuple[CustomerProfile, ...] = ()


class KPIs(ReportModel):
    """Derived key performance indicators"""
    average_order_value: float = 0.0
    conversion_rate: float = 0.0
    stock_turnover_rate: float = 0.0


class Report(ReportModel):
    """The assembled dashboard analytics payload"""
    active_users: int
    total_products: int
    total_revenue: Money
    total_orders: int
    monthly_sales_data: Tuple[MonthlySalesPoint, ...]
    inventory_metrics: InventoryHealth
    customer_analytics: CustomerAnalytics
    kpis: KPIs
