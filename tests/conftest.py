"""
Test Suite Configuration
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Iterable, Sequence, Tuple

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.analytics.store import RecordStore
from src.database.connection import create_session_factory
from src.database.models import Base, Order, Product, User

# Fixed "current time" for recency calculations
NOW = datetime(2025, 3, 15, 12, 0, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def day0(now) -> datetime:
    """Five days before ``now``"""
    return now - timedelta(days=5)


@pytest.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine so concurrent sessions get their own connections"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'dashboard.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(test_engine)


@pytest.fixture
def store(session_factory) -> RecordStore:
    return RecordStore(session_factory, query_timeout=5)


@pytest.fixture
def add_users(session_factory):
    """Insert ``n`` users"""
    async def _add(n: int) -> None:
        async with session_factory() as session:
            session.add_all([User(name=f"user-{i}", email=f"user{i}@example.com") for i in range(n)])
            await session.commit()
    return _add


@pytest.fixture
def add_products(session_factory):
    """Insert one product per stock value"""
    async def _add(stocks: Iterable[int]) -> None:
        async with session_factory() as session:
            session.add_all([Product(name=f"product-{i}", stock=s) for i, s in enumerate(stocks)])
            await session.commit()
    return _add


@pytest.fixture
def add_orders(session_factory):
    """Insert orders given as (user_id, total_amount, order_date) tuples"""
    async def _add(orders: Sequence[Tuple[str, float, datetime]]) -> None:
        async with session_factory() as session:
            session.add_all([
                Order(user_id=user_id, total_amount=Decimal(str(amount)), order_date=order_date)
                for user_id, amount, order_date in orders
            ])
            await session.commit()
    return _add


@pytest.fixture
def sample_report():
    """A small, fully populated report"""
    from src.analytics.schemas import (
        CustomerAnalytics,
        CustomerProfile,
        CustomerSegment,
        InventoryHealth,
        KPIs,
        MonthlySalesPoint,
        Report,
    )

    profile = CustomerProfile(
        user_id="u1",
        total_spent=Decimal("1200"),
        order_count=2,
        average_order_value=600.0,
        last_purchase_date=datetime(2025, 3, 12, 12, 0, 0),
        days_since_last_purchase=3,
        segment=CustomerSegment.ACTIVE,
    )
    return Report(
        active_users=4,
        total_products=3,
        total_revenue=Decimal("1200"),
        total_orders=2,
        monthly_sales_data=(MonthlySalesPoint(year=2025, month=3, revenue=Decimal("1200"), orders=2),),
        inventory_metrics=InventoryHealth(total_stocks=55, average_stock=55 / 3, low_stock=2, out_of_stock=1),
        customer_analytics=CustomerAnalytics(
            total_customers=1,
            average_lifetime_value=1200.0,
            customer_segments=(profile,),
        ),
        kpis=KPIs(average_order_value=600.0, conversion_rate=50.0, stock_turnover_rate=1200.0 / 55),
    )
