"""
Unit Tests - Record Store Adapter
"""
import asyncio
from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from src.analytics.exceptions import EmptyAggregationResult, StoreUnavailable
from src.analytics.store import (
    Collection,
    Condition,
    GroupKey,
    RecordStore,
    Reducer,
    SortOrder,
    single_row,
)
from src.database.connection import create_session_factory


class TestCount:
    """Tests for RecordStore.count"""

    async def test_empty_collection(self, store):
        """Test count of an empty collection"""
        assert await store.count(Collection.USERS) == 0

    async def test_counts_records(self, store, add_users, add_products):
        """Test count per collection"""
        await add_users(3)
        await add_products([1, 2])

        assert await store.count(Collection.USERS) == 3
        assert await store.count(Collection.PRODUCTS) == 2
        assert await store.count(Collection.ORDERS) == 0


class TestAggregate:
    """Tests for RecordStore.aggregate"""

    async def test_ungrouped_empty_collection_returns_no_rows(self, store):
        """Test ungrouped aggregation over an empty collection"""
        rows = await store.aggregate(
            Collection.ORDERS,
            reducers={"revenue": Reducer.sum("total_amount"), "orders": Reducer.count()},
        )

        assert rows == []

    async def test_ungrouped_single_row(self, store, add_orders):
        """Test ungrouped aggregation single row"""
        await add_orders([
            ("u1", 10.0, datetime(2025, 1, 1)),
            ("u2", 30.0, datetime(2025, 1, 2)),
        ])

        rows = await store.aggregate(
            Collection.ORDERS,
            reducers={
                "revenue": Reducer.sum("total_amount"),
                "orders": Reducer.count(),
                "average": Reducer.avg("total_amount"),
                "latest": Reducer.max("order_date"),
            },
        )

        assert len(rows) == 1
        row = rows[0]
        assert float(row["revenue"]) == pytest.approx(40.0)
        assert row["orders"] == 2
        assert float(row["average"]) == pytest.approx(20.0)
        assert row["latest"] == datetime(2025, 1, 2)
        assert "_matched" not in row

    async def test_group_by_field_sorted(self, store, add_orders):
        """Test grouping by field with descending sort"""
        await add_orders([
            ("b", 5.0, datetime(2025, 1, 1)),
            ("a", 1.0, datetime(2025, 1, 1)),
            ("b", 7.0, datetime(2025, 1, 3)),
        ])

        rows = await store.aggregate(
            Collection.ORDERS,
            reducers={"spent": Reducer.sum("total_amount"), "orders": Reducer.count()},
            group_by={"user": GroupKey("user_id")},
            sort=[("user", SortOrder.DESC)],
        )

        assert [r["user"] for r in rows] == ["b", "a"]
        assert float(rows[0]["spent"]) == pytest.approx(12.0)
        assert rows[0]["orders"] == 2

    async def test_group_by_date_parts(self, store, add_orders):
        """Test grouping by year and month"""
        await add_orders([
            ("u1", 10.0, datetime(2025, 2, 10)),
            ("u1", 20.0, datetime(2024, 12, 31)),
            ("u2", 5.0, datetime(2025, 2, 1)),
        ])

        rows = await store.aggregate(
            Collection.ORDERS,
            reducers={"orders": Reducer.count()},
            group_by={
                "year": GroupKey("order_date", part="year"),
                "month": GroupKey("order_date", part="month"),
            },
            sort=[("year", SortOrder.ASC), ("month", SortOrder.ASC)],
        )

        assert [(int(r["year"]), int(r["month"]), r["orders"]) for r in rows] == [
            (2024, 12, 1),
            (2025, 2, 2),
        ]

    async def test_conditional_count(self, store, add_products):
        """Test conditional count and sum"""
        await add_products([0, 3, 10, 11, 100])

        rows = await store.aggregate(
            Collection.PRODUCTS,
            reducers={
                "low": Reducer.count_where(Condition("stock", "<=", 10)),
                "empty": Reducer.count_where(Condition("stock", "==", 0)),
                "low_units": Reducer.sum_where("stock", Condition("stock", "<=", 10)),
            },
        )

        assert rows[0]["low"] == 3
        assert rows[0]["empty"] == 1
        assert rows[0]["low_units"] == 13

    async def test_projection(self, store, add_orders):
        """Test output projection"""
        await add_orders([("u1", 10.0, datetime(2025, 1, 1))])

        rows = await store.aggregate(
            Collection.ORDERS,
            reducers={"spent": Reducer.sum("total_amount"), "orders": Reducer.count()},
            group_by={"user": GroupKey("user_id")},
            project=["orders"],
        )

        assert rows == [{"orders": 1}]

    async def test_unknown_field_rejected(self, store):
        """Test unknown field rejection"""
        with pytest.raises(ValueError):
            await store.aggregate(Collection.ORDERS, reducers={"x": Reducer.sum("price")})

    async def test_unknown_sort_field_rejected(self, store):
        """Test unknown sort field rejection"""
        with pytest.raises(ValueError):
            await store.aggregate(
                Collection.ORDERS,
                reducers={"orders": Reducer.count()},
                sort=[("missing", SortOrder.ASC)],
            )

    async def test_requires_reducers(self, store):
        """Test aggregation without reducers"""
        with pytest.raises(ValueError):
            await store.aggregate(Collection.ORDERS, reducers={})


class TestQuerySpecs:
    """Tests for query value objects"""

    def test_invalid_comparison(self):
        """Test unsupported comparison operator"""
        with pytest.raises(ValueError):
            Condition("stock", "=>", 1)

    def test_invalid_date_part(self):
        """Test unsupported date part"""
        with pytest.raises(ValueError):
            GroupKey("order_date", part="week")

    def test_single_row_on_empty(self):
        """Test single row of an empty result"""
        with pytest.raises(EmptyAggregationResult) as exc_info:
            single_row([], Collection.PRODUCTS)
        assert exc_info.value.collection == "products"


class _SlowSession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, stmt):
        await asyncio.sleep(5)


class TestStoreUnavailable:
    """Failures surface as StoreUnavailable"""

    async def test_missing_tables(self, tmp_path):
        """Test store failure on missing tables"""
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        store = RecordStore(create_session_factory(engine))

        try:
            with pytest.raises(StoreUnavailable) as exc_info:
                await store.count(Collection.ORDERS)
        finally:
            await engine.dispose()

        assert exc_info.value.collection == "orders"
        assert exc_info.value.__cause__ is not None

    async def test_query_timeout(self):
        """Test store failure on query timeout"""
        store = RecordStore(lambda: _SlowSession(), query_timeout=0.01)

        with pytest.raises(StoreUnavailable, match="timed out"):
            await store.count(Collection.USERS)
