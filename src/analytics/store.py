"""
Record Store Adapter

Read-only grouped-aggregation queries over the users, products and orders
collections. Queries are described with small value objects (``GroupKey``,
``Reducer``, ``Condition``) and compiled to SQLAlchemy Core statements.

Every call opens its own session so independent queries can run
concurrently on the same event loop.

Example:
    store = RecordStore(get_session_factory())
    rows = await store.aggregate(
        Collection.ORDERS,
        reducers={"revenue": Reducer.sum("total_amount"), "orders": Reducer.count()},
        group_by={"year": GroupKey("order_date", part="year")},
        sort=[("year", SortOrder.ASC)],
    )
"""

import asyncio
import operator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type

import structlog
from sqlalchemy import case, extract, func, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import Select

from src.analytics.exceptions import EmptyAggregationResult, StoreUnavailable
from src.database.models import Base, Order, Product, User

logger = structlog.get_logger(__name__)

_MATCHED = "_matched"


class Collection(str, Enum):
    """Logical record collections"""
    USERS = "users"
    PRODUCTS = "products"
    ORDERS = "orders"


COLLECTION_MODELS: Dict[Collection, Type[Base]] = {
    Collection.USERS: User,
    Collection.PRODUCTS: Product,
    Collection.ORDERS: Order,
}


class ReducerOp(str, Enum):
    """Reducer operations"""
    SUM = "sum"
    AVG = "avg"
    MAX = "max"
    COUNT = "count"
    SUM_IF = "sum_if"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


_COMPARATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

_DATE_PARTS = ("year", "month", "day")


@dataclass(frozen=True)
class Condition:
    """Predicate ``<field> <op> <value>`` used by conditional reducers"""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in _COMPARATORS:
            raise ValueError(f"Unsupported comparison '{self.op}'")


@dataclass(frozen=True)
class GroupKey:
    """Grouping key: a field, or a calendar part of a timestamp field"""
    field: str
    part: Optional[str] = None

    def __post_init__(self):
        if self.part is not None and self.part not in _DATE_PARTS:
            raise ValueError(f"Unsupported date part '{self.part}'")


@dataclass(frozen=True)
class Reducer:
    """
    Named aggregation over the records of one group.

    ``SUM_IF`` sums ``field`` over the records matching ``when``; without a
    field it counts them.
    """
    op: ReducerOp
    field: Optional[str] = None
    when: Optional[Condition] = None

    @classmethod
    def sum(cls, field: str) -> "Reducer":
        return cls(ReducerOp.SUM, field)

    @classmethod
    def avg(cls, field: str) -> "Reducer":
        return cls(ReducerOp.AVG, field)

    @classmethod
    def max(cls, field: str) -> "Reducer":
        return cls(ReducerOp.MAX, field)

    @classmethod
    def count(cls) -> "Reducer":
        return cls(ReducerOp.COUNT)

    @classmethod
    def count_where(cls, when: Condition) -> "Reducer":
        return cls(ReducerOp.SUM_IF, None, when)

    @classmethod
    def sum_where(cls, field: str, when: Condition) -> "Reducer":
        return cls(ReducerOp.SUM_IF, field, when)


def single_row(rows: Sequence[Dict[str, Any]], collection: Collection) -> Dict[str, Any]:
    """
    Return the only row of an ungrouped aggregation.

    Raises:
        EmptyAggregationResult: The aggregated collection is empty
    """
    if not rows:
        raise EmptyAggregationResult(collection.value)
    return rows[0]


class RecordStore:
    """Grouped-aggregation queries over the record collections"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        query_timeout: Optional[float] = 30.0,
    ):
        self._session_factory = session_factory
        self._query_timeout = query_timeout

    async def count(self, collection: Collection) -> int:
        """Number of records in a collection"""
        model = self._model(collection)
        rows = await self._fetch(
            collection,
            select(func.count().label("count")).select_from(model),
        )
        return int(rows[0]["count"] or 0)

    async def aggregate(
        self,
        collection: Collection,
        reducers: Mapping[str, Reducer],
        group_by: Optional[Mapping[str, GroupKey]] = None,
        sort: Sequence[Tuple[str, SortOrder]] = (),
        project: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run a grouped aggregation.

        Args:
            collection: Collection to aggregate
            reducers: Output field name -> reducer
            group_by: Output field name -> grouping key; ``None`` aggregates
                the whole collection as a single group
            sort: Output fields to sort by, in priority order
            project: Output fields to keep (default: all)

        Returns:
            One dict per group with key fields and reducer outputs side by
            side. An ungrouped aggregation of an empty collection returns an
            empty list.

        Raises:
            StoreUnavailable: Connection or query failure, or timeout
        """
        if not reducers:
            raise ValueError("At least one reducer is required")

        model = self._model(collection)
        columns = {}
        key_exprs = []
        for name, key in (group_by or {}).items():
            expr = self._key_expr(model, key)
            key_exprs.append(expr)
            columns[name] = expr.label(name)
        for name, reducer in reducers.items():
            if name in columns:
                raise ValueError(f"Duplicate output field '{name}'")
            columns[name] = self._reducer_expr(model, reducer).label(name)

        stmt = select(*columns.values()).select_from(model)
        if key_exprs:
            stmt = stmt.group_by(*key_exprs)
        else:
            stmt = stmt.add_columns(func.count().label(_MATCHED))

        for name, order in sort:
            if name not in columns:
                raise ValueError(f"Cannot sort by unknown field '{name}'")
            label = columns[name]
            stmt = stmt.order_by(label.desc() if order == SortOrder.DESC else label.asc())

        rows = await self._fetch(collection, stmt)

        if not key_exprs:
            rows = [row for row in rows if row.pop(_MATCHED)]
        if project is not None:
            rows = [{name: row[name] for name in project} for row in rows]
        return rows

    async def _fetch(self, collection: Collection, stmt: Select) -> List[Dict[str, Any]]:
        try:
            async with self._session_factory() as session:
                result = await asyncio.wait_for(
                    session.execute(stmt),
                    timeout=self._query_timeout,
                )
                return [dict(row._mapping) for row in result.all()]
        except asyncio.TimeoutError as e:
            logger.error("Store query timed out", collection=collection.value, timeout=self._query_timeout)
            raise StoreUnavailable(
                f"Query on '{collection.value}' timed out after {self._query_timeout}s",
                collection=collection.value,
            ) from e
        except (DBAPIError, OSError) as e:
            logger.error(
                "Store query failed",
                collection=collection.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StoreUnavailable(
                f"Query on '{collection.value}' failed: {e}",
                collection=collection.value,
            ) from e

    @staticmethod
    def _model(collection: Collection) -> Type[Base]:
        return COLLECTION_MODELS[Collection(collection)]

    @staticmethod
    def _column(model: Type[Base], field: str):
        column = model.__table__.columns.get(field)
        if column is None:
            raise ValueError(f"Unknown field '{field}' on {model.__tablename__}")
        return column

    def _key_expr(self, model: Type[Base], key: GroupKey):
        column = self._column(model, key.field)
        if key.part is None:
            return column
        return extract(key.part, column)

    def _reducer_expr(self, model: Type[Base], reducer: Reducer):
        if reducer.op == ReducerOp.COUNT:
            return func.count()
        if reducer.op == ReducerOp.SUM_IF:
            if reducer.when is None:
                raise ValueError("Conditional reducer requires a condition")
            compare = _COMPARATORS[reducer.when.op]
            predicate = compare(self._column(model, reducer.when.field), reducer.when.value)
            value = self._column(model, reducer.field) if reducer.field else 1
            return func.coalesce(func.sum(case((predicate, value), else_=0)), 0)

        if reducer.field is None:
            raise ValueError(f"Reducer '{reducer.op.value}' requires a field")
        column = self._column(model, reducer.field)
        if reducer.op == ReducerOp.SUM:
            return func.sum(column)
        if reducer.op == ReducerOp.AVG:
            return func.avg(column)
        return func.max(column)
