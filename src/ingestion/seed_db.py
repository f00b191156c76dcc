"""
Database Seeding

Loads generated users, products and orders into the database.

Usage:
    python -m src.ingestion.seed_db
"""

import asyncio
from typing import Any, Dict, List, Optional, Type

import polars as pl
import structlog
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.logging import configure_logging
from src.data.generators import DataGenerator
from src.database.connection import init_database, close_database, get_engine, get_session_factory
from src.database.models import Base, User, Product, Order

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 1000


async def execute_batch_insert(
    session_factory: async_sessionmaker[AsyncSession],
    model: Type[Base],
    records: List[Dict[str, Any]],
) -> int:
    """Insert records in chunks using Core insert"""
    if not records:
        return 0

    async with session_factory() as db:
        for i in range(0, len(records), CHUNK_SIZE):
            await db.execute(insert(model), records[i:i + CHUNK_SIZE])
        await db.commit()

    logger.info("Inserted records", table=model.__tablename__, count=len(records))
    return len(records)


async def seed_users(session_factory: async_sessionmaker[AsyncSession], df: pl.DataFrame) -> int:
    records = [
        {
            "id": row["id"],
            "name": row["name"],
            "email": row["email"],
            "created_at": row["created_at"],
        }
        for row in df.to_dicts()
    ]
    return await execute_batch_insert(session_factory, User, records)


async def seed_products(session_factory: async_sessionmaker[AsyncSession], df: pl.DataFrame) -> int:
    records = [
        {
            "id": row["id"],
            "name": row["name"],
            "price": row["price"],
            "stock": max(int(row["stock"]), 0),
            "created_at": row["created_at"],
        }
        for row in df.to_dicts()
    ]
    return await execute_batch_insert(session_factory, Product, records)


async def seed_orders(session_factory: async_sessionmaker[AsyncSession], df: pl.DataFrame) -> int:
    records = [
        {
            "id": row["id"],
            "user_id": row["user_id"],
            "total_amount": row["total_amount"],
            "order_date": row["order_date"],
        }
        for row in df.to_dicts()
    ]
    return await execute_batch_insert(session_factory, Order, records)


async def seed_all(
    session_factory: async_sessionmaker[AsyncSession],
    data: Dict[str, pl.DataFrame],
) -> Dict[str, int]:
    """Insert every generated frame; returns row counts per table"""
    return {
        "users": await seed_users(session_factory, data["users"]),
        "products": await seed_products(session_factory, data["products"]),
        "orders": await seed_orders(session_factory, data["orders"]),
    }


async def main(output_dir: Optional[str] = None, create_tables: bool = True) -> None:
    logger.info("Starting database seeding...")
    await init_database()

    try:
        if create_tables:
            async with get_engine().begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        generator = DataGenerator(output_dir)
        if not (generator.output_dir / "orders.csv").exists():
            logger.info("No generated data found, generating", output_dir=str(generator.output_dir))
            data = generator.generate_all()
        else:
            data = generator.load()

        counts = await seed_all(get_session_factory(), data)
        logger.info("Database seeding completed successfully", **counts)
    except Exception as e:
        logger.error("Seeding failed", error=str(e))
        raise
    finally:
        await close_database()


def run() -> None:
    """Console entry point"""
    configure_logging()
    asyncio.run(main())


if __name__ == "__main__":
    run()
