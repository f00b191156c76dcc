"""
Synthetic Data Generator

Generates realistic e-commerce records for development and demos:
- Users
- Products with a stock distribution that includes low and empty stock
- Orders spread over the past year with recent activity for segmentation
"""

import random
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

import numpy as np
import polars as pl
from faker import Faker

from src.config import get_settings

fake = Faker()


# =============================================================================
# CONFIGURATION
# =============================================================================

PRODUCT_NOUNS = [
    "Phone", "Laptop", "Headphones", "Shirt", "Jacket", "Lamp",
    "Blender", "Backpack", "Sneakers", "Watch", "Novel", "Puzzle",
]

# (min_stock, max_stock, weight)
STOCK_BANDS = [
    (0, 0, 0.05),
    (1, 10, 0.15),
    (11, 200, 0.60),
    (201, 1000, 0.20),
]


def seed_everything(seed: int = 42) -> None:
    """Make generated data reproducible"""
    random.seed(seed)
    np.random.seed(seed)
    Faker.seed(seed)


# =============================================================================
# GENERATORS
# =============================================================================

class UserGenerator:
    """Generate registered users"""

    def generate(self, n: int = 1000) -> pl.DataFrame:
        """Generate n users"""
        users = []

        for _ in range(n):
            users.append({
                "id": str(uuid.uuid4()),
                "name": fake.name(),
                "email": fake.email(),
                "created_at": fake.date_time_between(start_date="-3y", end_date="now"),
            })

        return pl.DataFrame(users)


class ProductGenerator:
    """Generate a product catalog"""

    def generate(self, n: int = 500) -> pl.DataFrame:
        """Generate n products"""
        bands = random.choices(
            STOCK_BANDS,
            weights=[band[2] for band in STOCK_BANDS],
            k=n,
        )

        products = []
        for low, high, _ in bands:
            products.append({
                "id": str(uuid.uuid4()),
                "name": f"{fake.word().title()} {random.choice(PRODUCT_NOUNS)}",
                "price": round(random.uniform(5, 1500), 2),
                "stock": random.randint(low, high),
                "created_at": fake.date_time_between(start_date="-2y", end_date="now"),
            })

        return pl.DataFrame(products)


class OrderGenerator:
    """Generate orders placed by existing users"""

    def __init__(self, users_df: pl.DataFrame):
        self.user_ids: List[str] = users_df["id"].to_list()
        # Only a share of users ever orders
        self.buyer_ids = random.sample(
            self.user_ids,
            k=max(1, int(len(self.user_ids) * 0.6)),
        ) if self.user_ids else []

    def generate(
        self,
        n: int = 5000,
        end_date: Optional[datetime] = None,
        days: int = 365,
    ) -> pl.DataFrame:
        """Generate n orders between ``end_date - days`` and ``end_date``"""
        if not self.buyer_ids:
            raise ValueError("Cannot generate orders without users")

        end_date = end_date or datetime.utcnow()

        # Skew toward recent dates so every segment is populated
        ages = np.random.exponential(scale=days / 3, size=n).clip(0, days)
        amounts = np.round(np.random.lognormal(mean=4.5, sigma=0.8, size=n), 2)

        orders = []
        for age, amount in zip(ages, amounts):
            orders.append({
                "id": str(uuid.uuid4()),
                "user_id": random.choice(self.buyer_ids),
                "total_amount": float(amount),
                "order_date": end_date - timedelta(days=float(age)),
            })

        return pl.DataFrame(orders)


# =============================================================================
# MAIN GENERATOR
# =============================================================================

class DataGenerator:
    """Main data generator orchestrator"""

    def __init__(self, output_dir: Optional[str] = None):
        self.output_dir = Path(output_dir or get_settings().data.raw_path)

    def generate_all(
        self,
        n_users: int = 1000,
        n_products: int = 500,
        n_orders: int = 5000,
        save: bool = True,
    ) -> dict:
        """Generate complete dataset"""
        users_df = UserGenerator().generate(n_users)
        products_df = ProductGenerator().generate(n_products)
        orders_df = OrderGenerator(users_df).generate(n_orders)

        data = {
            "users": users_df,
            "products": products_df,
            "orders": orders_df,
        }

        if save:
            self.save(data)

        return data

    def save(self, data: dict) -> None:
        """Write each frame as ``<name>.csv``"""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        for name, df in data.items():
            df.write_csv(self.output_dir / f"{name}.csv")

    def load(self) -> dict:
        """Read frames previously written by ``save``"""
        return {
            name: pl.read_csv(self.output_dir / f"{name}.csv", try_parse_dates=True)
            for name in ("users", "products", "orders")
        }
