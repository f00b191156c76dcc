"""
Ingestion Module
"""
from .seed_db import seed_all, seed_users, seed_products, seed_orders

__all__ = [
    "seed_all",
    "seed_users",
    "seed_products",
    "seed_orders",
]
