"""
Synthetic Data Module
"""
from .generators import DataGenerator, UserGenerator, ProductGenerator, OrderGenerator

__all__ = [
    "DataGenerator",
    "UserGenerator",
    "ProductGenerator",
    "OrderGenerator",
]
