"""
E-Commerce Dataset Generator

Writes users.csv, products.csv and orders.csv for seeding the database.

Usage:
    python scripts/generate_dataset.py --users 1000 --products 500 --orders 5000
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.data.generators import DataGenerator, seed_everything  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="Generate synthetic e-commerce data")
    parser.add_argument("--users", type=int, default=1000, help="Number of users")
    parser.add_argument("--products", type=int, default=500, help="Number of products")
    parser.add_argument("--orders", type=int, default=5000, help="Number of orders")
    parser.add_argument("--output", default=None, help="Output directory (default: DATA_RAW_PATH)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    seed_everything(args.seed)
    generator = DataGenerator(args.output)
    data = generator.generate_all(
        n_users=args.users,
        n_products=args.products,
        n_orders=args.orders,
    )

    print(f"📁 Output: {generator.output_dir}")
    for name, df in data.items():
        print(f"   📄 {name}.csv: {len(df):,} rows")


if __name__ == "__main__":
    main()
