"""
Link purchases to their products.

Purchases recorded before the explicit product link only carry a product
name. This fills `product_id` for each of them whose name matches exactly one
product of its restaurant (ignoring case). Ambiguous or unmatched purchases
are left as they are and keep counting towards stock by name.

Usage:
    python -m restopos.seeds.link_purchases                    # every restaurant
    python -m restopos.seeds.link_purchases --restaurant <id>  # a single restaurant
"""

import argparse
import sys

from sqlmodel import Session

from ..db import get_engine
from ..models import ALL_RESTAURANTS
from ..records_service import backfill_purchase_product_ids


def link_purchases(restaurant_id: str = ALL_RESTAURANTS) -> int:
    engine = get_engine()
    if engine is None:
        print("❌ No database configured. Set DATABASE_URL or DB_HOST.")
        return 0

    print("🔗 Linking purchases to products...")
    with Session(engine) as session:
        linked = backfill_purchase_product_ids(session, restaurant_id)
    print(f"✅ {linked} purchases linked")
    return linked


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Fill the product link of purchases recorded by name")
    parser.add_argument(
        "--restaurant",
        default=ALL_RESTAURANTS,
        help='Restaurant id, or "all" for every restaurant (default)'
    )
    args = parser.parse_args()

    try:
        link_purchases(args.restaurant)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\n❌ Error linking purchases: {e}")
        sys.exit(1)
